"""
Translation sessions: page model, execution methods, retry and events.
"""

from .models import Activity, Page, Settings, check_complete, build_pages
from .execution import ExecutionMethod, Chain, Batch, method_from_name
from .events import EventBus, Event, EventType
from .retry_manager import RetryConfig, RetryManager
from .connection import Connected, Disconnected
from .orchestrator import TranslationSession
from .extraction import ExtractionSession, ImagePage

__all__ = [
    'Activity', 'Page', 'Settings', 'check_complete', 'build_pages',
    'ExecutionMethod', 'Chain', 'Batch', 'method_from_name',
    'EventBus', 'Event', 'EventType',
    'RetryConfig', 'RetryManager',
    'Connected', 'Disconnected',
    'TranslationSession',
    'ExtractionSession', 'ImagePage',
]
