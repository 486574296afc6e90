"""
Streaming text-generation backends.
"""

from .base import Backend
from .factory import create_backend
from .providers import OllamaBackend, OpenAICompatibleBackend

__all__ = ['Backend', 'create_backend', 'OllamaBackend', 'OpenAICompatibleBackend']
