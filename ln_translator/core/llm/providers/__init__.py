"""
Backend implementations

Providers:
    - ollama: Local Ollama server
    - openai: OpenAI-compatible APIs
"""

from .ollama import OllamaBackend
from .openai import OpenAICompatibleBackend

__all__ = ['OllamaBackend', 'OpenAICompatibleBackend']
