"""
Backend factory.
"""

from .base import Backend
from .providers.ollama import OllamaBackend
from .providers.openai import OpenAICompatibleBackend

from ln_translator.config import API_ENDPOINT, OPENAI_API_ENDPOINT, OPENAI_API_KEY, REQUEST_TIMEOUT


def create_backend(provider_type: str = "ollama", **kwargs) -> Backend:
    """Factory function to create translation backends"""
    provider = provider_type.lower()
    common = {
        'timeout': kwargs.get("timeout") or REQUEST_TIMEOUT,
        'keep_history': kwargs.get("keep_history", False),
        'log_callback': kwargs.get("log_callback"),
        'transport': kwargs.get("transport"),
    }

    if provider == "ollama":
        return OllamaBackend(api_endpoint=kwargs.get("api_endpoint") or API_ENDPOINT, **common)
    elif provider == "openai":
        return OpenAICompatibleBackend(
            api_endpoint=kwargs.get("api_endpoint") or OPENAI_API_ENDPOINT,
            api_key=kwargs.get("api_key") or OPENAI_API_KEY,
            **common
        )
    else:
        raise ValueError(f"Unknown provider type: {provider_type}")
