"""
Base class for streaming text-generation backends.

A backend turns (model, prompt, generation settings) into a stream of text
chunks. Opening the stream is a separate awaitable step so that transient
unavailability can be retried before any chunk reaches the caller.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, Dict, List, Optional, TYPE_CHECKING
import httpx

from ln_translator.config import REQUEST_TIMEOUT
from ln_translator.core.exceptions import BackendResponseError, BackendUnavailableError

if TYPE_CHECKING:
    from ln_translator.core.translation.models import Settings


# Status codes meaning "temporarily unavailable, try again later"
UNAVAILABLE_STATUS_CODES = {503, 529}

DEFAULT_IMAGE_TYPE = 'image/png'


def image_data_uri(image: str) -> str:
    """``data:`` URI for an image given either as a data URI or as bare base64 (assumed PNG)."""
    if image.startswith('data:'):
        return image
    return f"data:{DEFAULT_IMAGE_TYPE};base64,{image}"


def image_base64(image: str) -> str:
    """Bare base64 payload of an image given as a data URI or as bare base64."""
    if image.startswith('data:'):
        return image.split(',', 1)[1]
    return image


class Backend(ABC):
    """Abstract base class for translation backends"""

    provider_name = "backend"

    def __init__(self, api_endpoint: str, timeout: int = REQUEST_TIMEOUT,
                 keep_history: bool = False, log_callback: Optional[Callable] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            api_endpoint: Base URL of the service
            timeout: Request timeout in seconds
            keep_history: Send previous exchanges with every request
            log_callback: Callback for logging (key, message)
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.api_endpoint = api_endpoint.rstrip('/')
        self.timeout = timeout
        self.keep_history = keep_history
        self.log_callback = log_callback
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._history: List[Dict[str, str]] = []

    def _log(self, key: str, message: str):
        if self.log_callback:
            self.log_callback(key, message)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client with connection pooling"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def history(self) -> List[Dict[str, str]]:
        return list(self._history)

    def clear_history(self):
        """Forget previous exchanges (no-op for stateless use)."""
        self._history.clear()

    def _build_messages(self, prompt: str, system_prompt: Optional[str]) -> List[Dict]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        if self.keep_history:
            messages.extend(self._history)
        messages.append({"role": "user", "content": prompt})
        return messages

    def _remember(self, prompt: str, reply: str):
        if self.keep_history:
            self._history.append({"role": "user", "content": prompt})
            self._history.append({"role": "assistant", "content": reply})

    async def _send(self, request: httpx.Request) -> httpx.Response:
        """
        Send a streaming request and check its status.

        Raises:
            BackendUnavailableError: 503/529, the caller may retry
            BackendResponseError: Any other failure
        """
        client = await self._get_client()
        try:
            response = await client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise BackendResponseError(f"Request timed out: {e}", context={'url': str(request.url)})
        except httpx.HTTPError as e:
            raise BackendResponseError(f"Cannot reach {self.provider_name}: {e}",
                                       context={'url': str(request.url)})

        if response.status_code in UNAVAILABLE_STATUS_CODES:
            await response.aclose()
            raise BackendUnavailableError(
                f"{self.provider_name} temporarily unavailable",
                status_code=response.status_code
            )
        if response.status_code >= 400:
            body = await response.aread()
            await response.aclose()
            raise BackendResponseError(
                f"{self.provider_name} returned HTTP {response.status_code}: "
                f"{body.decode('utf-8', errors='replace')[:300]}",
                status_code=response.status_code
            )
        return response

    @abstractmethod
    async def list_models(self) -> List[str]:
        """Names of the models the service offers."""
        pass

    @abstractmethod
    async def open_stream(self, model: str, prompt: str, settings: "Settings",
                          system_prompt: Optional[str] = None,
                          images: Optional[List[str]] = None) -> AsyncIterator[str]:
        """
        Start a generation and return an async iterator over its text chunks.

        Args:
            model: Model name
            prompt: User prompt (text to translate)
            settings: Generation settings (think flag)
            system_prompt: Optional system prompt
            images: Optional images for vision models, as data URIs or bare base64 (PNG)

        Raises:
            BackendUnavailableError: Service temporarily unavailable
            BackendResponseError: Any other failure
        """
        pass
