"""
Ollama backend.

Streams /api/chat responses (one JSON object per line). When the model returns
its reasoning in the separate "thinking" field, that text is emitted between
<think> tags so that downstream tag stripping treats both model styles alike.
"""

from typing import AsyncIterator, Callable, List, Optional
import json
import httpx

from ..base import Backend, image_base64
from ln_translator.config import API_ENDPOINT, REQUEST_TIMEOUT
from ln_translator.core.exceptions import BackendResponseError


class OllamaBackend(Backend):
    """Ollama API backend - uses /api/chat for proper think parameter support"""

    provider_name = "Ollama"

    def __init__(self, api_endpoint: str = API_ENDPOINT, timeout: int = REQUEST_TIMEOUT,
                 keep_history: bool = False, log_callback: Optional[Callable] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        # Accept either the server root or a full /api/generate or /api/chat URL
        for suffix in ('/api/generate', '/api/chat'):
            if api_endpoint.rstrip('/').endswith(suffix):
                api_endpoint = api_endpoint.rstrip('/')[:-len(suffix)]
        super().__init__(api_endpoint, timeout, keep_history, log_callback, transport)

    @property
    def chat_url(self) -> str:
        return f"{self.api_endpoint}/api/chat"

    async def list_models(self) -> List[str]:
        client = await self._get_client()
        try:
            response = await client.get(f"{self.api_endpoint}/api/tags", timeout=10)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise BackendResponseError(f"Cannot list Ollama models: HTTP {e.response.status_code}",
                                       status_code=e.response.status_code)
        except (httpx.HTTPError, json.JSONDecodeError) as e:
            raise BackendResponseError(f"Cannot list Ollama models: {e}")

        return [model.get('name') or model.get('model') for model in data.get('models', [])
                if model.get('name') or model.get('model')]

    async def open_stream(self, model, prompt, settings, system_prompt=None, images=None) -> AsyncIterator[str]:
        messages = self._build_messages(prompt, system_prompt)
        if images:
            messages[-1]["images"] = [image_base64(image) for image in images]

        payload = {
            "model": model,
            "messages": messages,
            "stream": True,
            "think": bool(settings.think),
        }

        client = await self._get_client()
        request = client.build_request("POST", self.chat_url, json=payload)
        response = await self._send(request)
        return self._iter_chunks(response, prompt)

    async def _iter_chunks(self, response: httpx.Response, prompt: str) -> AsyncIterator[str]:
        reply = []
        in_thinking = False
        try:
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    chunk_data = json.loads(line)
                except json.JSONDecodeError:
                    continue

                if chunk_data.get("error"):
                    raise BackendResponseError(f"Ollama stream error: {chunk_data['error']}")

                message = chunk_data.get("message", {})
                thinking = message.get("thinking")
                content = message.get("content")

                if thinking:
                    if not in_thinking:
                        in_thinking = True
                        thinking = "<think>" + thinking
                    yield thinking
                if content:
                    reply.append(content)
                    if in_thinking:
                        in_thinking = False
                        content = "</think>\n" + content
                    yield content

                if chunk_data.get("done"):
                    break

            if in_thinking:
                yield "</think>\n"
        except httpx.HTTPError as e:
            raise BackendResponseError(f"Ollama stream interrupted: {e}")
        finally:
            # Release the connection even when the consumer stops early (cancellation)
            await response.aclose()

        self._remember(prompt, "".join(reply))
