"""
OpenAI-compatible backend.

Works with OpenAI and compatible servers (llama.cpp, LM Studio, vLLM, ...)
through the streaming chat-completions endpoint (server-sent events).
"""

from typing import AsyncIterator, Callable, List, Optional
import json
import httpx

from ..base import Backend, image_data_uri
from ln_translator.config import OPENAI_API_ENDPOINT, REQUEST_TIMEOUT
from ln_translator.core.exceptions import BackendResponseError


class OpenAICompatibleBackend(Backend):
    """
    OpenAI-compatible API backend.

    ``settings.think`` is not sent: chat-completions has no portable switch for
    reasoning and servers reject unknown parameters for non-reasoning models.
    Reasoning a server streams anyway (``reasoning_content``) is still wrapped
    in think tags.
    """

    provider_name = "OpenAI-compatible API"

    def __init__(self, api_endpoint: str = OPENAI_API_ENDPOINT, api_key: Optional[str] = None,
                 timeout: int = REQUEST_TIMEOUT, keep_history: bool = False,
                 log_callback: Optional[Callable] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        if api_endpoint.rstrip('/').endswith('/chat/completions'):
            api_endpoint = api_endpoint.rstrip('/')[:-len('/chat/completions')]
        super().__init__(api_endpoint, timeout, keep_history, log_callback, transport)
        self.api_key = api_key

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def list_models(self) -> List[str]:
        client = await self._get_client()
        try:
            response = await client.get(f"{self.api_endpoint}/models", headers=self._headers(), timeout=10)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise BackendResponseError(f"Cannot list models: HTTP {e.response.status_code}",
                                       status_code=e.response.status_code)
        except (httpx.HTTPError, json.JSONDecodeError) as e:
            raise BackendResponseError(f"Cannot list models: {e}")

        return [model['id'] for model in data.get('data', []) if model.get('id')]

    async def open_stream(self, model, prompt, settings, system_prompt=None, images=None) -> AsyncIterator[str]:
        messages = self._build_messages(prompt, system_prompt)
        if images:
            parts = [{"type": "text", "text": prompt}]
            parts.extend({"type": "image_url", "image_url": {"url": image_data_uri(image)}} for image in images)
            messages[-1] = {"role": "user", "content": parts}

        payload = {
            "model": model,
            "messages": messages,
            "stream": True,
        }

        client = await self._get_client()
        request = client.build_request("POST", f"{self.api_endpoint}/chat/completions",
                                       json=payload, headers=self._headers())
        response = await self._send(request)
        return self._iter_chunks(response, prompt)

    async def _iter_chunks(self, response: httpx.Response, prompt: str) -> AsyncIterator[str]:
        reply = []
        in_thinking = False
        try:
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if data == "[DONE]":
                    break
                try:
                    event = json.loads(data)
                except json.JSONDecodeError:
                    continue

                if event.get("error"):
                    raise BackendResponseError(f"Stream error: {event['error']}")

                for choice in event.get("choices", []):
                    delta = choice.get("delta") or {}
                    reasoning = delta.get("reasoning_content") or delta.get("reasoning")
                    content = delta.get("content")
                    if reasoning:
                        if not in_thinking:
                            in_thinking = True
                            reasoning = "<think>" + reasoning
                        yield reasoning
                    if content:
                        reply.append(content)
                        if in_thinking:
                            in_thinking = False
                            content = "</think>\n" + content
                        yield content

            if in_thinking:
                yield "</think>\n"
        except httpx.HTTPError as e:
            raise BackendResponseError(f"Stream interrupted: {e}")
        finally:
            await response.aclose()

        self._remember(prompt, "".join(reply))
