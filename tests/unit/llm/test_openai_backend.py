"""Unit tests for the OpenAI-compatible backend (HTTP mocked with httpx.MockTransport)."""

import json

import httpx
import pytest

from ln_translator.core.exceptions import BackendResponseError, BackendUnavailableError
from ln_translator.core.llm import OllamaBackend, OpenAICompatibleBackend, create_backend
from ln_translator.core.translation.models import Settings


def sse(*events):
    lines = [f"data: {json.dumps(event)}\n\n" for event in events]
    return "".join(lines) + "data: [DONE]\n\n"


def delta(**fields):
    return {"choices": [{"index": 0, "delta": fields}]}


def make_backend(handler, api_key="sk-test"):
    return OpenAICompatibleBackend("http://llm.test/v1/chat/completions", api_key=api_key,
                                   transport=httpx.MockTransport(handler))


async def collect(stream):
    return [chunk async for chunk in stream]


class TestOpenAIRequests:
    """Request shape."""

    @pytest.mark.asyncio
    async def test_payload_and_headers(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text=sse(delta(content="Hello"), delta(content=" there")))

        backend = make_backend(handler)
        chunks = await collect(await backend.open_stream("gpt-4o", "本文。", Settings(), system_prompt="Sys"))

        assert chunks == ["Hello", " there"]
        assert seen["url"] == "http://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "gpt-4o"
        assert seen["body"]["stream"] is True
        assert seen["body"]["messages"][0] == {"role": "system", "content": "Sys"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("think", [True, False])
    async def test_think_flag_not_sent(self, think):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text=sse(delta(content="x")))

        await collect(await make_backend(handler).open_stream("m", "p", Settings(think=think)))
        assert set(seen["body"]) == {"model", "messages", "stream"}

    @pytest.mark.asyncio
    async def test_no_key_no_auth_header(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, text=sse(delta(content="x")))

        await collect(await make_backend(handler, api_key=None).open_stream("m", "p", Settings()))
        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_images_as_content_parts(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text=sse(delta(content="x")))

        await collect(await make_backend(handler).open_stream("m", "Extract.", Settings(), images=["QUJD"]))
        content = seen["body"]["messages"][-1]["content"]
        assert content[0] == {"type": "text", "text": "Extract."}
        assert content[1]["image_url"]["url"] == "data:image/png;base64,QUJD"

    @pytest.mark.asyncio
    async def test_data_uri_keeps_image_type(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text=sse(delta(content="x")))

        image = "data:image/jpeg;base64,/9j/4AAQ"
        await collect(await make_backend(handler).open_stream("m", "Extract.", Settings(), images=[image]))
        assert seen["body"]["messages"][-1]["content"][1]["image_url"]["url"] == image

    @pytest.mark.asyncio
    async def test_list_models(self):
        def handler(request):
            assert request.url.path == "/v1/models"
            return httpx.Response(200, json={"data": [{"id": "gpt-4o"}, {"id": "local"}]})

        assert await make_backend(handler).list_models() == ["gpt-4o", "local"]


class TestOpenAIStreaming:
    @pytest.mark.asyncio
    async def test_reasoning_wrapped_in_tags(self):
        body = sse(delta(reasoning_content="Thinking"), delta(content="Answer."))
        backend = make_backend(lambda request: httpx.Response(200, text=body))
        chunks = await collect(await backend.open_stream("m", "p", Settings()))
        assert "".join(chunks) == "<think>Thinking</think>\nAnswer."

    @pytest.mark.asyncio
    async def test_non_data_lines_ignored(self):
        body = ": keep-alive\n\nevent: ping\n" + sse(delta(role="assistant"), delta(content="ok"))
        backend = make_backend(lambda request: httpx.Response(200, text=body))
        assert await collect(await backend.open_stream("m", "p", Settings())) == ["ok"]

    @pytest.mark.asyncio
    async def test_error_event(self):
        body = "data: " + json.dumps({"error": {"message": "overloaded"}}) + "\n\n"
        backend = make_backend(lambda request: httpx.Response(200, text=body))
        with pytest.raises(BackendResponseError):
            await collect(await backend.open_stream("m", "p", Settings()))


class TestOpenAIErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [503, 529])
    async def test_unavailable(self, status):
        backend = make_backend(lambda request: httpx.Response(status))
        with pytest.raises(BackendUnavailableError) as exc_info:
            await backend.open_stream("m", "p", Settings())
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        backend = make_backend(lambda request: httpx.Response(401, json={"error": "bad key"}))
        with pytest.raises(BackendResponseError) as exc_info:
            await backend.open_stream("m", "p", Settings())
        assert exc_info.value.status_code == 401


class TestFactory:
    def test_ollama(self):
        backend = create_backend("ollama", api_endpoint="http://host:11434")
        assert isinstance(backend, OllamaBackend)
        assert backend.api_endpoint == "http://host:11434"

    def test_openai(self):
        backend = create_backend("OpenAI", api_endpoint="http://llm.test/v1", api_key="k", timeout=30)
        assert isinstance(backend, OpenAICompatibleBackend)
        assert backend.api_key == "k"
        assert backend.timeout == 30

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_backend("gemini")
