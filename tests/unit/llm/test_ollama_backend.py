"""Unit tests for the Ollama backend (HTTP mocked with httpx.MockTransport)."""

import json

import httpx
import pytest

from ln_translator.core.exceptions import BackendResponseError, BackendUnavailableError
from ln_translator.core.llm.providers.ollama import OllamaBackend
from ln_translator.core.translation.models import Settings


def ndjson(*objects):
    return "\n".join(json.dumps(obj) for obj in objects) + "\n"


def make_backend(handler, **kwargs):
    return OllamaBackend("http://ollama.test:11434/api/generate",
                         transport=httpx.MockTransport(handler), **kwargs)


async def collect(stream):
    return [chunk async for chunk in stream]


class TestOllamaRequests:
    """Request shape and endpoint handling."""

    def test_endpoint_normalized(self):
        assert OllamaBackend("http://host:11434/api/chat/").chat_url == "http://host:11434/api/chat"
        assert OllamaBackend("http://host:11434").chat_url == "http://host:11434/api/chat"

    @pytest.mark.asyncio
    async def test_chat_payload(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text=ndjson({"message": {"content": "Hi"}, "done": True}))

        backend = make_backend(handler)
        stream = await backend.open_stream("qwen3:14b", "本文。", Settings(think=False), system_prompt="Translate.")
        assert await collect(stream) == ["Hi"]

        assert seen["url"] == "http://ollama.test:11434/api/chat"
        body = seen["body"]
        assert body["model"] == "qwen3:14b"
        assert body["stream"] is True
        assert body["think"] is False
        assert body["messages"] == [
            {"role": "system", "content": "Translate."},
            {"role": "user", "content": "本文。"},
        ]
        await backend.close()

    @pytest.mark.asyncio
    async def test_images_attached_to_user_message(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text=ndjson({"message": {"content": "text"}, "done": True}))

        backend = make_backend(handler)
        await collect(await backend.open_stream("llava", "Extract.", Settings(), images=["QUJD"]))
        assert seen["body"]["messages"][-1]["images"] == ["QUJD"]

    @pytest.mark.asyncio
    async def test_data_uri_images_sent_as_base64(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text=ndjson({"message": {"content": "text"}, "done": True}))

        backend = make_backend(handler)
        await collect(await backend.open_stream("llava", "Extract.", Settings(),
                                                images=["data:image/jpeg;base64,/9j/4AAQ"]))
        assert seen["body"]["messages"][-1]["images"] == ["/9j/4AAQ"]

    @pytest.mark.asyncio
    async def test_list_models(self):
        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "a:latest"}, {"model": "b"}, {}]})

        assert await make_backend(handler).list_models() == ["a:latest", "b"]

    @pytest.mark.asyncio
    async def test_list_models_failure(self):
        backend = make_backend(lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(BackendResponseError):
            await backend.list_models()


class TestOllamaStreaming:
    """Streamed chunks and reasoning output."""

    @pytest.mark.asyncio
    async def test_thinking_wrapped_in_tags(self):
        body = ndjson(
            {"message": {"thinking": "Let me"}},
            {"message": {"thinking": " think."}},
            {"message": {"content": "Hello"}},
            {"message": {"content": " world."}, "done": True},
        )
        backend = make_backend(lambda request: httpx.Response(200, text=body))
        chunks = await collect(await backend.open_stream("m", "p", Settings(think=True)))
        assert "".join(chunks) == "<think>Let me think.</think>\nHello world."

    @pytest.mark.asyncio
    async def test_unterminated_thinking_closed(self):
        body = ndjson({"message": {"thinking": "only thoughts"}, "done": True})
        backend = make_backend(lambda request: httpx.Response(200, text=body))
        chunks = await collect(await backend.open_stream("m", "p", Settings(think=True)))
        assert "".join(chunks) == "<think>only thoughts</think>\n"

    @pytest.mark.asyncio
    async def test_blank_and_invalid_lines_skipped(self):
        body = "\n" + "not json\n" + ndjson({"message": {"content": "ok"}, "done": True})
        backend = make_backend(lambda request: httpx.Response(200, text=body))
        assert await collect(await backend.open_stream("m", "p", Settings())) == ["ok"]

    @pytest.mark.asyncio
    async def test_error_in_stream(self):
        body = ndjson({"message": {"content": "partial"}}, {"error": "model crashed"})
        backend = make_backend(lambda request: httpx.Response(200, text=body))
        stream = await backend.open_stream("m", "p", Settings())
        with pytest.raises(BackendResponseError):
            await collect(stream)


class TestOllamaErrors:
    """HTTP status mapping."""

    @pytest.mark.asyncio
    async def test_503_is_unavailable(self):
        backend = make_backend(lambda request: httpx.Response(503))
        with pytest.raises(BackendUnavailableError) as exc_info:
            await backend.open_stream("m", "p", Settings())
        assert exc_info.value.recoverable

    @pytest.mark.asyncio
    async def test_other_status_is_hard_error(self):
        backend = make_backend(lambda request: httpx.Response(404, text="model not found"))
        with pytest.raises(BackendResponseError) as exc_info:
            await backend.open_stream("m", "p", Settings())
        assert exc_info.value.status_code == 404
        assert "model not found" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(BackendResponseError):
            await make_backend(handler).open_stream("m", "p", Settings())


class TestHistory:
    """Optional conversation history."""

    @pytest.mark.asyncio
    async def test_history_sent_and_cleared(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, text=ndjson({"message": {"content": "Reply"}, "done": True}))

        backend = make_backend(handler, keep_history=True)
        await collect(await backend.open_stream("m", "first", Settings()))
        await collect(await backend.open_stream("m", "second", Settings()))

        assert [m["content"] for m in bodies[1]["messages"]] == ["first", "Reply", "second"]

        backend.clear_history()
        assert backend.history == []

    @pytest.mark.asyncio
    async def test_no_history_by_default(self):
        backend = make_backend(
            lambda request: httpx.Response(200, text=ndjson({"message": {"content": "x"}, "done": True}))
        )
        await collect(await backend.open_stream("m", "first", Settings()))
        assert backend.history == []
