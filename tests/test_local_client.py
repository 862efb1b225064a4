"""Tests for the self-hosted model client, against an in-process httpx transport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from household_ai.errors import ProviderError
from household_ai.models.base import ImagePayload
from household_ai.models.local_client import (
    LocalMode,
    LocalModelClient,
    detect_mode,
    forget_discovered_modes,
    root_url,
)


@pytest.fixture(autouse=True)
def _fresh_protocol_memory():
    forget_discovered_modes()
    yield
    forget_discovered_modes()


def _client(handler, base_url: str = "http://localhost:11434", **kwargs) -> LocalModelClient:
    return LocalModelClient(
        agent_name="local",
        api_model="llava",
        base_url=base_url,
        label="Local",
        known_models=["llama3"],
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_detect_mode_and_root_url() -> None:
    assert detect_mode("http://localhost:11434") is LocalMode.OLLAMA
    assert detect_mode("http://gpu-box:8080/api/") is LocalMode.OLLAMA
    assert detect_mode("http://gpu-box:8000/v1") is LocalMode.OPENAI
    assert detect_mode("http://gpu-box:8000") is None
    assert root_url("http://gpu-box:8000/v1/") == "http://gpu-box:8000"
    assert root_url("http://gpu-box:8080/api") == "http://gpu-box:8080"


def test_missing_base_url_is_rejected() -> None:
    with pytest.raises(ValueError):
        LocalModelClient(agent_name="local", api_model="llama3", base_url=None)


def test_ollama_generate_payload() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/generate"
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"response": "  A dishwasher.  "})

    async def _run() -> None:
        client = _client(handler)
        response = await client.generate(
            prompt="What is this?", max_tokens=64, timeout=5.0, image=ImagePayload(data="aGVsbG8=")
        )
        await client.close()
        assert response.text == "A dishwasher."
        assert response.raw == {"mode": "ollama"}

    asyncio.run(_run())
    assert seen == [
        {
            "model": "llava",
            "prompt": "What is this?",
            "stream": False,
            "options": {"num_predict": 64},
            "images": ["aGVsbG8="],
        }
    ]


def test_unknown_server_falls_through_to_openai_protocol() -> None:
    """A server that does not answer /api/tags is treated as OpenAI-compatible."""
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/api/tags":
            return httpx.Response(404)
        if request.url.path == "/v1/models":
            return httpx.Response(200, json={"data": [{"id": "qwen2"}]})
        payload = json.loads(request.content)
        assert payload["messages"][0]["content"][1]["image_url"]["url"] == "data:image/png;base64,eA=="
        assert request.headers["Authorization"] == "Bearer secret"
        return httpx.Response(200, json={"choices": [{"message": {"content": "A kettle"}}]})

    async def _run() -> None:
        client = _client(handler, base_url="http://gpu-box:8000", api_key="secret")
        response = await client.generate(
            prompt="What is this?", max_tokens=32, timeout=5.0, image=ImagePayload(data="eA==", mime_type="image/png")
        )
        await client.close()
        assert client.mode is LocalMode.OPENAI
        assert response.text == "A kettle"

    asyncio.run(_run())
    assert paths == ["/api/tags", "/v1/models", "/v1/chat/completions"]


def test_list_models_merges_known_and_discovered() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"models": [{"name": "llava"}, {"name": "llama3"}]})

    async def _run() -> None:
        client = _client(handler)
        assert await client.list_models() == ["llama3", "llava"]
        await client.close()

    asyncio.run(_run())


def test_list_models_falls_back_when_server_is_down() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def _run() -> None:
        client = _client(handler)
        assert await client.list_models() == ["llama3"]
        await client.close()

    asyncio.run(_run())


def test_http_errors_become_provider_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "model 'llava' not found"})

    async def _run() -> None:
        client = _client(handler)
        with pytest.raises(ProviderError) as excinfo:
            await client.generate(prompt="hi", max_tokens=8, timeout=5.0)
        await client.close()
        assert excinfo.value.message == "Local: HTTP 404: model 'llava' not found"
        assert excinfo.value.status_code == 404
        assert excinfo.value.retryable is False

    asyncio.run(_run())


def test_discovered_protocol_is_reused_by_later_clients() -> None:
    """Clients are built per call; only the first one for a server asks which protocol it speaks."""
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "llava"}]})
        return httpx.Response(200, json={"response": "ok"})

    async def _run() -> None:
        for _ in range(2):
            client = _client(handler, base_url="http://nas.lan:8080")
            await client.generate(prompt="hi", max_tokens=8, timeout=5.0)
            await client.close()

    asyncio.run(_run())
    assert paths == ["/api/tags", "/api/generate", "/api/generate"]


def test_failed_call_forgets_discovered_protocol() -> None:
    paths: list[str] = []
    replies = {"/api/tags": [200, 200], "/api/generate": [500, 200]}

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        status = replies[request.url.path].pop(0)
        if request.url.path == "/api/tags":
            return httpx.Response(status, json={"models": []})
        return httpx.Response(status, json={"response": "ok"})

    async def _run() -> None:
        first = _client(handler, base_url="http://nas.lan:8080")
        with pytest.raises(ProviderError):
            await first.generate(prompt="hi", max_tokens=8, timeout=5.0)
        await first.close()

        second = _client(handler, base_url="http://nas.lan:8080")
        response = await second.generate(prompt="hi", max_tokens=8, timeout=5.0)
        await second.close()
        assert response.text == "ok"

    asyncio.run(_run())
    assert paths == ["/api/tags", "/api/generate", "/api/tags", "/api/generate"]
