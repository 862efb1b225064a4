"""Client for self-hosted model servers.

A local base URL may point at an Ollama server (native ``/api`` protocol) or
at any OpenAI-compatible server (``/v1``). The protocol is picked from the
URL when it is obvious and otherwise discovered by probing both listing
endpoints. A discovered protocol is remembered per server root for the life
of the process, since clients are built per call, and forgotten when a call
in that protocol fails.
"""

from __future__ import annotations

from enum import Enum
import logging
import time
from typing import Any, Iterable
from urllib.parse import urlsplit

import httpx

from .base import BaseModelClient, ImagePayload, ModelResponse, merge_models


logger = logging.getLogger(__name__)

OLLAMA_DEFAULT_PORT = 11434


class LocalMode(str, Enum):
    OLLAMA = "ollama"
    OPENAI = "openai"


_discovered_modes: dict[str, LocalMode] = {}


def forget_discovered_modes() -> None:
    """Drop every remembered protocol so the next client rediscovers the server protocol."""
    _discovered_modes.clear()


def detect_mode(base_url: str) -> LocalMode | None:
    """Guess the server protocol from the URL alone."""
    parts = urlsplit(base_url)
    path = parts.path.rstrip("/")
    try:
        port = parts.port
    except ValueError:
        port = None
    if port == OLLAMA_DEFAULT_PORT or path.endswith("/api"):
        return LocalMode.OLLAMA
    if path.endswith("/v1"):
        return LocalMode.OPENAI
    return None


def root_url(base_url: str) -> str:
    """Server root with any protocol suffix removed."""
    url = base_url.rstrip("/")
    for suffix in ("/api", "/v1"):
        if url.endswith(suffix):
            return url[: -len(suffix)]
    return url


class LocalModelClient(BaseModelClient):
    """Async client for Ollama or OpenAI-compatible local servers, over httpx."""

    def __init__(
        self,
        agent_name: str,
        api_model: str,
        base_url: str | None,
        api_key: str | None = None,
        *,
        label: str | None = None,
        known_models: Iterable[str] = (),
        mode: LocalMode | None = None,
        discovery_timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(agent_name=agent_name, api_model=api_model, label=label, known_models=known_models)
        if not base_url:
            raise ValueError("Missing base URL for local client")

        self.base_url = root_url(base_url)
        self.mode = mode or detect_mode(base_url)
        self._discovered = self.mode is None
        if self.mode is None:
            self.mode = _discovered_modes.get(self.base_url)
        self.discovery_timeout = discovery_timeout

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._http = httpx.AsyncClient(base_url=self.base_url, headers=headers, transport=transport)

    async def _try_mode(self, mode: LocalMode) -> list[str] | None:
        path = "/api/tags" if mode is LocalMode.OLLAMA else "/v1/models"
        try:
            resp = await self._http.get(path, timeout=self.discovery_timeout)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Local %s check at %s failed: %s", mode.value, self.base_url, exc)
            return None

        if mode is LocalMode.OLLAMA:
            entries, field = data.get("models"), "name"
        else:
            entries, field = data.get("data"), "id"
        if not isinstance(entries, list):
            return None
        return [str(entry[field]) for entry in entries if isinstance(entry, dict) and entry.get(field)]

    async def discover(self) -> list[str] | None:
        """Find and cache the protocol the server answers; None when nothing answers."""
        candidates = [self.mode] if self.mode else [LocalMode.OLLAMA, LocalMode.OPENAI]
        for mode in candidates:
            models = await self._try_mode(mode)
            if models is not None:
                self.mode = mode
                if self._discovered:
                    _discovered_modes[self.base_url] = mode
                return models
        return None

    async def list_models(self) -> list[str]:
        models = await self.discover()
        if models is None:
            logger.warning("Failed to fetch local models from %s", self.base_url)
            return list(self.known_models)
        return merge_models(self.known_models, models)

    async def generate(
        self,
        *,
        prompt: str,
        max_tokens: int,
        timeout: float,
        image: ImagePayload | None = None,
    ) -> ModelResponse:
        if self.mode is None and await self.discover() is None:
            self.mode = LocalMode.OPENAI

        started = time.perf_counter()
        try:
            if self.mode is LocalMode.OLLAMA:
                text = await self._generate_ollama(prompt, max_tokens, timeout, image)
            else:
                text = await self._generate_openai(prompt, max_tokens, timeout, image)
        except Exception as exc:
            if self._discovered:
                _discovered_modes.pop(self.base_url, None)
            raise self.error(exc, timeout=timeout) from exc
        elapsed_ms = (time.perf_counter() - started) * 1000

        return ModelResponse(
            text=text.strip(),
            model_name=self.api_model,
            latency_ms=elapsed_ms,
            raw={"mode": self.mode.value},
        )

    async def _generate_ollama(
        self, prompt: str, max_tokens: int, timeout: float, image: ImagePayload | None
    ) -> str:
        payload: dict[str, Any] = {
            "model": self.api_model,
            "prompt": prompt,
            "stream": False,
            "options": {"num_predict": max_tokens},
        }
        if image is not None:
            payload["images"] = [image.data]

        resp = await self._http.post("/api/generate", json=payload, timeout=timeout)
        resp.raise_for_status()
        return str(resp.json().get("response") or "")

    async def _generate_openai(
        self, prompt: str, max_tokens: int, timeout: float, image: ImagePayload | None
    ) -> str:
        if image is None:
            content: Any = prompt
        else:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image.data_uri}},
            ]
        payload = {
            "model": self.api_model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": content}],
        }

        resp = await self._http.post("/v1/chat/completions", json=payload, timeout=timeout)
        resp.raise_for_status()
        choices = resp.json().get("choices") or []
        if not choices:
            return ""
        return str(choices[0].get("message", {}).get("content") or "")

    async def close(self) -> None:
        await self._http.aclose()
