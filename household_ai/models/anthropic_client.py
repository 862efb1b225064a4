"""Anthropic model client adapter."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Iterable

from .base import BaseModelClient, ImagePayload, ModelResponse


class AnthropicModelClient(BaseModelClient):
    """Async wrapper around the official anthropic SDK (Messages API)."""

    def __init__(
        self,
        agent_name: str,
        api_model: str,
        api_key: str | None,
        *,
        label: str | None = None,
        known_models: Iterable[str] = (),
        base_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        super().__init__(agent_name=agent_name, api_model=api_model, label=label, known_models=known_models)
        self.base_url = base_url

        if client is not None:
            self._client = client
            return
        if not api_key:
            raise ValueError("Missing API key for Anthropic client")
        try:
            from anthropic import AsyncAnthropic
        except ImportError as exc:
            raise RuntimeError("anthropic package is not installed") from exc

        kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if base_url:
            kwargs["base_url"] = base_url
        self._client = AsyncAnthropic(**kwargs)

    async def generate(
        self,
        *,
        prompt: str,
        max_tokens: int,
        timeout: float,
        image: ImagePayload | None = None,
    ) -> ModelResponse:
        content: list[dict[str, Any]] = []
        if image is not None:
            content.append(
                {
                    "type": "image",
                    "source": {"type": "base64", "media_type": image.mime_type, "data": image.data},
                }
            )
        content.append({"type": "text", "text": prompt})

        started = time.perf_counter()
        try:
            response = await self._client.messages.create(
                model=self.api_model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": content}],
                timeout=timeout,
            )
        except Exception as exc:
            raise self.error(exc, timeout=timeout) from exc
        elapsed_ms = (time.perf_counter() - started) * 1000

        text_chunks = []
        for chunk in response.content:
            if getattr(chunk, "type", None) == "text":
                text_chunks.append(chunk.text)

        usage = getattr(response, "usage", None)
        return ModelResponse(
            text="\n".join(text_chunks).strip(),
            model_name=self.api_model,
            latency_ms=elapsed_ms,
            input_tokens=int(getattr(usage, "input_tokens", 0) or 0),
            output_tokens=int(getattr(usage, "output_tokens", 0) or 0),
            raw={"id": getattr(response, "id", None)},
        )

    async def close(self) -> None:
        close_fn = getattr(self._client, "close", None)
        if close_fn is not None:
            maybe_coro = close_fn()
            if asyncio.iscoroutine(maybe_coro):
                await maybe_coro
            return

        await asyncio.sleep(0)
