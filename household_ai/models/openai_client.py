"""OpenAI model client adapter (Chat Completions API)."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Iterable

from household_ai.utils.rate_limiter import TenantRateLimiter

from .base import BaseModelClient, ImagePayload, ModelResponse, merge_models


logger = logging.getLogger(__name__)


class OpenAIModelClient(BaseModelClient):
    """Async wrapper around the OpenAI Python SDK.

    Also serves every OpenAI-compatible endpoint: pass ``base_url`` and, for
    servers that expose non-GPT models, ``model_prefix=None``.
    """

    _rate_limiter = TenantRateLimiter()

    def __init__(
        self,
        agent_name: str,
        api_model: str,
        api_key: str | None,
        *,
        label: str | None = None,
        known_models: Iterable[str] = (),
        base_url: str | None = None,
        extra_headers: dict[str, str] | None = None,
        rpm: int = 60,
        rate_key: str | None = None,
        model_prefix: str | None = "gpt-",
        client: Any | None = None,
    ) -> None:
        super().__init__(agent_name=agent_name, api_model=api_model, label=label, known_models=known_models)
        self.base_url = base_url
        self.extra_headers = extra_headers or {}
        self.rpm = rpm
        self.rate_key = rate_key or agent_name
        self.model_prefix = model_prefix

        if client is not None:
            self._client = client
            return
        if not api_key:
            raise ValueError(f"Missing API key for {self.label} client")
        self._client = self._init_client(api_key)

    def _init_client(self, api_key: str) -> Any:
        try:
            from openai import AsyncOpenAI
        except ImportError as exc:
            raise RuntimeError("openai package is not installed") from exc

        kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if self.base_url:
            kwargs["base_url"] = self.base_url
        if self.extra_headers:
            kwargs["default_headers"] = self.extra_headers

        return AsyncOpenAI(**kwargs)

    def _build_messages(self, prompt: str, image: ImagePayload | None) -> list[dict[str, Any]]:
        if image is None:
            return [{"role": "user", "content": prompt}]
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image.data_uri}},
                ],
            }
        ]

    async def generate(
        self,
        *,
        prompt: str,
        max_tokens: int,
        timeout: float,
        image: ImagePayload | None = None,
    ) -> ModelResponse:
        try:
            await self._rate_limiter.acquire(self.agent_name, self.rate_key, self.rpm)
            started = time.perf_counter()
            response = await self._client.chat.completions.create(
                model=self.api_model,
                messages=self._build_messages(prompt, image),
                max_tokens=max_tokens,
                timeout=timeout,
            )
        except Exception as exc:
            raise self.error(exc, timeout=timeout) from exc
        elapsed_ms = (time.perf_counter() - started) * 1000

        text = (response.choices[0].message.content or "") if response.choices else ""
        usage = getattr(response, "usage", None)
        return ModelResponse(
            text=text.strip(),
            model_name=self.api_model,
            latency_ms=elapsed_ms,
            input_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            output_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
            raw={"id": getattr(response, "id", None)},
        )

    def _normalize_model_id(self, model_id: str) -> str | None:
        if self.model_prefix and not model_id.startswith(self.model_prefix):
            return None
        return model_id

    async def list_models(self) -> list[str]:
        try:
            page = await self._client.models.list()
        except Exception as exc:
            logger.warning("Failed to fetch %s models: %s", self.label, self.error(exc).message)
            return list(self.known_models)

        discovered = []
        for entry in getattr(page, "data", []) or []:
            model_id = self._normalize_model_id(str(getattr(entry, "id", "") or ""))
            if model_id:
                discovered.append(model_id)
        return merge_models(self.known_models, sorted(discovered, reverse=True))

    async def close(self) -> None:
        close_fn = getattr(self._client, "close", None)
        if close_fn is not None:
            maybe_coro = close_fn()
            if asyncio.iscoroutine(maybe_coro):
                await maybe_coro
            return

        await asyncio.sleep(0)
