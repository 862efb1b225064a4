"""Single provider call with timing, timeout, retries and error capture."""

from __future__ import annotations

import asyncio
import logging
import time

from household_ai.agents.config import TenantSnapshot
from household_ai.agents.registry import AgentRegistry
from household_ai.errors import ProviderError
from household_ai.models.base import BaseModelClient, ImagePayload, translate_error
from household_ai.utils.rate_limiter import retry_with_backoff

from .results import CallResult


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable


class AgentCaller:
    """Runs one call against one agent and always returns a ``CallResult``.

    ``CancelledError`` propagates; every other failure becomes a failed result.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        *,
        retry_base_delay: float = 1.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.registry = registry
        self.retry_base_delay = retry_base_delay
        self.logger = logger or logging.getLogger(__name__)

    def failure(self, name: str, error: str, *, duration_ms: int = 0, model: str | None = None) -> CallResult:
        return CallResult(
            agent=name,
            success=False,
            response=None,
            error=error,
            duration_ms=duration_ms,
            timestamp=self.registry.clock().isoformat(),
            model=model,
        )

    async def execute(
        self,
        snapshot: TenantSnapshot,
        name: str,
        prompt: str,
        *,
        max_tokens: int,
        timeout: float,
        image: ImagePayload | None = None,
        model: str | None = None,
        retries: int = 0,
    ) -> CallResult:
        spec = self.registry.resolver.spec(name)
        model = model or self.registry.resolver.effective_model(name, snapshot.agents[name])
        started = time.perf_counter()
        client: BaseModelClient | None = None

        try:
            client = self.registry.build_client(snapshot, name, model)

            async def _attempt():
                try:
                    return await asyncio.wait_for(
                        client.generate(prompt=prompt, max_tokens=max_tokens, timeout=timeout, image=image),
                        timeout=timeout,
                    )
                except asyncio.TimeoutError as exc:
                    raise client.error(exc, timeout=timeout) from exc

            response = await retry_with_backoff(
                _attempt,
                max_retries=retries,
                base_delay=self.retry_base_delay,
                should_retry=_is_retryable,
                on_retry=lambda attempt, exc, delay: self.logger.info(
                    "Retrying agent %s (attempt %d) in %.2fs: %s", name, attempt + 1, delay, exc
                ),
            )
        except Exception as exc:
            error = translate_error(exc, label=spec.label, agent=name, timeout=timeout)
            duration_ms = int((time.perf_counter() - started) * 1000)
            self.logger.warning("Agent %s call failed after %dms: %s", name, duration_ms, error.message)
            return self.failure(name, error.message, duration_ms=duration_ms, model=model)
        finally:
            if client is not None:
                await client.close()

        duration_ms = int((time.perf_counter() - started) * 1000)
        return CallResult(
            agent=name,
            success=True,
            response=response.text,
            error=None,
            duration_ms=duration_ms,
            timestamp=self.registry.clock().isoformat(),
            model=response.model_name or model,
        )
