"""Abstract async provider client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass, field
from typing import Any, Iterable

from household_ai.errors import ProviderError


RETRYABLE_STATUS_CODES = frozenset({408, 409, 429, 500, 502, 503, 504, 529})


@dataclass(frozen=True, slots=True)
class ImagePayload:
    """Base64-encoded image sent alongside a prompt."""

    data: str
    mime_type: str = "image/jpeg"

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(slots=True)
class ModelResponse:
    """Normalized model response payload."""

    text: str
    model_name: str
    latency_ms: float
    input_tokens: int = 0
    output_tokens: int = 0
    raw: dict[str, Any] = field(default_factory=dict)


class BaseModelClient(ABC):
    """Base class for provider-specific async clients.

    A client talks to exactly one upstream protocol. ``generate`` either
    returns a ``ModelResponse`` or raises ``ProviderError``; no SDK or
    transport exception escapes it.
    """

    def __init__(
        self,
        agent_name: str,
        api_model: str,
        *,
        label: str | None = None,
        known_models: Iterable[str] = (),
    ) -> None:
        self.agent_name = agent_name
        self.api_model = api_model
        self.label = label or agent_name
        self.known_models = list(known_models)

    @abstractmethod
    async def generate(
        self,
        *,
        prompt: str,
        max_tokens: int,
        timeout: float,
        image: ImagePayload | None = None,
    ) -> ModelResponse:
        """Perform one call and return the raw text."""

    async def list_models(self) -> list[str]:
        """Models this agent can use; providers with a listing endpoint override this."""
        return list(self.known_models)

    def error(self, exc: BaseException, *, timeout: float | None = None) -> ProviderError:
        return translate_error(exc, label=self.label, agent=self.agent_name, timeout=timeout)

    async def close(self) -> None:
        """Optional resource cleanup hook."""
        return None


def merge_models(preferred: Iterable[str], discovered: Iterable[str]) -> list[str]:
    """Concatenate model lists keeping first occurrence order."""
    merged: list[str] = []
    for model in [*preferred, *discovered]:
        if model and model not in merged:
            merged.append(model)
    return merged


def _error_detail(exc: BaseException) -> str | None:
    body = getattr(exc, "body", None)
    if body is None:
        response = getattr(exc, "response", None)
        if response is not None:
            try:
                body = response.json()
            except ValueError:
                body = None

    if isinstance(body, dict):
        err = body.get("error", body)
        if isinstance(err, dict):
            message = err.get("message")
            return str(message) if message else None
        if isinstance(err, str):
            return err
    return None


def translate_error(
    exc: BaseException,
    *,
    label: str,
    agent: str | None = None,
    timeout: float | None = None,
) -> ProviderError:
    """Map SDK, httpx and asyncio failures onto a provider-agnostic ``ProviderError``."""
    if isinstance(exc, ProviderError):
        return exc

    type_name = type(exc).__name__.lower()
    if isinstance(exc, asyncio.TimeoutError) or "timeout" in type_name:
        detail = f"Request timed out after {timeout:g}s" if timeout else "Request timed out"
        return ProviderError(f"{label}: {detail}", agent=agent, retryable=True)

    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    if isinstance(status, int):
        detail = _error_detail(exc)
        detail = f"HTTP {status}: {detail}" if detail else f"API error: HTTP {status}"
        return ProviderError(
            f"{label}: {detail}",
            agent=agent,
            status_code=status,
            retryable=status in RETRYABLE_STATUS_CODES,
        )

    retryable = "connect" in type_name or isinstance(exc, ConnectionError)
    detail = str(exc) or type(exc).__name__
    return ProviderError(f"{label}: {detail}", agent=agent, retryable=retryable)
