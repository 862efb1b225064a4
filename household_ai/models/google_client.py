"""Google Gemini model client adapter.

Uses the OpenAI-compatible Chat Completions endpoint Google exposes for
Gemini instead of a separate SDK.
"""

from __future__ import annotations

from typing import Any, Iterable

from .openai_client import OpenAIModelClient


GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


class GoogleModelClient(OpenAIModelClient):
    """Async Gemini client using the OpenAI-compatible endpoint."""

    def __init__(
        self,
        agent_name: str,
        api_model: str,
        api_key: str | None,
        *,
        label: str | None = None,
        known_models: Iterable[str] = (),
        base_url: str | None = None,
        rpm: int = 60,
        rate_key: str | None = None,
        client: Any | None = None,
    ) -> None:
        super().__init__(
            agent_name=agent_name,
            api_model=api_model,
            api_key=api_key,
            label=label,
            known_models=known_models,
            base_url=base_url or GEMINI_OPENAI_BASE_URL,
            rpm=rpm,
            rate_key=rate_key,
            model_prefix=None,
            client=client,
        )

    def _normalize_model_id(self, model_id: str) -> str | None:
        # Listing returns "models/gemini-1.5-pro"; only generative models are useful here.
        name = model_id.removeprefix("models/")
        if not name.startswith("gemini"):
            return None
        return name
