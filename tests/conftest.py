"""Shared fixtures: in-memory settings and scripted provider clients."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from household_ai.agents.registry import AgentRegistry
from household_ai.models.base import BaseModelClient, ImagePayload, ModelResponse
from household_ai.orchestration.orchestrator import Orchestrator, OrchestratorConfig
from household_ai.settings.store import InMemorySettingsStore


class StubClient(BaseModelClient):
    """Provider client whose behavior is scripted by ``StubProviders``."""

    def __init__(self, providers: "StubProviders", agent_name: str, api_model: str, label: str) -> None:
        super().__init__(agent_name=agent_name, api_model=api_model, label=label)
        self.providers = providers

    async def generate(
        self,
        *,
        prompt: str,
        max_tokens: int,
        timeout: float,
        image: ImagePayload | None = None,
    ) -> ModelResponse:
        self.providers.calls.append(
            {"agent": self.agent_name, "model": self.api_model, "prompt": prompt, "max_tokens": max_tokens, "image": image}
        )
        delay = self.providers.delays.get(self.agent_name, 0.0)
        if delay:
            await asyncio.sleep(delay)

        script = self.providers.scripts.get(self.agent_name, "ok")
        if callable(script):
            script = script(prompt)
        if isinstance(script, BaseException):
            raise script
        return ModelResponse(text=script, model_name=self.api_model, latency_ms=1.0)

    async def list_models(self) -> list[str]:
        return [self.api_model, "stub-extra"]

    async def close(self) -> None:
        self.providers.closed.append(self.agent_name)


class StubProviders:
    """Client factory with one scripted reply, exception or callable per agent."""

    def __init__(self) -> None:
        self.scripts: dict[str, Any] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[dict[str, Any]] = []
        self.closed: list[str] = []

    def script(self, agent: str, reply: str | BaseException | Callable[[str], Any]) -> None:
        self.scripts[agent] = reply

    def calls_for(self, agent: str) -> list[dict[str, Any]]:
        return [call for call in self.calls if call["agent"] == agent]

    def __call__(self, spec, config, model) -> StubClient:
        return StubClient(self, spec.name, model, spec.label)


@pytest.fixture
def store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture
def providers() -> StubProviders:
    return StubProviders()


@pytest.fixture
def registry(store: InMemorySettingsStore, providers: StubProviders) -> AgentRegistry:
    return AgentRegistry(store, client_factory=providers)


@pytest.fixture
def orchestrator(registry: AgentRegistry) -> Orchestrator:
    return Orchestrator(registry, OrchestratorConfig(retry_base_delay_seconds=0.0))


@pytest.fixture
def activate(registry: AgentRegistry) -> Callable[..., None]:
    """Enable and configure agents for a tenant; local gets a base URL, the rest a key."""

    def _activate(tenant: Any, *names: str, primary: str | None = None) -> None:
        for name in names:
            if name == "local":
                registry.set_base_url(tenant, name, "http://localhost:11434")
            else:
                registry.set_credential(tenant, name, f"sk-{name}-test")
            registry.set_enabled(tenant, name, True)
        if primary is not None:
            registry.set_primary(tenant, primary)

    return _activate
