"""Provider client construction from an agent spec plus tenant configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from .anthropic_client import AnthropicModelClient
from .base import BaseModelClient
from .catalog import AgentSpec
from .google_client import GoogleModelClient
from .local_client import LocalModelClient
from .openai_client import OpenAIModelClient

if TYPE_CHECKING:
    from household_ai.agents.config import AgentConfig


ClientFactory = Callable[[AgentSpec, "AgentConfig", str], BaseModelClient]


def _anthropic(spec: AgentSpec, config: "AgentConfig", model: str) -> BaseModelClient:
    return AnthropicModelClient(
        agent_name=spec.name,
        api_model=model,
        api_key=config.api_key,
        label=spec.label,
        known_models=spec.known_models,
        base_url=config.base_url,
    )


def _openai(spec: AgentSpec, config: "AgentConfig", model: str) -> BaseModelClient:
    return OpenAIModelClient(
        agent_name=spec.name,
        api_model=model,
        api_key=config.api_key,
        label=spec.label,
        known_models=spec.known_models,
        base_url=config.base_url or spec.default_base_url,
        rpm=spec.rpm,
        rate_key=str(config.tenant),
    )


def _google(spec: AgentSpec, config: "AgentConfig", model: str) -> BaseModelClient:
    return GoogleModelClient(
        agent_name=spec.name,
        api_model=model,
        api_key=config.api_key,
        label=spec.label,
        known_models=spec.known_models,
        base_url=config.base_url or spec.default_base_url,
        rpm=spec.rpm,
        rate_key=str(config.tenant),
    )


def _local(spec: AgentSpec, config: "AgentConfig", model: str) -> BaseModelClient:
    return LocalModelClient(
        agent_name=spec.name,
        api_model=model,
        base_url=config.base_url or spec.default_base_url,
        api_key=config.api_key,
        label=spec.label,
        known_models=spec.known_models,
    )


_CLIENT_REGISTRY: dict[str, ClientFactory] = {
    "anthropic": _anthropic,
    "openai": _openai,
    "google": _google,
    "local": _local,
}


def get_registered_providers() -> list[str]:
    """Return list of registered provider protocols."""
    return list(_CLIENT_REGISTRY.keys())


def build_client(spec: AgentSpec, config: "AgentConfig", model: str) -> BaseModelClient:
    """Bind a provider client to one agent's tenant configuration."""
    factory = _CLIENT_REGISTRY.get(spec.provider)
    if factory is None:
        raise ValueError(f"No client registered for provider={spec.provider}")
    return factory(spec, config, model)
