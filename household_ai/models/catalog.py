"""Agent catalog loading and normalization.

The catalog is the typed defaults table for every supported agent: which
provider protocol it speaks, its default model and base URL, and the prefix
of its keys in the settings store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

import yaml


DEFAULT_CATALOG_PATH = Path(__file__).with_name("agents.yaml")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google", "local")


@dataclass(frozen=True, slots=True)
class AgentSpec:
    """Static description of one agent."""

    name: str
    display_name: str
    label: str
    provider: str
    settings_prefix: str
    default_model: str
    default_base_url: str | None = None
    requires_api_key: bool = True
    rpm: int = 60
    known_models: tuple[str, ...] = field(default_factory=tuple)

    def key(self, suffix: str) -> str:
        """Settings key for this agent, e.g. ``anthropic_api_key``."""
        return f"{self.settings_prefix}_{suffix}"


@dataclass(frozen=True, slots=True)
class AgentCatalog:
    """Ordered collection of agent specs."""

    agents: tuple[AgentSpec, ...]

    def __iter__(self) -> Iterator[AgentSpec]:
        return iter(self.agents)

    def __len__(self) -> int:
        return len(self.agents)

    def __contains__(self, name: object) -> bool:
        return any(spec.name == name for spec in self.agents)

    @property
    def names(self) -> list[str]:
        return [spec.name for spec in self.agents]

    def get(self, name: str) -> AgentSpec | None:
        for spec in self.agents:
            if spec.name == name:
                return spec
        return None


def _normalize_agent_entry(name: str, entry: dict[str, Any]) -> AgentSpec:
    provider = str(entry["provider"])
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported provider '{provider}' for agent '{name}'")

    default_model = entry.get("default_model") or entry.get("model")
    if not default_model:
        raise ValueError(f"Agent '{name}' has no default_model")

    known = [str(model) for model in entry.get("known_models", [])]
    if str(default_model) not in known:
        known.insert(0, str(default_model))

    return AgentSpec(
        name=name,
        display_name=str(entry.get("display_name", name)),
        label=str(entry.get("label", entry.get("display_name", name))),
        provider=provider,
        settings_prefix=str(entry.get("settings_prefix", name)),
        default_model=str(default_model),
        default_base_url=entry.get("default_base_url"),
        requires_api_key=bool(entry.get("requires_api_key", True)),
        rpm=int(entry.get("rpm", entry.get("rpm_limit", 60))),
        known_models=tuple(known),
    )


def load_agent_catalog(*, config_path: Path | None = None, raw_config: dict[str, Any] | None = None) -> AgentCatalog:
    """Load and normalize the agent catalog; the bundled catalog is used by default."""
    if raw_config is None:
        path = config_path or DEFAULT_CATALOG_PATH
        raw_config = yaml.safe_load(path.read_text(encoding="utf-8"))

    if not isinstance(raw_config, dict) or not isinstance(raw_config.get("agents"), dict):
        raise ValueError("Agent catalog must be a mapping with an 'agents' mapping")

    specs = [_normalize_agent_entry(str(name), entry or {}) for name, entry in raw_config["agents"].items()]
    if not specs:
        raise ValueError("Agent catalog defines no agents")

    prefixes = [spec.settings_prefix for spec in specs]
    duplicates = sorted({prefix for prefix in prefixes if prefixes.count(prefix) > 1})
    if duplicates:
        raise ValueError(f"Agents must not share settings prefixes; found: {duplicates}")

    return AgentCatalog(agents=tuple(specs))
