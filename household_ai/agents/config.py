"""Per-tenant agent configuration resolved from the settings store."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from types import MappingProxyType
from typing import Any, Mapping

from household_ai.errors import ConfigurationError
from household_ai.models.catalog import AgentCatalog, AgentSpec, load_agent_catalog
from household_ai.settings.store import SettingsStore, Tenant


logger = logging.getLogger(__name__)

PRIMARY_AGENT_KEY = "ai_primary_agent"
LEGACY_PROVIDER_KEY = "ai_provider"
LEGACY_MODEL_KEY = "ai_model"

ENABLED = "enabled"
API_KEY = "api_key"
BASE_URL = "base_url"
MODEL = "model"
LAST_SUCCESS = "last_success"
TEST_RESULT = "test_result"

AGENT_KEY_SUFFIXES = (ENABLED, API_KEY, BASE_URL, MODEL, LAST_SUCCESS, TEST_RESULT)

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class AgentConfig:
    """One agent's stored configuration for one tenant."""

    tenant: Tenant
    name: str
    enabled: bool = False
    api_key: str | None = field(default=None, repr=False)
    base_url: str | None = None
    model: str | None = None
    last_success_at: str | None = None
    last_test: dict[str, Any] | None = None
    requires_api_key: bool = True

    @property
    def api_key_set(self) -> bool:
        return bool(self.api_key)

    @property
    def configured(self) -> bool:
        # Servers without authentication are configured by their URL.
        if self.requires_api_key:
            return self.api_key_set
        return bool(self.base_url)

    @property
    def available(self) -> bool:
        return self.enabled and self.configured

    def redacted(self) -> dict[str, Any]:
        """Serializable view with the credential reduced to a flag."""
        return {
            "name": self.name,
            "enabled": self.enabled,
            "api_key_set": self.api_key_set,
            "base_url": self.base_url,
            "model": self.model,
        }


@dataclass(frozen=True, slots=True)
class TenantSnapshot:
    """Read-only view of every agent's configuration, taken once per invocation."""

    tenant: Tenant
    agents: Mapping[str, AgentConfig]
    stored_primary: str | None = None

    def active_agents(self) -> list[str]:
        """Enabled and configured agents, in catalog order."""
        return [name for name, config in self.agents.items() if config.available]

    @property
    def primary(self) -> str | None:
        if self.stored_primary and self.stored_primary in self.agents:
            return self.stored_primary
        active = self.active_agents()
        if len(active) == 1:
            return active[0]
        return None

    def get(self, name: str) -> AgentConfig | None:
        return self.agents.get(name)


class ConfigResolver:
    """Loads agent configuration snapshots and resolves effective models."""

    def __init__(self, store: SettingsStore, catalog: AgentCatalog | None = None) -> None:
        self.store = store
        self.catalog = catalog or load_agent_catalog()

    def spec(self, name: str) -> AgentSpec:
        spec = self.catalog.get(name)
        if spec is None:
            raise ConfigurationError(f"Unknown agent: {name}")
        return spec

    def keys_for(self, spec: AgentSpec) -> list[str]:
        return [spec.key(suffix) for suffix in AGENT_KEY_SUFFIXES]

    def load(self, tenant: Tenant) -> TenantSnapshot:
        keys = [PRIMARY_AGENT_KEY, LEGACY_PROVIDER_KEY, LEGACY_MODEL_KEY]
        for spec in self.catalog:
            keys.extend(self.keys_for(spec))
        values = self.store.get_many(tenant, keys)
        self._migrate_legacy(tenant, values)

        agents: dict[str, AgentConfig] = {}
        for spec in self.catalog:
            agents[spec.name] = AgentConfig(
                tenant=tenant,
                name=spec.name,
                enabled=(values.get(spec.key(ENABLED)) or "").strip().lower() in _TRUE_VALUES,
                api_key=values.get(spec.key(API_KEY)) or None,
                base_url=values.get(spec.key(BASE_URL)) or None,
                model=values.get(spec.key(MODEL)) or None,
                last_success_at=values.get(spec.key(LAST_SUCCESS)) or None,
                last_test=self._decode_test_result(spec.name, values.get(spec.key(TEST_RESULT))),
                requires_api_key=spec.requires_api_key,
            )

        return TenantSnapshot(
            tenant=tenant,
            agents=MappingProxyType(agents),
            stored_primary=values.get(PRIMARY_AGENT_KEY) or None,
        )

    def effective_model(self, name: str, config: AgentConfig | None = None) -> str:
        """Model override when set, otherwise the catalog default."""
        if config is not None and config.model:
            return config.model
        return self.spec(name).default_model

    def migrate_legacy(self, tenant: Tenant) -> None:
        keys = [PRIMARY_AGENT_KEY, LEGACY_PROVIDER_KEY, LEGACY_MODEL_KEY]
        keys.extend(spec.key(ENABLED) for spec in self.catalog)
        self._migrate_legacy(tenant, self.store.get_many(tenant, keys))

    def _migrate_legacy(self, tenant: Tenant, values: dict[str, str | None]) -> None:
        """Enable the single provider chosen by pre-multi-agent settings.

        Only applies while no primary is stored and no agent is enabled.
        """
        legacy = (values.get(LEGACY_PROVIDER_KEY) or "none").strip()
        if legacy == "none" or values.get(PRIMARY_AGENT_KEY):
            return
        spec = self.catalog.get(legacy)
        if spec is None:
            return
        if any((values.get(s.key(ENABLED)) or "").strip().lower() in _TRUE_VALUES for s in self.catalog):
            return

        logger.info("Migrating tenant %s from legacy provider %s", tenant, legacy)
        self.store.set(tenant, spec.key(ENABLED), "1")
        values[spec.key(ENABLED)] = "1"
        self.store.set(tenant, PRIMARY_AGENT_KEY, legacy)
        values[PRIMARY_AGENT_KEY] = legacy

        legacy_model = values.get(LEGACY_MODEL_KEY)
        if legacy_model:
            self.store.set(tenant, spec.key(MODEL), legacy_model)
            values[spec.key(MODEL)] = legacy_model

    @staticmethod
    def _decode_test_result(name: str, raw: str | None) -> dict[str, Any] | None:
        if not raw:
            return None
        try:
            decoded = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed stored test result for agent %s", name)
            return None
        return decoded if isinstance(decoded, dict) else None
