"""Runtime view of every agent for a tenant, and the writes that change it."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
import json
import logging
from typing import Any, Callable

from household_ai.errors import ConfigurationError
from household_ai.models.base import BaseModelClient
from household_ai.models.catalog import AgentCatalog
from household_ai.models.factory import ClientFactory, build_client
from household_ai.settings.store import SettingsStore, Tenant
from household_ai.utils.timestamps import utc_now

from .config import (
    API_KEY,
    BASE_URL,
    ENABLED,
    LAST_SUCCESS,
    MODEL,
    PRIMARY_AGENT_KEY,
    TEST_RESULT,
    ConfigResolver,
    TenantSnapshot,
)


logger = logging.getLogger(__name__)

DELETE_SENTINEL = "__DELETE__"


@dataclass(slots=True)
class AgentStatus:
    """Derived status of one agent; recomputed on every read."""

    name: str
    display_name: str
    enabled: bool
    configured: bool
    available: bool
    model: str
    default_model: str
    last_success_at: str | None
    last_test: dict[str, Any] | None
    is_primary: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AgentRegistry:
    """Combines stored configuration with provider client bindings.

    Writes go straight to the settings store (last writer wins); reads always
    build a fresh snapshot.
    """

    def __init__(
        self,
        store: SettingsStore,
        catalog: AgentCatalog | None = None,
        *,
        client_factory: ClientFactory | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.resolver = ConfigResolver(store, catalog)
        self.catalog = self.resolver.catalog
        self.client_factory = client_factory or build_client
        self.clock = clock

    def snapshot(self, tenant: Tenant) -> TenantSnapshot:
        return self.resolver.load(tenant)

    def status(self, tenant: Tenant) -> list[AgentStatus]:
        return self.status_from(self.snapshot(tenant))

    def status_from(self, snapshot: TenantSnapshot) -> list[AgentStatus]:
        primary = snapshot.primary
        statuses = []
        for spec in self.catalog:
            config = snapshot.agents[spec.name]
            statuses.append(
                AgentStatus(
                    name=spec.name,
                    display_name=spec.display_name,
                    enabled=config.enabled,
                    configured=config.configured,
                    available=config.available,
                    model=self.resolver.effective_model(spec.name, config),
                    default_model=spec.default_model,
                    last_success_at=config.last_success_at,
                    last_test=config.last_test,
                    is_primary=spec.name == primary,
                )
            )
        return statuses

    def active_agents(self, tenant: Tenant) -> list[str]:
        return self.snapshot(tenant).active_agents()

    def primary_agent(self, tenant: Tenant) -> str | None:
        return self.snapshot(tenant).primary

    def key_status(self, tenant: Tenant) -> dict[str, bool]:
        """Whether each agent has a stored credential; the credential itself is never returned."""
        snapshot = self.snapshot(tenant)
        return {name: config.api_key_set for name, config in snapshot.agents.items()}

    def set_primary(self, tenant: Tenant, name: str) -> None:
        self.resolver.spec(name)
        config = self.snapshot(tenant).agents[name]
        if not config.configured:
            raise ConfigurationError(f"Agent {name} is not configured and cannot be primary")
        self.store.set(tenant, PRIMARY_AGENT_KEY, name)
        logger.info("Tenant %s primary agent set to %s", tenant, name)

    def clear_primary(self, tenant: Tenant) -> None:
        self.store.delete(tenant, PRIMARY_AGENT_KEY)

    def set_enabled(self, tenant: Tenant, name: str, enabled: bool) -> None:
        spec = self.resolver.spec(name)
        self.store.set(tenant, spec.key(ENABLED), "1" if enabled else "0")

    def set_credential(self, tenant: Tenant, name: str, secret: str | None) -> None:
        """Store a credential encrypted; ``DELETE_SENTINEL`` removes it, empty keeps the current one."""
        spec = self.resolver.spec(name)
        if secret == DELETE_SENTINEL:
            self.store.delete(tenant, spec.key(API_KEY))
            logger.info("Tenant %s credential for %s deleted", tenant, name)
            return
        if not secret:
            return
        self.store.set(tenant, spec.key(API_KEY), secret, encrypted=True)

    def set_model(self, tenant: Tenant, name: str, model: str | None) -> None:
        self._set_optional(tenant, self.resolver.spec(name).key(MODEL), model)

    def set_base_url(self, tenant: Tenant, name: str, base_url: str | None) -> None:
        self._set_optional(tenant, self.resolver.spec(name).key(BASE_URL), base_url)

    def _set_optional(self, tenant: Tenant, key: str, value: str | None) -> None:
        value = (value or "").strip()
        if value:
            self.store.set(tenant, key, value)
        else:
            self.store.delete(tenant, key)

    def record_success(self, tenant: Tenant, name: str, at: datetime | None = None) -> str:
        spec = self.resolver.spec(name)
        timestamp = (at or self.clock()).isoformat()
        self.store.set(tenant, spec.key(LAST_SUCCESS), timestamp)
        return timestamp

    def record_test(self, tenant: Tenant, name: str, result: dict[str, Any]) -> None:
        spec = self.resolver.spec(name)
        self.store.set(tenant, spec.key(TEST_RESULT), json.dumps(result, sort_keys=True))

    def build_client(self, snapshot: TenantSnapshot, name: str, model: str | None = None) -> BaseModelClient:
        """Bind the provider client for one agent using the snapshot's configuration."""
        spec = self.resolver.spec(name)
        config = snapshot.agents[name]
        return self.client_factory(spec, config, model or self.resolver.effective_model(name, config))
