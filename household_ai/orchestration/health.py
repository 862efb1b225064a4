"""On-demand connectivity check for one agent."""

from __future__ import annotations

import logging
from typing import Any

from household_ai.agents.registry import AgentRegistry
from household_ai.settings.store import Tenant

from .calls import AgentCaller
from .results import CallResult


HEALTH_PROMPT = 'Respond with only the word "OK" and nothing else.'
DEFAULT_HEALTH_TIMEOUT_SECONDS = 15.0
HEALTH_MAX_TOKENS = 16


class HealthTester:
    """Sends a canned prompt and persists the outcome as the agent's last test.

    Runs for disabled agents too, so a credential can be checked before the
    agent is switched on.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        *,
        timeout: float = DEFAULT_HEALTH_TIMEOUT_SECONDS,
        caller: AgentCaller | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.registry = registry
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.caller = caller or AgentCaller(registry, logger=self.logger)

    async def test(self, tenant: Tenant, name: str) -> CallResult:
        self.registry.resolver.spec(name)
        snapshot = self.registry.snapshot(tenant)
        config = snapshot.agents[name]
        if not config.configured:
            return self.caller.failure(name, f"Agent {name} is not configured")

        result = await self.caller.execute(
            snapshot,
            name,
            HEALTH_PROMPT,
            max_tokens=HEALTH_MAX_TOKENS,
            timeout=self.timeout,
        )

        record: dict[str, Any] = {"success": result.success, "tested_at": result.timestamp}
        if result.success:
            record["response_time_ms"] = result.duration_ms
            record["model"] = result.model
            self.registry.record_success(tenant, name)
        else:
            record["error"] = result.error
        self.registry.record_test(tenant, name, record)

        self.logger.info(
            "Health test tenant=%s agent=%s success=%s duration_ms=%d",
            tenant,
            name,
            result.success,
            result.duration_ms,
        )
        return result
