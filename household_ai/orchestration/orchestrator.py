"""Concurrent fan-out over a tenant's active agents."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, fields, replace
import logging
from pathlib import Path
import time
from typing import Any

import yaml

from household_ai.agents.config import TenantSnapshot
from household_ai.agents.registry import AgentRegistry
from household_ai.consensus.evaluator import ConsensusEvaluator, KeyFunction
from household_ai.errors import AvailabilityError, FanOutTimeout
from household_ai.models.base import ImagePayload
from household_ai.parsing import ResponseParser
from household_ai.settings.store import Tenant

from .calls import AgentCaller
from .health import HealthTester
from .results import CallResult, MultiCallResult, SynthesisResult
from .synthesis import SummaryOutcome, Synthesizer, successful_responses


@dataclass(slots=True)
class OrchestratorConfig:
    """Timeouts and retry policy for orchestrator calls."""

    default_timeout_seconds: float = 30.0
    image_timeout_seconds: float = 90.0
    synthesis_timeout_seconds: float = 60.0
    synthesis_max_tokens: int = 2048
    health_timeout_seconds: float = 15.0
    max_tokens: int = 1024
    max_retries: int = 0
    retry_base_delay_seconds: float = 1.0
    overall_timeout_seconds: float | None = None


def load_orchestrator_config(
    *,
    config_path: Path | None = None,
    raw_config: dict[str, Any] | None = None,
) -> OrchestratorConfig:
    """Load orchestrator settings from YAML (top-level or under ``orchestrator:``)."""
    if raw_config is None:
        if config_path is None:
            return OrchestratorConfig()
        raw_config = yaml.safe_load(Path(config_path).read_text(encoding="utf-8")) or {}

    section = raw_config.get("orchestrator", raw_config)
    known = {f.name for f in fields(OrchestratorConfig)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown orchestrator settings: {', '.join(unknown)}")
    return OrchestratorConfig(**section)


@dataclass(slots=True)
class CallOptions:
    """Per-invocation overrides; unset values fall back to ``OrchestratorConfig``."""

    model: str | None = None
    max_tokens: int | None = None
    timeout: float | None = None
    image: ImagePayload | None = None
    retries: int | None = None


@dataclass(slots=True)
class SummaryResult:
    summary: str | None
    summary_agent: str | None
    summary_error: str | None
    agents: MultiCallResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "summary_agent": self.summary_agent,
            "summary_error": self.summary_error,
            "agents": self.agents.to_dict(),
        }


class Orchestrator:
    """Single and multi-agent call APIs for one process, shared by all tenants.

    Each invocation reads one configuration snapshot and never sees later edits.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        config: OrchestratorConfig | None = None,
        *,
        parser: ResponseParser | None = None,
        evaluator: ConsensusEvaluator | None = None,
        synthesizer: Synthesizer | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.registry = registry
        self.config = config or OrchestratorConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.parser = parser or ResponseParser()
        self.evaluator = evaluator or ConsensusEvaluator()
        self.synthesizer = synthesizer or Synthesizer(self.parser, logger=self.logger)
        self.caller = AgentCaller(
            registry,
            retry_base_delay=self.config.retry_base_delay_seconds,
            logger=self.logger,
        )
        self.health = HealthTester(
            registry,
            timeout=self.config.health_timeout_seconds,
            caller=self.caller,
            logger=self.logger,
        )

    def is_available(self, tenant: Tenant) -> bool:
        return bool(self.registry.active_agents(tenant))

    def _timeout_for(self, options: CallOptions) -> float:
        if options.timeout is not None:
            return options.timeout
        if options.image is not None:
            return self.config.image_timeout_seconds
        return self.config.default_timeout_seconds

    async def _invoke(
        self,
        snapshot: TenantSnapshot,
        name: str,
        prompt: str,
        options: CallOptions,
    ) -> CallResult:
        config = snapshot.agents[name]
        if not config.enabled:
            return self.caller.failure(name, f"Agent {name} is disabled")
        if not config.configured:
            return self.caller.failure(name, f"Agent {name} is not configured")

        result = await self.caller.execute(
            snapshot,
            name,
            prompt,
            max_tokens=options.max_tokens or self.config.max_tokens,
            timeout=self._timeout_for(options),
            image=options.image,
            model=options.model,
            retries=self.config.max_retries if options.retries is None else options.retries,
        )
        if result.success:
            self.registry.record_success(snapshot.tenant, name)
        return result

    async def call_agent(
        self,
        tenant: Tenant,
        name: str,
        prompt: str,
        options: CallOptions | None = None,
    ) -> CallResult:
        """Call one agent; unknown names raise ``ConfigurationError``."""
        self.registry.resolver.spec(name)
        snapshot = self.registry.snapshot(tenant)
        return await self._invoke(snapshot, name, prompt, options or CallOptions())

    async def call_active_agents(
        self,
        tenant: Tenant,
        prompt: str,
        options: CallOptions | None = None,
    ) -> MultiCallResult:
        snapshot = self.registry.snapshot(tenant)
        return await self._fan_out(snapshot, prompt, options or CallOptions())

    async def _fan_out(self, snapshot: TenantSnapshot, prompt: str, options: CallOptions) -> MultiCallResult:
        active = snapshot.active_agents()
        if not active:
            return MultiCallResult(agents={}, primary=snapshot.primary, total_duration_ms=0, available=False)

        started = time.perf_counter()
        gathered = asyncio.gather(*[self._invoke(snapshot, name, prompt, options) for name in active])
        deadline = self.config.overall_timeout_seconds
        if deadline is None:
            results = await gathered
        else:
            try:
                results = await asyncio.wait_for(gathered, timeout=deadline)
            except asyncio.TimeoutError as exc:
                raise FanOutTimeout(f"Agents did not finish within {deadline:g}s") from exc

        multi = MultiCallResult(
            agents=dict(zip(active, results)),
            primary=snapshot.primary,
            total_duration_ms=int((time.perf_counter() - started) * 1000),
        )
        self.logger.info(
            "Fan-out tenant=%s agents=%d succeeded=%d duration_ms=%d",
            snapshot.tenant,
            len(active),
            len(multi.succeeded),
            multi.total_duration_ms,
        )
        return multi

    def _secondary_call(self, snapshot: TenantSnapshot, options: CallOptions):
        secondary = replace(
            options,
            model=None,
            image=None,
            timeout=self.config.synthesis_timeout_seconds,
            max_tokens=self.config.synthesis_max_tokens,
        )

        async def _call(agent: str, prompt: str) -> CallResult:
            return await self._invoke(snapshot, agent, prompt, secondary)

        return _call

    async def analyze_with_synthesis(
        self,
        tenant: Tenant,
        prompt: str,
        options: CallOptions | None = None,
        *,
        image: ImagePayload | None = None,
        key: KeyFunction | None = None,
        synthesis_template: str | None = None,
    ) -> SynthesisResult:
        """Fan out, parse each response, reconcile, then measure agreement across all agents."""
        options = options or CallOptions()
        if image is not None:
            options = replace(options, image=image)

        started = time.perf_counter()
        snapshot = self.registry.snapshot(tenant)
        if not snapshot.active_agents():
            raise AvailabilityError()

        multi = await self._fan_out(snapshot, prompt, options)
        candidates = {
            name: self.parser.parse(text, agent=name)
            for name, text in successful_responses(multi).items()
        }
        outcome = await self.synthesizer.synthesize(
            prompt=prompt,
            multi=multi,
            candidates=candidates,
            call=self._secondary_call(snapshot, options),
            template=synthesis_template,
        )

        evaluator = ConsensusEvaluator(key) if key is not None else self.evaluator
        consensus = evaluator.evaluate(candidates.values(), total_agents=len(candidates))

        result = SynthesisResult(
            synthesized=outcome.synthesized,
            candidates=list(candidates.values()),
            synthesis_agent=outcome.synthesis_agent,
            synthesis_error=outcome.synthesis_error,
            fallback_agent=outcome.fallback_agent,
            consensus=consensus,
            parse_source=outcome.parse_source,
            agents=multi,
            total_duration_ms=int((time.perf_counter() - started) * 1000),
            fields=outcome.fields,
        )
        self.logger.info(
            "Synthesis tenant=%s agent=%s fallback=%s consensus=%s (%d/%d)",
            tenant,
            result.synthesis_agent,
            result.fallback_agent,
            consensus.level.value,
            consensus.agents_agreeing,
            consensus.total_agents,
        )
        return result

    async def call_active_agents_with_summary(
        self,
        tenant: Tenant,
        prompt: str,
        options: CallOptions | None = None,
    ) -> SummaryResult:
        """Fan out and have the chosen agent write a free-text summary."""
        options = options or CallOptions()
        snapshot = self.registry.snapshot(tenant)
        multi = await self._fan_out(snapshot, prompt, options)
        if not multi.available:
            return SummaryResult(None, None, None, multi)

        outcome: SummaryOutcome = await self.synthesizer.summarize(
            prompt=prompt,
            multi=multi,
            call=self._secondary_call(snapshot, options),
        )
        return SummaryResult(outcome.summary, outcome.summary_agent, outcome.summary_error, multi)

    async def test_agent(self, tenant: Tenant, name: str) -> CallResult:
        return await self.health.test(tenant, name)

    async def list_models(self, tenant: Tenant, name: str) -> list[str]:
        """Models offered by the agent's provider, or the catalog's list when it cannot be reached."""
        spec = self.registry.resolver.spec(name)
        snapshot = self.registry.snapshot(tenant)
        if not snapshot.agents[name].configured:
            return list(spec.known_models)
        client = self.registry.build_client(snapshot, name)
        try:
            return await client.list_models()
        finally:
            await client.close()
