"""Value objects returned by the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from household_ai.consensus.base import ConsensusInfo
from household_ai.parsing import ParsedCandidate, ParseSource


@dataclass(frozen=True, slots=True)
class CallResult:
    """Outcome of one agent call. ``success`` holds exactly when ``error`` is None."""

    agent: str
    success: bool
    response: str | None
    error: str | None
    duration_ms: int
    timestamp: str
    model: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent": self.agent,
            "success": self.success,
            "response": self.response,
            "error": self.error,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp,
            "model": self.model,
        }


@dataclass(frozen=True, slots=True)
class MultiCallResult:
    """Per-agent results of one fan-out, keyed in catalog order."""

    agents: dict[str, CallResult]
    primary: str | None
    total_duration_ms: int
    available: bool = True

    @property
    def succeeded(self) -> list[str]:
        return [name for name, result in self.agents.items() if result.success]

    @property
    def agent_errors(self) -> dict[str, str]:
        return {name: result.error for name, result in self.agents.items() if result.error is not None}

    @property
    def success(self) -> bool:
        return bool(self.succeeded)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agents": {name: result.to_dict() for name, result in self.agents.items()},
            "primary": self.primary,
            "total_duration_ms": self.total_duration_ms,
            "available": self.available,
        }


@dataclass(frozen=True, slots=True)
class SynthesisResult:
    """Reconciled answer plus the data needed to explain partial success."""

    synthesized: str | None
    candidates: list[ParsedCandidate]
    synthesis_agent: str | None
    synthesis_error: str | None
    fallback_agent: str | None
    consensus: ConsensusInfo
    parse_source: ParseSource | None
    agents: MultiCallResult
    total_duration_ms: int
    fields: list[Any] | dict[str, Any] | None = None

    @property
    def agent_errors(self) -> dict[str, str]:
        return self.agents.agent_errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "synthesized": self.synthesized,
            "fields": self.fields,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "synthesis_agent": self.synthesis_agent,
            "synthesis_error": self.synthesis_error,
            "fallback_agent": self.fallback_agent,
            "consensus": self.consensus.to_dict(),
            "parse_source": self.parse_source.value if self.parse_source else None,
            "agents": self.agents.to_dict(),
            "agent_errors": self.agent_errors,
            "total_duration_ms": self.total_duration_ms,
        }
