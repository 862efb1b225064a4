"""Fan-out, synthesis and health checks."""

from .calls import AgentCaller
from .health import HEALTH_PROMPT, HealthTester
from .orchestrator import (
    CallOptions,
    Orchestrator,
    OrchestratorConfig,
    SummaryResult,
    load_orchestrator_config,
)
from .results import CallResult, MultiCallResult, SynthesisResult
from .synthesis import ALL_AGENTS_FAILED, Synthesizer

__all__ = [
    "AgentCaller",
    "HEALTH_PROMPT",
    "HealthTester",
    "CallOptions",
    "Orchestrator",
    "OrchestratorConfig",
    "SummaryResult",
    "load_orchestrator_config",
    "CallResult",
    "MultiCallResult",
    "SynthesisResult",
    "ALL_AGENTS_FAILED",
    "Synthesizer",
]
