"""Error taxonomy for the orchestration core."""

from __future__ import annotations


NOT_CONFIGURED_MESSAGE = "AI is not configured. Please configure an AI provider in Settings."


class AgentError(RuntimeError):
    """Base class for orchestration errors."""


class ConfigurationError(AgentError):
    """Unknown agent, or an operation the agent's configuration does not allow."""


class AvailabilityError(AgentError):
    """No agent is both enabled and configured for the tenant."""

    def __init__(self, message: str = NOT_CONFIGURED_MESSAGE) -> None:
        super().__init__(message)


class ProviderError(AgentError):
    """Upstream failure of a single provider call."""

    def __init__(
        self,
        message: str,
        *,
        agent: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.agent = agent
        self.status_code = status_code
        self.retryable = retryable


class SynthesisError(AgentError):
    """The reconciliation call failed or returned nothing usable."""


class FanOutTimeout(AgentError):
    """The overall deadline for a fan-out expired before all agents returned."""
