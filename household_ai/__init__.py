"""Multi-provider AI agent orchestration for household inventory tooling."""

from .agents import AgentRegistry, AgentStatus
from .errors import AgentError, AvailabilityError, ConfigurationError, ProviderError
from .orchestration import CallOptions, Orchestrator, OrchestratorConfig
from .products import ProductIdentifier
from .settings import InMemorySettingsStore, JsonFileSettingsStore, SecretCipher

__all__ = [
    "AgentRegistry",
    "AgentStatus",
    "AgentError",
    "AvailabilityError",
    "ConfigurationError",
    "ProviderError",
    "CallOptions",
    "Orchestrator",
    "OrchestratorConfig",
    "ProductIdentifier",
    "InMemorySettingsStore",
    "JsonFileSettingsStore",
    "SecretCipher",
]
