"""Agent configuration and registry."""

from .config import AgentConfig, ConfigResolver, TenantSnapshot
from .registry import DELETE_SENTINEL, AgentRegistry, AgentStatus

__all__ = [
    "AgentConfig",
    "ConfigResolver",
    "TenantSnapshot",
    "DELETE_SENTINEL",
    "AgentRegistry",
    "AgentStatus",
]
