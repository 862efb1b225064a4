"""Consensus result types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ConsensusLevel(str, Enum):
    NONE = "none"
    SINGLE = "single"
    LOW = "low"
    PARTIAL = "partial"
    MAJORITY = "majority"
    FULL = "full"


@dataclass(frozen=True, slots=True)
class ConsensusInfo:
    """Agreement across agents that returned a response."""

    level: ConsensusLevel
    agents_agreeing: int
    total_agents: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "agents_agreeing": self.agents_agreeing,
            "total_agents": self.total_agents,
        }
