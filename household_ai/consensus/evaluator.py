"""Agreement counting over parsed agent candidates."""

from __future__ import annotations

from collections import Counter
from typing import Any, Callable, Hashable, Iterable

from household_ai.parsing import ParsedCandidate

from .base import ConsensusInfo, ConsensusLevel


KeyFunction = Callable[[Any], Hashable | None]


def normalize_text(text: str) -> str:
    """Lowercase and collapse whitespace."""
    return " ".join(text.lower().split())


def top_item(fields: Any) -> dict[str, Any] | None:
    """Highest-ranked item of a parsed payload: first list entry, or the mapping itself."""
    if isinstance(fields, list):
        fields = fields[0] if fields else None
    return fields if isinstance(fields, dict) else None


def product_key(fields: Any) -> tuple[str, str] | None:
    """Normalized (make, model) of the top-ranked item."""
    item = top_item(fields)
    if item is None:
        return None
    make = normalize_text(str(item.get("make") or ""))
    model = normalize_text(str(item.get("model") or ""))
    if not make and not model:
        return None
    return make, model


def level_for(agents_agreeing: int, total_agents: int) -> ConsensusLevel:
    if total_agents <= 0:
        return ConsensusLevel.NONE
    if total_agents == 1:
        return ConsensusLevel.SINGLE

    ratio = agents_agreeing / total_agents
    if ratio < 0.34:
        return ConsensusLevel.LOW
    if ratio < 0.51:
        return ConsensusLevel.PARTIAL
    if ratio < 1.0:
        return ConsensusLevel.MAJORITY
    return ConsensusLevel.FULL


class ConsensusEvaluator:
    """Groups structured candidates by a caller-supplied key and sizes the largest group."""

    def __init__(self, key: KeyFunction = product_key) -> None:
        self.key = key

    def evaluate(
        self,
        candidates: Iterable[ParsedCandidate],
        *,
        total_agents: int | None = None,
    ) -> ConsensusInfo:
        candidates = list(candidates)
        if total_agents is None:
            total_agents = len(candidates)

        votes: Counter[Hashable] = Counter()
        for candidate in candidates:
            if not candidate.structured:
                continue
            key = self.key(candidate.fields)
            if key is not None:
                votes[key] += 1

        agents_agreeing = min(max(votes.values(), default=0), total_agents)
        return ConsensusInfo(
            level=level_for(agents_agreeing, total_agents),
            agents_agreeing=agents_agreeing,
            total_agents=total_agents,
        )
