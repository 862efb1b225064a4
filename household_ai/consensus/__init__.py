"""Consensus evaluation over agent candidates."""

from .base import ConsensusInfo, ConsensusLevel
from .evaluator import ConsensusEvaluator, level_for, normalize_text, product_key, top_item

__all__ = [
    "ConsensusInfo",
    "ConsensusLevel",
    "ConsensusEvaluator",
    "level_for",
    "normalize_text",
    "product_key",
    "top_item",
]
