"""Product identification from a photo and/or search text ("smart add")."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Iterable, Sequence

from .consensus.base import ConsensusInfo, ConsensusLevel
from .errors import AvailabilityError
from .models.base import ImagePayload
from .orchestration.orchestrator import CallOptions, Orchestrator
from .orchestration.results import SynthesisResult
from .parsing import ParsedCandidate
from .settings.store import Tenant


logger = logging.getLogger(__name__)

SMART_ADD_PROMPT = """{context}

Identify:
1. Make/manufacturer, from logos, nameplates or distinctive design. Give your best guess rather than "Unknown".
2. Model number, copied exactly from any label or sticker. Never invent one; use a short description only if none is visible.
3. Product type/category.

{categories}

Return up to 10 possible matches ranked by confidence, as ONLY a JSON array:
[
  {{ "make": "Brand Name", "model": "Model Number or Description", "type": "Category Name", "confidence": 0.95 }}
]

If you cannot identify anything, return an empty array: []"""

PRODUCT_SYNTHESIS_PROMPT = """You are reconciling product identification responses from multiple AI assistants.
Each assistant was asked to identify products from the same image or search query.

1. Compare all responses and find agreement on make, model and product type
2. If they disagree, use your knowledge to pick the most likely answer
3. Raise confidence where several assistants agree
4. Prefer real model numbers over descriptions, and never invent one
5. Drop "Unknown" or placeholder results

Original analysis prompt: {original_prompt}

Responses from different AI assistants:
{responses}

Return ONLY a JSON array of the best matches, ranked by confidence:
[
  {{ "make": "Brand", "model": "Model", "type": "Category", "confidence": 0.95, "agents_agreed": 3 }}
]"""

UNKNOWN_VALUES = frozenset({"unknown", "n/a", "na", "not visible", "not available", "unidentified", "none", ""})

IMAGE_MAX_TOKENS = 2048
IMAGE_TIMEOUT_SECONDS = 90.0
TEXT_TIMEOUT_SECONDS = 60.0


def build_prompt(
    *,
    query: str | None = None,
    has_image: bool = False,
    categories: Sequence[str] | None = None,
    template: str = SMART_ADD_PROMPT,
) -> str:
    if categories:
        category_text = (
            f"Available categories: {', '.join(categories)}\n"
            "Choose from these categories when possible, or suggest a new one if none fit."
        )
    else:
        category_text = "Suggest an appropriate category for this product."

    if has_image and query:
        context = f"Analyze this image and use the provided search text '{query}' to help identify the product."
    elif has_image:
        context = "Analyze this image of a home appliance, equipment, or product."
    else:
        context = f"Identify the product based on the following search text: '{query}'."

    return template.format(context=context, categories=category_text)


def _as_items(fields: Any) -> list[dict[str, Any]]:
    if isinstance(fields, dict):
        fields = [fields]
    if not isinstance(fields, list):
        return []
    return [item for item in fields if isinstance(item, dict)]


def _confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        confidence = 0.5
    return max(0.0, min(1.0, confidence))


def normalize_results(items: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop unknown makes, blank unknown models, clamp confidence, sort best first."""
    normalized: list[dict[str, Any]] = []
    for item in items:
        if not any(key in item for key in ("make", "model", "type")):
            continue
        make = str(item.get("make") or "").strip()
        model = str(item.get("model") or "").strip()
        if make.lower() in UNKNOWN_VALUES:
            continue
        if model.lower() in UNKNOWN_VALUES:
            model = ""

        entry: dict[str, Any] = {
            "make": make,
            "model": model,
            "type": str(item.get("type") or "").strip(),
            "confidence": _confidence(item.get("confidence", 0.5)),
        }
        agreed = item.get("agents_agreed")
        if isinstance(agreed, (int, float)) and not isinstance(agreed, bool):
            entry["agents_agreed"] = int(agreed)
        if item.get("source_agent"):
            entry["source_agent"] = str(item["source_agent"])
        normalized.append(entry)

    normalized.sort(key=lambda entry: entry["confidence"], reverse=True)
    return normalized


def merge_candidates(candidates: Iterable[ParsedCandidate]) -> list[dict[str, Any]]:
    """Pool items from every agent, one per make/model, keeping the most confident."""
    unique: dict[str, dict[str, Any]] = {}
    for candidate in candidates:
        if not candidate.structured:
            continue
        for item in _as_items(candidate.fields):
            item = {**item, "source_agent": candidate.agent}
            key = f"{item.get('make') or ''}|{item.get('model') or ''}".lower()
            current = unique.get(key)
            if current is None or _confidence(item.get("confidence", 0)) > _confidence(current.get("confidence", 0)):
                unique[key] = item
    return list(unique.values())


@dataclass(slots=True)
class ProductIdentification:
    """Ranked product matches with the agent metadata needed to explain them."""

    results: list[dict[str, Any]]
    agents_used: list[str]
    agents_succeeded: int
    agent_details: dict[str, dict[str, Any]]
    agent_errors: dict[str, str]
    primary_agent: str | None
    synthesis_agent: str | None
    synthesis_error: str | None
    fallback_agent: str | None
    consensus: ConsensusInfo
    total_duration_ms: int
    parse_source: str | None
    result_source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": self.results,
            "agents_used": self.agents_used,
            "agents_succeeded": self.agents_succeeded,
            "agent_details": self.agent_details,
            "agent_errors": self.agent_errors,
            "primary_agent": self.primary_agent,
            "synthesis_agent": self.synthesis_agent,
            "synthesis_error": self.synthesis_error,
            "fallback_agent": self.fallback_agent,
            "consensus": self.consensus.to_dict(),
            "total_duration_ms": self.total_duration_ms,
            "parse_source": self.parse_source,
            "result_source": self.result_source,
        }


class ProductIdentifier:
    """Runs the multi-agent identification and shapes the answer for the item form."""

    def __init__(self, orchestrator: Orchestrator, *, template: str = SMART_ADD_PROMPT) -> None:
        self.orchestrator = orchestrator
        self.template = template

    async def identify(
        self,
        tenant: Tenant,
        *,
        query: str | None = None,
        image: ImagePayload | None = None,
        categories: Sequence[str] | None = None,
    ) -> ProductIdentification:
        if image is None and not (query or "").strip():
            raise ValueError("Either an image or a search query is required")
        if not self.orchestrator.is_available(tenant):
            raise AvailabilityError()

        prompt = build_prompt(query=query, has_image=image is not None, categories=categories, template=self.template)
        options = CallOptions(
            max_tokens=IMAGE_MAX_TOKENS,
            timeout=IMAGE_TIMEOUT_SECONDS if image is not None else TEXT_TIMEOUT_SECONDS,
        )
        synthesis = await self.orchestrator.analyze_with_synthesis(
            tenant, prompt, options, image=image, synthesis_template=PRODUCT_SYNTHESIS_PROMPT
        )
        return self._shape(synthesis)

    def _shape(self, synthesis: SynthesisResult) -> ProductIdentification:
        result_source: str | None = None
        results = normalize_results(_as_items(synthesis.fields))
        if results:
            result_source = "fallback" if synthesis.fallback_agent else "synthesized"
        else:
            results = normalize_results(merge_candidates(synthesis.candidates))
            if results:
                result_source = "individual_agents"

        multi = synthesis.agents
        consensus = synthesis.consensus
        if not results:
            consensus = ConsensusInfo(ConsensusLevel.NONE, 0, consensus.total_agents)
            logger.info("No product matches from %d agents", len(multi.agents))

        details = {
            name: {
                "success": call.success,
                "duration_ms": call.duration_ms,
                "error": call.error,
                "has_response": bool(call.response),
            }
            for name, call in multi.agents.items()
        }
        return ProductIdentification(
            results=results,
            agents_used=list(multi.agents),
            agents_succeeded=len(multi.succeeded),
            agent_details=details,
            agent_errors=multi.agent_errors,
            primary_agent=multi.primary,
            synthesis_agent=synthesis.synthesis_agent,
            synthesis_error=synthesis.synthesis_error,
            fallback_agent=synthesis.fallback_agent,
            consensus=consensus,
            total_duration_ms=synthesis.total_duration_ms,
            parse_source=synthesis.parse_source.value if synthesis.parse_source else None,
            result_source=result_source,
        )
