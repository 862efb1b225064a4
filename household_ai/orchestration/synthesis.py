"""Reconciliation of several agents' responses into one answer."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, Mapping

from household_ai.errors import SynthesisError
from household_ai.parsing import ParsedCandidate, ParseSource, ResponseParser

from .results import CallResult, MultiCallResult


DEFAULT_SYNTHESIS_PROMPT = """You are reconciling responses from multiple AI assistants.
Each assistant was given the same task.

Your task:
1. Compare all responses and find where they agree
2. If they disagree, use your knowledge to determine the most likely correct answer
3. Combine confidence scores - if multiple assistants agree, confidence should be higher
4. Return a single consolidated JSON answer in the same shape the task asked for

Original prompt: {original_prompt}

Responses from different AI assistants:
{responses}

Return ONLY valid JSON with no additional text, markdown, or explanation."""

DEFAULT_SUMMARY_PROMPT = (
    "You are summarizing responses from multiple AI assistants to the same question. "
    "Synthesize the best answer, combining insights from all responses while eliminating redundancy. "
    "If there are conflicting answers, note the disagreement. "
    "Original question: {original_prompt}\n\nResponses:{responses}\n\nProvide a synthesized summary:"
)

ALL_AGENTS_FAILED = "All agents failed"

AgentCall = Callable[[str, str], Awaitable[CallResult]]


@dataclass(slots=True)
class SynthesisOutcome:
    """What the synthesis stage produced, before consensus is attached."""

    synthesized: str | None
    fields: list | dict | None
    parse_source: ParseSource | None
    synthesis_agent: str | None
    synthesis_error: str | None = None
    fallback_agent: str | None = None


@dataclass(slots=True)
class SummaryOutcome:
    summary: str | None
    summary_agent: str | None
    summary_error: str | None = None


def format_responses(responses: Mapping[str, str]) -> str:
    return "".join(f"\n\n--- Response from {agent} ---\n{text}" for agent, text in responses.items())


def successful_responses(multi: MultiCallResult) -> dict[str, str]:
    """Non-empty responses of successful calls, in catalog order."""
    return {
        name: result.response
        for name, result in multi.agents.items()
        if result.success and result.response
    }


def choose_agent(multi: MultiCallResult) -> str | None:
    """Primary when it succeeded, otherwise the first successful agent."""
    responses = successful_responses(multi)
    if multi.primary in responses:
        return multi.primary
    return next(iter(responses), None)


class Synthesizer:
    """Second-stage call that merges candidates, with a deterministic fallback.

    The agent call itself is injected so the orchestrator keeps control of
    timeouts, retries and bookkeeping.
    """

    def __init__(
        self,
        parser: ResponseParser | None = None,
        *,
        template: str = DEFAULT_SYNTHESIS_PROMPT,
        summary_template: str = DEFAULT_SUMMARY_PROMPT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.parser = parser or ResponseParser()
        self.template = template
        self.summary_template = summary_template
        self.logger = logger or logging.getLogger(__name__)

    def build_prompt(
        self, original_prompt: str, responses: Mapping[str, str], template: str | None = None
    ) -> str:
        return (template or self.template).format(original_prompt=original_prompt, responses=format_responses(responses))

    async def synthesize(
        self,
        *,
        prompt: str,
        multi: MultiCallResult,
        candidates: Mapping[str, ParsedCandidate],
        call: AgentCall,
        template: str | None = None,
    ) -> SynthesisOutcome:
        responses = successful_responses(multi)
        chosen = choose_agent(multi)
        if chosen is None:
            return SynthesisOutcome(None, None, None, None, synthesis_error=ALL_AGENTS_FAILED)

        if len(responses) == 1:
            candidate = candidates[chosen]
            return SynthesisOutcome(
                synthesized=candidate.raw_text,
                fields=candidate.fields,
                parse_source=candidate.parse_source,
                synthesis_agent=chosen,
            )

        try:
            parsed = await self._reconcile(chosen, prompt, responses, call, template)
        except SynthesisError as exc:
            self.logger.warning("Synthesis by %s failed, falling back: %s", chosen, exc)
            return self._fallback(chosen, multi.primary, candidates, str(exc))

        return SynthesisOutcome(
            synthesized=parsed.raw_text,
            fields=parsed.fields,
            parse_source=parsed.parse_source,
            synthesis_agent=chosen,
        )

    async def _reconcile(
        self,
        agent: str,
        prompt: str,
        responses: Mapping[str, str],
        call: AgentCall,
        template: str | None,
    ) -> ParsedCandidate:
        result = await call(agent, self.build_prompt(prompt, responses, template))
        if not result.success:
            raise SynthesisError(result.error or f"{agent}: synthesis call failed")

        parsed = self.parser.parse(result.response, agent=agent)
        if not parsed.structured:
            raise SynthesisError(f"{agent}: synthesis response could not be parsed")
        return parsed

    @staticmethod
    def _fallback(
        chosen: str,
        primary: str | None,
        candidates: Mapping[str, ParsedCandidate],
        error: str,
    ) -> SynthesisOutcome:
        structured = [name for name, candidate in candidates.items() if candidate.structured]
        if primary in structured:
            fallback = primary
        elif structured:
            fallback = structured[0]
        else:
            fallback = chosen

        candidate = candidates[fallback]
        return SynthesisOutcome(
            synthesized=candidate.raw_text,
            fields=candidate.fields,
            parse_source=candidate.parse_source,
            synthesis_agent=chosen,
            synthesis_error=error,
            fallback_agent=fallback,
        )

    async def summarize(self, *, prompt: str, multi: MultiCallResult, call: AgentCall) -> SummaryOutcome:
        """Free-text summary of all successful responses by the chosen agent."""
        responses = successful_responses(multi)
        chosen = choose_agent(multi)
        if chosen is None:
            return SummaryOutcome(None, None, ALL_AGENTS_FAILED)
        if len(responses) == 1:
            return SummaryOutcome(responses[chosen], chosen)

        summary_prompt = self.summary_template.format(
            original_prompt=prompt, responses=format_responses(responses)
        )
        result = await call(chosen, summary_prompt)
        return SummaryOutcome(result.response, chosen, result.error)
