"""Tolerant JSON extraction from free-text model responses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
from typing import Any, Iterator


class ParseSource(str, Enum):
    STRICT = "strict"
    BRACE_MATCH = "brace-match"
    NONE = "none"


class ParseOutcome(str, Enum):
    STRUCTURED = "structured"
    UNSTRUCTURED = "unstructured"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ParsedCandidate:
    """One agent's response after parsing."""

    agent: str | None
    fields: list[Any] | dict[str, Any] | None
    parse_source: ParseSource
    outcome: ParseOutcome
    raw_text: str

    @property
    def structured(self) -> bool:
        return self.outcome is ParseOutcome.STRUCTURED

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent": self.agent,
            "fields": self.fields,
            "parse_source": self.parse_source.value,
            "outcome": self.outcome.value,
        }


def strip_markdown_fences(text: str) -> str:
    """Remove markdown code fences that some models wrap around JSON."""
    stripped = text.strip()
    if stripped.startswith("```"):
        first_newline = stripped.find("\n")
        if first_newline != -1:
            stripped = stripped[first_newline + 1:]
        else:
            stripped = stripped[3:]
        if stripped.endswith("```"):
            stripped = stripped[:-3]
    return stripped.strip()


_CLOSERS = {"[": "]", "{": "}"}


def _match_close(text: str, start: int) -> int | None:
    """Index of the bracket closing ``text[start]``, skipping string literals."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in "]}":
            if not stack or stack.pop() != char:
                return None
            if not stack:
                return index
    return None


def balanced_regions(text: str) -> Iterator[str]:
    """Yield each balanced ``[...]`` or ``{...}`` region, by opening position."""
    for start, char in enumerate(text):
        if char in _CLOSERS:
            end = _match_close(text, start)
            if end is not None:
                yield text[start:end + 1]


def _decode_structured(text: str) -> list[Any] | dict[str, Any] | None:
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    return payload if isinstance(payload, (list, dict)) else None


class ResponseParser:
    """Extracts JSON from raw text: strict parse first, then brace matching.

    Parse failures are returned as candidates, never raised.
    """

    def parse(self, raw_text: str | None, agent: str | None = None) -> ParsedCandidate:
        raw = raw_text or ""
        cleaned = strip_markdown_fences(raw)
        if not cleaned:
            return ParsedCandidate(agent, None, ParseSource.NONE, ParseOutcome.FAILED, raw)

        fields = _decode_structured(cleaned)
        if fields is not None:
            return ParsedCandidate(agent, fields, ParseSource.STRICT, ParseOutcome.STRUCTURED, raw)

        for region in balanced_regions(cleaned):
            fields = _decode_structured(region)
            if fields is not None:
                return ParsedCandidate(agent, fields, ParseSource.BRACE_MATCH, ParseOutcome.STRUCTURED, raw)

        return ParsedCandidate(agent, None, ParseSource.NONE, ParseOutcome.UNSTRUCTURED, raw)
