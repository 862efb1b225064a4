"""Tests for tolerant JSON extraction."""

from __future__ import annotations

from household_ai.parsing import ParseOutcome, ParseSource, ResponseParser, strip_markdown_fences


def test_strict_json_array() -> None:
    """A clean JSON array parses strictly."""
    candidate = ResponseParser().parse('[{"make": "Samsung", "model": "RF28"}]', agent="claude")
    assert candidate.structured
    assert candidate.parse_source is ParseSource.STRICT
    assert candidate.agent == "claude"
    assert candidate.fields == [{"make": "Samsung", "model": "RF28"}]


def test_fenced_json_is_strict() -> None:
    """Markdown fences are removed before the strict attempt."""
    text = '```json\n{"make": "LG", "model": "WM4000"}\n```'
    candidate = ResponseParser().parse(text)
    assert candidate.parse_source is ParseSource.STRICT
    assert candidate.fields == {"make": "LG", "model": "WM4000"}
    assert candidate.raw_text == text


def test_brace_match_in_prose() -> None:
    """JSON embedded in prose is recovered by brace matching."""
    text = 'Sure! Here is my answer: [{"make": "GE", "model": "GDF570"}] Let me know if that helps.'
    candidate = ResponseParser().parse(text)
    assert candidate.outcome is ParseOutcome.STRUCTURED
    assert candidate.parse_source is ParseSource.BRACE_MATCH
    assert candidate.fields == [{"make": "GE", "model": "GDF570"}]


def test_brace_match_respects_strings() -> None:
    """Brackets inside string literals do not end the region."""
    text = 'Result: {"make": "Bosch", "note": "fits [24\\" cabinets] }"} trailing'
    candidate = ResponseParser().parse(text)
    assert candidate.parse_source is ParseSource.BRACE_MATCH
    assert candidate.fields["note"] == 'fits [24" cabinets] }'


def test_brace_match_skips_unparseable_region() -> None:
    """A balanced but invalid region is skipped in favor of the next one."""
    text = "I considered [this, that] but settled on {\"make\": \"Miele\"}"
    candidate = ResponseParser().parse(text)
    assert candidate.fields == {"make": "Miele"}


def test_unstructured_and_failed() -> None:
    """Plain prose is unstructured; empty text is a failure."""
    parser = ResponseParser()

    prose = parser.parse("I could not identify this appliance.")
    assert prose.outcome is ParseOutcome.UNSTRUCTURED
    assert prose.parse_source is ParseSource.NONE
    assert prose.fields is None
    assert not prose.structured

    empty = parser.parse("   ")
    assert empty.outcome is ParseOutcome.FAILED
    assert parser.parse(None).outcome is ParseOutcome.FAILED


def test_scalar_json_is_not_structured() -> None:
    """A bare JSON scalar carries no fields."""
    assert ResponseParser().parse("42").outcome is ParseOutcome.UNSTRUCTURED


def test_strip_markdown_fences_without_language() -> None:
    assert strip_markdown_fences("```\n[1, 2]\n```") == "[1, 2]"
    assert strip_markdown_fences("no fences") == "no fences"
