"""Tests for agent connectivity checks."""

from __future__ import annotations

import asyncio

import pytest

from household_ai.errors import ConfigurationError, ProviderError
from household_ai.orchestration import HEALTH_PROMPT, HealthTester


def test_successful_test_records_outcome(orchestrator, providers, registry, activate) -> None:
    """A healthy agent gets last_test and last_success_at updated."""
    activate("home", "claude")
    providers.script("claude", "OK")
    providers.delays["claude"] = 0.05

    async def _run() -> None:
        result = await orchestrator.test_agent("home", "claude")
        assert result.success
        assert result.duration_ms >= 40

    asyncio.run(_run())

    assert providers.calls_for("claude")[0]["prompt"] == HEALTH_PROMPT
    config = registry.snapshot("home").agents["claude"]
    assert config.last_test["success"] is True
    assert config.last_test["response_time_ms"] >= 40
    assert config.last_test["model"] == "claude-sonnet-4-20250514"
    assert config.last_test["tested_at"]
    assert config.last_success_at is not None


def test_failed_test_keeps_last_success(orchestrator, providers, registry, activate) -> None:
    activate("home", "openai")
    registry.record_success("home", "openai")
    before = registry.snapshot("home").agents["openai"].last_success_at
    providers.script("openai", ProviderError("OpenAI: Incorrect API key provided", status_code=401))

    async def _run() -> None:
        result = await orchestrator.test_agent("home", "openai")
        assert result.success is False

    asyncio.run(_run())

    config = registry.snapshot("home").agents["openai"]
    assert config.last_test == {
        "success": False,
        "tested_at": config.last_test["tested_at"],
        "error": "OpenAI: Incorrect API key provided",
    }
    assert config.last_success_at == before


def test_disabled_but_configured_agent_can_be_tested(orchestrator, providers, registry) -> None:
    registry.set_credential("home", "gemini", "AIza-test")

    async def _run() -> None:
        result = await orchestrator.test_agent("home", "gemini")
        assert result.success

    asyncio.run(_run())


def test_unconfigured_agent_is_not_recorded(orchestrator, providers, registry) -> None:
    async def _run() -> None:
        result = await orchestrator.test_agent("home", "local")
        assert result.error == "Agent local is not configured"

    asyncio.run(_run())
    assert providers.calls == []
    assert registry.snapshot("home").agents["local"].last_test is None


def test_unknown_agent_raises(orchestrator) -> None:
    async def _run() -> None:
        with pytest.raises(ConfigurationError):
            await orchestrator.test_agent("home", "cohere")

    asyncio.run(_run())


def test_health_timeout_is_enforced(registry, providers, activate) -> None:
    activate("home", "claude")
    providers.delays["claude"] = 1.0
    tester = HealthTester(registry, timeout=0.05)

    async def _run() -> None:
        result = await tester.test("home", "claude")
        assert result.error == "Claude: Request timed out after 0.05s"

    asyncio.run(_run())
    assert registry.snapshot("home").agents["claude"].last_test["success"] is False
