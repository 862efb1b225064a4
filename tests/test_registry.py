"""Tests for agent configuration, status and credential lifecycle."""

from __future__ import annotations

import json

import pytest

from household_ai.agents import DELETE_SENTINEL
from household_ai.errors import ConfigurationError


def test_unconfigured_tenant_has_no_active_agents(registry) -> None:
    statuses = registry.status("empty")
    assert [status.name for status in statuses] == ["claude", "openai", "gemini", "local"]
    assert not any(status.available for status in statuses)
    assert registry.active_agents("empty") == []
    assert registry.primary_agent("empty") is None


def test_available_requires_enabled_and_configured(registry) -> None:
    registry.set_enabled("home", "claude", True)
    registry.set_credential("home", "openai", "sk-openai")

    status = {s.name: s for s in registry.status("home")}
    assert status["claude"].enabled and not status["claude"].configured
    assert status["openai"].configured and not status["openai"].enabled
    assert registry.active_agents("home") == []


def test_single_candidate_primary_fallback(registry, activate) -> None:
    """With no explicit primary, the only active agent is primary."""
    activate("home", "gemini")
    assert registry.primary_agent("home") == "gemini"
    assert [s.name for s in registry.status("home") if s.is_primary] == ["gemini"]

    activate("home", "claude")
    assert registry.primary_agent("home") is None


def test_explicit_primary_wins_and_is_unique(registry, activate) -> None:
    activate("home", "claude", "openai", primary="openai")
    assert registry.primary_agent("home") == "openai"

    registry.set_primary("home", "claude")
    assert [s.name for s in registry.status("home") if s.is_primary] == ["claude"]


def test_clear_primary_restores_single_candidate_fallback(registry, activate) -> None:
    activate("home", "claude", "openai", primary="openai")
    registry.clear_primary("home")
    assert registry.primary_agent("home") is None

    registry.set_enabled("home", "claude", False)
    assert registry.primary_agent("home") == "openai"
    registry.clear_primary("home")


def test_primary_may_be_unavailable(registry, activate) -> None:
    activate("home", "claude", "openai", primary="claude")
    registry.set_enabled("home", "claude", False)
    status = {s.name: s for s in registry.status("home")}
    assert status["claude"].is_primary and not status["claude"].available


def test_set_primary_requires_configured_agent(registry) -> None:
    with pytest.raises(ConfigurationError):
        registry.set_primary("home", "gemini")
    with pytest.raises(ConfigurationError, match="Unknown agent: cohere"):
        registry.set_primary("home", "cohere")


def test_unknown_agent_rejected_on_every_write(registry) -> None:
    for write in (
        lambda: registry.set_enabled("home", "cohere", True),
        lambda: registry.set_credential("home", "cohere", "x"),
        lambda: registry.set_model("home", "cohere", "x"),
        lambda: registry.set_base_url("home", "cohere", "x"),
    ):
        with pytest.raises(ConfigurationError):
            write()


def test_disable_keeps_credential(registry, store, activate) -> None:
    """Disabling an agent never touches its stored key."""
    activate("home", "claude")
    registry.set_enabled("home", "claude", False)
    assert store.get("home", "anthropic_api_key") == "sk-claude-test"
    assert registry.key_status("home")["claude"] is True


def test_credential_lifecycle(registry, store) -> None:
    """Keys are encrypted, empty input keeps them, the sentinel deletes them."""
    registry.set_credential("home", "openai", "sk-first")
    raw = store.raw("home", "openai_api_key")
    assert raw.encrypted and "sk-first" not in raw.value

    registry.set_credential("home", "openai", "")
    assert store.get("home", "openai_api_key") == "sk-first"

    registry.set_credential("home", "openai", DELETE_SENTINEL)
    assert store.get("home", "openai_api_key") is None
    assert registry.key_status("home")["openai"] is False


def test_credentials_never_appear_in_status_or_repr(registry, activate) -> None:
    activate("home", "claude")
    snapshot = registry.snapshot("home")
    assert "sk-claude-test" not in repr(snapshot.agents["claude"])
    assert "sk-claude-test" not in json.dumps([s.to_dict() for s in registry.status("home")])
    assert snapshot.agents["claude"].redacted()["api_key_set"] is True


def test_model_override_and_clear(registry) -> None:
    registry.set_model("home", "claude", "claude-3-haiku-20240307")
    assert {s.name: s.model for s in registry.status("home")}["claude"] == "claude-3-haiku-20240307"

    registry.set_model("home", "claude", None)
    status = {s.name: s for s in registry.status("home")}["claude"]
    assert status.model == status.default_model == "claude-sonnet-4-20250514"


def test_local_agent_is_configured_by_base_url(registry) -> None:
    registry.set_enabled("home", "local", True)
    assert registry.active_agents("home") == []

    registry.set_base_url("home", "local", " http://nas.lan:11434 ")
    assert registry.active_agents("home") == ["local"]
    assert registry.snapshot("home").agents["local"].base_url == "http://nas.lan:11434"

    registry.set_base_url("home", "local", "")
    assert registry.active_agents("home") == []


def test_tenants_are_isolated(registry, activate) -> None:
    activate(1, "claude")
    assert registry.active_agents(1) == ["claude"]
    assert registry.active_agents(2) == []


def test_legacy_provider_migration(registry, store) -> None:
    """A tenant on the single-provider settings is migrated on first read."""
    store.set("old", "ai_provider", "openai")
    store.set("old", "ai_model", "gpt-4-turbo")
    registry.set_credential("old", "openai", "sk-legacy")

    assert registry.active_agents("old") == ["openai"]
    assert registry.primary_agent("old") == "openai"
    assert store.get("old", "openai_enabled") == "1"
    assert store.get("old", "openai_model") == "gpt-4-turbo"


def test_legacy_migration_skipped_when_agents_enabled(registry, store, activate) -> None:
    activate("mixed", "claude")
    store.set("mixed", "ai_provider", "openai")
    registry.snapshot("mixed")
    assert store.get("mixed", "ai_primary_agent") is None
    assert store.get("mixed", "openai_enabled") is None


def test_record_test_round_trips(registry) -> None:
    registry.record_test("home", "claude", {"success": False, "tested_at": "t", "error": "Claude: boom"})
    status = {s.name: s for s in registry.status("home")}["claude"]
    assert status.last_test == {"success": False, "tested_at": "t", "error": "Claude: boom"}
