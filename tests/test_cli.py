"""Tests for the administration CLI."""

from __future__ import annotations

import json
import logging

from cryptography.fernet import Fernet
import pytest

from household_ai.cli import main, parse_args


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOUSEHOLD_AI_SECRET_KEY", Fernet.generate_key().decode("ascii"))
    yield tmp_path / "settings.json"
    logging.getLogger("household_ai").handlers.clear()


def test_parse_args_ask_modes() -> None:
    args = parse_args(["--tenant", "42", "ask", "Which dishwasher?", "--summarize", "--max-tokens", "300"])
    assert args.command == "ask"
    assert args.tenant == "42"
    assert args.summarize and not args.synthesize
    assert args.max_tokens == 300

    identify = parse_args(["identify", "--query", "GE range", "--category", "Kitchen", "--category", "Laundry"])
    assert identify.category == ["Kitchen", "Laundry"]


def test_configure_then_status(cli_env, capsys) -> None:
    """Stored keys show up only as a boolean, never as text."""
    store = str(cli_env)
    assert main(["--store", store, "set-key", "openai", "--value", "sk-very-secret"]) == 0
    assert main(["--store", store, "enable", "openai"]) == 0
    assert main(["--store", store, "set-primary", "openai"]) == 0
    capsys.readouterr()

    assert main(["--store", store, "status"]) == 0
    output = capsys.readouterr().out
    assert "sk-very-secret" not in output
    assert "sk-very-secret" not in cli_env.read_text(encoding="utf-8")

    statuses = {entry["name"]: entry for entry in json.loads(output)}
    assert statuses["openai"]["api_key_set"] is True
    assert statuses["openai"]["available"] is True
    assert statuses["openai"]["is_primary"] is True
    assert statuses["claude"]["api_key_set"] is False


def test_delete_key(cli_env, capsys) -> None:
    store = str(cli_env)
    main(["--store", store, "set-key", "claude", "--value", "sk-ant"])
    main(["--store", store, "set-key", "claude", "--delete"])
    capsys.readouterr()

    main(["--store", store, "status"])
    statuses = {entry["name"]: entry for entry in json.loads(capsys.readouterr().out)}
    assert statuses["claude"]["configured"] is False


def test_errors_exit_with_code_two(cli_env, capsys) -> None:
    assert main(["--store", str(cli_env), "set-primary", "gemini"]) == 2
    assert "gemini" in capsys.readouterr().err
    assert main(["--store", str(cli_env), "enable", "cohere"]) == 2


def test_missing_secret_key_is_reported(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("HOUSEHOLD_AI_SECRET_KEY", raising=False)
    assert main(["--store", str(tmp_path / "s.json"), "status"]) == 2
    assert "HOUSEHOLD_AI_SECRET_KEY" in capsys.readouterr().err


def test_clear_primary(cli_env, capsys) -> None:
    store = str(cli_env)
    main(["--store", store, "set-key", "claude", "--value", "sk-ant"])
    main(["--store", store, "set-key", "openai", "--value", "sk-oai"])
    main(["--store", store, "enable", "claude"])
    main(["--store", store, "enable", "openai"])
    main(["--store", store, "set-primary", "claude"])
    assert main(["--store", store, "clear-primary"]) == 0
    capsys.readouterr()

    main(["--store", store, "status"])
    statuses = json.loads(capsys.readouterr().out)
    assert [entry["name"] for entry in statuses if entry["is_primary"]] == []
