"""Command line administration and ad-hoc querying of a tenant's agents."""

from __future__ import annotations

import argparse
import asyncio
import base64
import getpass
import json
import logging
import mimetypes
import os
from pathlib import Path
import sys
from typing import Any

from dotenv import load_dotenv

from .agents.registry import DELETE_SENTINEL, AgentRegistry
from .errors import AgentError
from .models.base import ImagePayload
from .orchestration.orchestrator import CallOptions, Orchestrator, load_orchestrator_config
from .products import ProductIdentifier
from .settings.crypto import SecretCipher
from .settings.file_store import JsonFileSettingsStore
from .utils.logging_config import setup_logging


DEFAULT_STORE_PATH = Path("household_ai_settings.json")
STORE_PATH_ENV = "HOUSEHOLD_AI_SETTINGS"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI args."""
    parser = argparse.ArgumentParser(prog="household-ai", description="Manage and query household AI agents")
    parser.add_argument("--store", type=Path, default=Path(os.getenv(STORE_PATH_ENV, DEFAULT_STORE_PATH)))
    parser.add_argument("--tenant", default="default")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with orchestrator settings")
    parser.add_argument("--log-dir", type=Path, default=None)
    parser.add_argument("--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show every agent's status")
    sub.add_parser("clear-primary", help="Fall back to the single active agent as primary")

    for command in ("enable", "disable", "set-primary", "test", "models"):
        sub.add_parser(command).add_argument("agent")

    set_key = sub.add_parser("set-key", help="Store an API key (prompted when --value is omitted)")
    set_key.add_argument("agent")
    set_key.add_argument("--value", default=None)
    set_key.add_argument("--delete", action="store_true")

    for command in ("set-model", "set-base-url"):
        cmd = sub.add_parser(command, help="Omit the value to clear the override")
        cmd.add_argument("agent")
        cmd.add_argument("value", nargs="?", default=None)

    ask = sub.add_parser("ask", help="Send a prompt to one agent or to every active agent")
    ask.add_argument("prompt")
    ask.add_argument("--agent", default=None)
    ask.add_argument("--image", type=Path, default=None)
    ask.add_argument("--max-tokens", type=int, default=None)
    mode = ask.add_mutually_exclusive_group()
    mode.add_argument("--synthesize", action="store_true")
    mode.add_argument("--summarize", action="store_true")

    identify = sub.add_parser("identify", help="Identify a product from search text and/or a photo")
    identify.add_argument("--query", default=None)
    identify.add_argument("--image", type=Path, default=None)
    identify.add_argument("--category", action="append", default=[])

    return parser.parse_args(argv)


def load_image(path: Path) -> ImagePayload:
    mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    return ImagePayload(data=base64.b64encode(path.read_bytes()).decode("ascii"), mime_type=mime_type)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def async_main(args: argparse.Namespace, orchestrator: Orchestrator) -> int:
    registry = orchestrator.registry
    tenant = args.tenant
    command = args.command

    if command == "status":
        keys = registry.key_status(tenant)
        _emit([{**status.to_dict(), "api_key_set": keys[status.name]} for status in registry.status(tenant)])
    elif command == "enable":
        registry.set_enabled(tenant, args.agent, True)
    elif command == "disable":
        registry.set_enabled(tenant, args.agent, False)
    elif command == "set-primary":
        registry.set_primary(tenant, args.agent)
    elif command == "clear-primary":
        registry.clear_primary(tenant)
    elif command == "set-key":
        if args.delete:
            secret = DELETE_SENTINEL
        else:
            secret = args.value if args.value is not None else getpass.getpass(f"{args.agent} API key: ")
        registry.set_credential(tenant, args.agent, secret)
    elif command == "set-model":
        registry.set_model(tenant, args.agent, args.value)
    elif command == "set-base-url":
        registry.set_base_url(tenant, args.agent, args.value)
    elif command == "test":
        result = await orchestrator.test_agent(tenant, args.agent)
        _emit(result.to_dict())
        return 0 if result.success else 1
    elif command == "models":
        _emit(await orchestrator.list_models(tenant, args.agent))
    elif command == "ask":
        options = CallOptions(
            max_tokens=args.max_tokens,
            image=load_image(args.image) if args.image else None,
        )
        if args.agent:
            result = await orchestrator.call_agent(tenant, args.agent, args.prompt, options)
        elif args.synthesize:
            result = await orchestrator.analyze_with_synthesis(tenant, args.prompt, options)
        elif args.summarize:
            result = await orchestrator.call_active_agents_with_summary(tenant, args.prompt, options)
        else:
            result = await orchestrator.call_active_agents(tenant, args.prompt, options)
        _emit(result.to_dict())
    elif command == "identify":
        identifier = ProductIdentifier(orchestrator)
        identification = await identifier.identify(
            tenant,
            query=args.query,
            image=load_image(args.image) if args.image else None,
            categories=args.category,
        )
        _emit(identification.to_dict())
    return 0


def build_orchestrator(args: argparse.Namespace, logger: logging.Logger) -> Orchestrator:
    store = JsonFileSettingsStore(args.store, cipher=SecretCipher.from_env())
    config = load_orchestrator_config(config_path=args.config)
    return Orchestrator(AgentRegistry(store), config, logger=logger)


def main(argv: list[str] | None = None) -> int:
    """Program entry point."""
    load_dotenv()
    args = parse_args(argv)
    logger, _ = setup_logging(args.log_dir, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        orchestrator = build_orchestrator(args, logger)
        return asyncio.run(async_main(args, orchestrator))
    except (AgentError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
