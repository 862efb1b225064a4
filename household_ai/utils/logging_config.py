"""Logging configuration helpers."""

from __future__ import annotations

import logging
from pathlib import Path
import re
from typing import Tuple


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Anthropic/OpenAI style "sk-..." keys and Google "AIza..." keys.
_SECRET_PATTERN = re.compile(r"\b(sk-[A-Za-z0-9_\-]{3})[A-Za-z0-9_\-]+|\b(AIza)[A-Za-z0-9_\-]{8,}")


def _mask(match: re.Match) -> str:
    return f"{match.group(1) or match.group(2)}***"


class SecretRedactingFilter(logging.Filter):
    """Masks credential-shaped tokens; provider errors sometimes echo the key back."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SECRET_PATTERN.sub(_mask, message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(
    log_dir: Path | None = None,
    name: str = "household_ai",
    level: int = logging.INFO,
) -> Tuple[logging.Logger, Path | None]:
    """Configure console logging (plus a file under ``log_dir``) and return logger + log file path."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)
    redactor = SecretRedactingFilter()
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    log_path: Path | None = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"{name}.log"
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
        logger.addHandler(handler)

    return logger, log_path
