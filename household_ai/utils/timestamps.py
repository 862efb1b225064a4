"""UTC timestamp helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current aware UTC datetime."""
    return datetime.now(tz=timezone.utc)
