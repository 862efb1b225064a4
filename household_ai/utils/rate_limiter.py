"""Request pacing for hosted providers and retry of transient failures."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
import random
import time
from typing import Any, Awaitable, Callable, Hashable, TypeVar
import weakref


T = TypeVar("T")

WINDOW_SECONDS = 60.0
DEFAULT_PROCESS_RPM = 300


@dataclass(slots=True)
class _Window:
    """Timestamps of the calls admitted during the current window."""

    stamps: deque[float] = field(default_factory=deque)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def idle(self, now: float, window_seconds: float) -> bool:
        return not self.lock.locked() and (not self.stamps or now - self.stamps[-1] > window_seconds)


class TenantRateLimiter:
    """Sliding-window pacing per (agent, tenant), under a per-agent process ceiling.

    Budgets are per household credential; the ceiling caps all households
    of one process together. Windows belong to the event loop that created
    them, so a host that runs one loop per request starts each loop fresh.
    """

    def __init__(self, process_rpm: int = DEFAULT_PROCESS_RPM, window_seconds: float = WINDOW_SECONDS) -> None:
        self.process_rpm = process_rpm
        self.window_seconds = window_seconds
        self._loops: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[Hashable, _Window]] = (
            weakref.WeakKeyDictionary()
        )

    def _windows(self) -> dict[Hashable, _Window]:
        loop = asyncio.get_running_loop()
        windows = self._loops.get(loop)
        if windows is None:
            windows = self._loops[loop] = {}
        return windows

    def _window(self, key: Hashable) -> _Window:
        windows = self._windows()
        window = windows.get(key)
        if window is None:
            self._evict_idle(windows)
            window = windows[key] = _Window()
        return window

    def _evict_idle(self, windows: dict[Hashable, _Window]) -> None:
        now = time.monotonic()
        for key in [key for key, window in windows.items() if window.idle(now, self.window_seconds)]:
            del windows[key]

    def tracked_keys(self) -> list[Hashable]:
        """Keys with a live window in the running loop."""
        return list(self._windows())

    async def _admit(self, key: Hashable, limit: int) -> None:
        if limit <= 0:
            return

        window = self._window(key)
        async with window.lock:
            while True:
                now = time.monotonic()
                while window.stamps and now - window.stamps[0] > self.window_seconds:
                    window.stamps.popleft()
                if len(window.stamps) < limit:
                    window.stamps.append(now)
                    return
                await asyncio.sleep(max(0.01, self.window_seconds - (now - window.stamps[0])))

    async def acquire(self, agent: str, tenant: Any, rpm: int) -> None:
        """Wait until ``agent`` may be called on behalf of ``tenant``."""
        await self._admit(("agent", agent), self.process_rpm)
        await self._admit((agent, str(tenant)), rpm)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 0,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    should_retry: Callable[[BaseException], bool] = lambda exc: True,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> T:
    """Await ``fn``; on a retryable failure wait 2^n * base_delay (plus jitter) and try again.

    ``CancelledError`` is never retried.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            attempt += 1
            if attempt > max_retries or not should_retry(exc):
                raise
            delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
            delay += random.uniform(0.0, 0.25 * delay)
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            await asyncio.sleep(delay)
