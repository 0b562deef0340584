"""Fixed-window, per-identity rate limiter gating login and refresh.

Windows are aligned to wall-clock minutes, so every key starts a fresh
window at the same instant. State is per process; a multi-instance
deployment multiplies the effective limit by the number of instances.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

log = logging.getLogger(__name__)

WINDOW_SECONDS = 60
# Windows from past minutes are dropped once the map grows past this size
PRUNE_THRESHOLD = 10_000


@dataclass(frozen=True, slots=True)
class RateDecision:
    """Outcome of one rate-limit check.

    :ivar allowed: Whether the attempt may proceed.
    :ivar retry_after: Seconds until the current window closes (1..60).
    """

    allowed: bool
    retry_after: int


@dataclass(slots=True)
class _Window:
    index: int
    count: int


class RateLimiter(Protocol):
    def allow(self, action: str, client_identity: str, limit_per_minute: int) -> RateDecision: ...


class FixedWindowRateLimiter(RateLimiter):
    """Count attempts per ``"{action}:{client_identity}"`` in 60-second windows.

    The count is capped at ``limit + 1`` so a hammering client cannot grow it
    without bound. All updates run under one lock.

    :param clock: Returns epoch seconds; defaults to :func:`time.time`.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.time
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def allow(self, action: str, client_identity: str, limit_per_minute: int) -> RateDecision:
        """Record one attempt and decide whether it may proceed.

        :param action: Gated action (``"login"``, ``"refresh"``).
        :param client_identity: Caller identity, e.g. ``"{ip}:{username}"``.
        :param limit_per_minute: Attempts allowed per window.
        :returns: The decision, including ``retry_after`` either way.
        """
        now = int(self._clock())
        index = now // WINDOW_SECONDS
        retry_after = WINDOW_SECONDS - (now % WINDOW_SECONDS)
        key = f"{action}:{client_identity}"

        with self._lock:
            window = self._windows.get(key)
            if window is None or window.index != index:
                if window is None and len(self._windows) >= PRUNE_THRESHOLD:
                    self._prune(index)
                # Replace, never increment, a window from an earlier minute
                self._windows[key] = _Window(index=index, count=1)
                return RateDecision(allowed=limit_per_minute >= 1, retry_after=retry_after)
            window.count = min(window.count + 1, limit_per_minute + 1)
            allowed = window.count <= limit_per_minute

        if not allowed:
            log.debug("Rate limit hit for %s", key, extra={"event": "rate_limit.blocked"})
        return RateDecision(allowed=allowed, retry_after=retry_after)

    def _prune(self, current_index: int) -> None:
        stale = [k for k, w in self._windows.items() if w.index != current_index]
        for k in stale:
            del self._windows[k]

    def reset(self, key: str | None = None) -> None:
        """Forget one ``"{action}:{identity}"`` window, or all of them."""
        with self._lock:
            if key:
                self._windows.pop(key, None)
            else:
                self._windows.clear()
