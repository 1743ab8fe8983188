"""Fixed-window request throttle keyed by client origin.

Counters live in this process only. Behind several workers each one keeps
its own window, so the effective limit is multiplied by the worker count.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admitted:
    remaining: int
    reset_in: float


@dataclass(frozen=True)
class Limited:
    retry_after: int


RateDecision = Admitted | Limited


@dataclass
class _Window:
    count: int
    resets_at: float


class RateLimiter:
    """Allow ``max_requests`` per ``window_seconds`` for each client key.

    Construct one per process (the app lifespan does) and share it.
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
        max_clients: int = 10000,
    ):
        if max_requests <= 0 or window_seconds <= 0 or max_clients <= 0:
            raise ValueError("max_requests, window_seconds and max_clients must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_clients = max_clients
        self.clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()

    def admit(self, client_key: str) -> RateDecision:
        now = self.clock()
        with self._lock:
            self._maybe_prune(now)
            window = self._windows.get(client_key)
            if window is None or now >= window.resets_at:
                if window is None and len(self._windows) >= self.max_clients:
                    self._evict(now)
                self._windows[client_key] = _Window(count=1, resets_at=now + self.window_seconds)
                return Admitted(remaining=self.max_requests - 1, reset_in=self.window_seconds)

            if window.count >= self.max_requests:
                retry_after = max(1, math.ceil(window.resets_at - now))
                logger.info("Rate limited %s for %ds", client_key, retry_after)
                return Limited(retry_after=retry_after)

            window.count += 1
            return Admitted(
                remaining=self.max_requests - window.count,
                reset_in=window.resets_at - now,
            )

    def __len__(self) -> int:
        return len(self._windows)

    def _maybe_prune(self, now: float) -> None:
        if now - self._last_prune < self.window_seconds:
            return
        expired = [k for k, w in self._windows.items() if now >= w.resets_at]
        for k in expired:
            del self._windows[k]
        self._last_prune = now

    def _evict(self, now: float) -> None:
        """Make room for a new client: drop expired windows, else the oldest one."""
        self._last_prune = -math.inf
        self._maybe_prune(now)
        if len(self._windows) >= self.max_clients:
            oldest = min(self._windows, key=lambda k: self._windows[k].resets_at)
            del self._windows[oldest]
