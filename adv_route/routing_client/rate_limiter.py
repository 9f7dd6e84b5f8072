"""Request pacing for the routing service."""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Callable

from ..config import ROUTING_JITTER_RANGE, ROUTING_MAX_RPS

__all__ = ["RoutingRateLimiter"]

Clock = Callable[[], float]
Sleeper = Callable[[float], None]


class RoutingRateLimiter:
    """Minimum gap between dispatches plus jitter, shared by every caller.

    One instance is meant to be shared by all plan requests in a process;
    tests construct their own with a fake ``clock`` and ``sleep``.
    """

    def __init__(
        self,
        max_rps: float = ROUTING_MAX_RPS,
        jitter_range: tuple[float, float] = ROUTING_JITTER_RANGE,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        if max_rps <= 0:
            raise ValueError("max_rps must be > 0")
        lo, hi = jitter_range
        if lo < 0 or hi < lo:
            raise ValueError("jitter_range must satisfy 0 <= lo <= hi")
        self._lock = threading.Lock()
        self._min_gap = 1.0 / max_rps
        self._jitter_range = jitter_range
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._last_dispatch: float | None = None
        self._waited_total = 0.0

    @property
    def min_gap(self) -> float:
        return self._min_gap

    def before_request(self) -> float:
        """Block until the next dispatch slot; return the seconds waited."""

        lo, hi = self._jitter_range
        # Random jitter smooths bursts; not used for security-sensitive logic.
        jitter = self._rng.uniform(lo, hi) if hi > 0 else 0.0  # nosec B311
        with self._lock:
            now = self._clock()
            if self._last_dispatch is None:
                wait_for = 0.0
            else:
                wait_for = max(0.0, self._last_dispatch + self._min_gap + jitter - now)
            # Reserve the slot before sleeping so concurrent callers queue behind it.
            self._last_dispatch = now + wait_for
            self._waited_total += wait_for
        if wait_for > 0:
            logging.debug("Routing pacing: sleeping %.3fs", wait_for)
            self._sleep(wait_for)
        return wait_for

    def backoff(self, seconds: float) -> None:
        """Sleep for a server requested delay and push the next slot past it."""

        delay = max(0.0, seconds)
        with self._lock:
            # Next before_request() may dispatch right when the delay ends.
            floor = self._clock() + delay - self._min_gap
            if self._last_dispatch is None or self._last_dispatch < floor:
                self._last_dispatch = floor
        if delay > 0:
            self._sleep(delay)

    def snapshot(self) -> dict[str, float | None]:
        """Return current limiter stats (used by tests and diagnostics)."""

        with self._lock:
            return {
                "min_gap": self._min_gap,
                "last_dispatch": self._last_dispatch,
                "waited_total": self._waited_total,
            }
