"""Paced, memoised access to the routing service."""

from __future__ import annotations

import logging
import threading
from typing import Protocol, Sequence, Tuple

from cachetools import TTLCache

from ..config import (
    ROUTE_CACHE_PRECISION,
    ROUTE_CACHE_SIZE,
    ROUTE_CACHE_TTL_SECONDS,
    ROUTING_RATE_LIMIT_DELAY_S,
)
from ..errors import RoutingError, RoutingRateLimitedError
from ..models import Point, RouteResult
from .rate_limiter import RoutingRateLimiter

LOGGER = logging.getLogger(__name__)

_RouteCacheKey = Tuple[float, float, float, float]


class RouteProvider(Protocol):
    def route(self, points: Sequence[Point]) -> RouteResult: ...


class RoutingGate:
    """Wrap a routing client with pacing, 429 handling and a two-point cache.

    Rate-limit responses are retried without an attempt cap: they signal
    backpressure, not failure. Any other :class:`RoutingError` propagates.
    """

    def __init__(
        self,
        client: RouteProvider,
        limiter: RoutingRateLimiter | None = None,
        *,
        cache_size: int = ROUTE_CACHE_SIZE,
        cache_ttl_s: float = ROUTE_CACHE_TTL_SECONDS,
        rate_limit_delay_s: float = ROUTING_RATE_LIMIT_DELAY_S,
        cache_precision: int = ROUTE_CACHE_PRECISION,
    ) -> None:
        self._client = client
        self._limiter = limiter or RoutingRateLimiter()
        self._cache: TTLCache[_RouteCacheKey, RouteResult] = TTLCache(
            maxsize=max(1, cache_size), ttl=cache_ttl_s
        )
        # cachetools caches are not thread-safe.
        self._cache_lock = threading.RLock()
        self._rate_limit_delay_s = rate_limit_delay_s
        self._precision = cache_precision
        self._stats_lock = threading.Lock()
        self.stats = {"calls": 0, "cache_hits": 0, "rate_limited": 0}

    @property
    def limiter(self) -> RoutingRateLimiter:
        return self._limiter

    def _cache_key(self, points: Sequence[Point]) -> _RouteCacheKey:
        (lon1, lat1), (lon2, lat2) = points
        p = self._precision
        return (round(lon1, p), round(lat1, p), round(lon2, p), round(lat2, p))

    def _bump(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1

    def route(self, points: Sequence[Point]) -> RouteResult:
        """Return a route through ``points`` or raise :class:`RoutingError`."""

        points = [tuple(p) for p in points]
        if len(points) < 2:
            raise RoutingError("At least two points are required to compute a route")

        cache_key = self._cache_key(points) if len(points) == 2 else None
        if cache_key is not None:
            with self._cache_lock:
                cached = self._cache.get(cache_key)
            if cached is not None:
                self._bump("cache_hits")
                LOGGER.debug("Route cache hit %s", cache_key)
                return cached

        while True:
            self._limiter.before_request()
            self._bump("calls")
            try:
                result = self._client.route(points)
            except RoutingRateLimitedError as exc:
                self._bump("rate_limited")
                delay = (
                    exc.retry_after
                    if exc.retry_after is not None
                    else self._rate_limit_delay_s
                )
                LOGGER.warning("Routing rate limited (429). Retrying in %.1fs", delay)
                self._limiter.backoff(delay)
                continue
            break

        if cache_key is not None:
            # A concurrent insert for the same key only costs a duplicate call.
            with self._cache_lock:
                self._cache[cache_key] = result
        return result

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()


__all__ = ["RoutingGate", "RouteProvider"]
