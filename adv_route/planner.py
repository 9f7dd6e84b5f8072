"""Plan service: corridor -> track discovery -> stitching.

Encapsulates one plan request end to end. Discovery failures degrade to an
empty track list (the stitcher then falls back to a direct route); only a
failing fallback route surfaces as :class:`RoutingError`.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .config import STITCH_AXIS_KM, STITCH_MAX_TRACKS, STITCH_TIME_BUDGET_MS
from .corridor import CorridorConfig, resolve_search_bbox
from .errors import DiscoveryError
from .models import BoundingBox, CorridorResult, PlanOutcome, Point, TrackCandidate
from .stitcher import RouteStitcher

ROUTE_ID_ALPHABET = string.ascii_lowercase + string.digits
ROUTE_ID_LENGTH = 12


class TrackSource(Protocol):
    def fetch_tracks(self, bbox: BoundingBox) -> List[TrackCandidate]: ...


def new_route_id(length: int = ROUTE_ID_LENGTH) -> str:
    return "".join(secrets.choice(ROUTE_ID_ALPHABET) for _ in range(length))


@dataclass(slots=True)
class PlanRequest:
    start: Point
    end: Point
    vias: Sequence[Point] = ()
    region_hint_bbox: Any = None
    max_tracks: Optional[int] = None
    axis_km: Optional[float] = None
    time_budget_ms: Optional[float] = None


@dataclass(slots=True)
class PlanResult:
    route_id: str
    outcome: PlanOutcome
    corridor: CorridorResult
    search_bbox: BoundingBox
    tracks_discovered: int
    request: PlanRequest

    def summary(self) -> Dict[str, Any]:
        """JSON friendly description of the planned route."""

        outcome = self.outcome
        return {
            "id": self.route_id,
            "name": "ADV Option 1",
            "summary": "Direct route" if outcome.used_fallback else "Backroads-biased",
            "stats": {
                "distance_km": round(outcome.distance_km, 1),
                "points": len(outcome.coordinates),
            },
            "used_fallback": outcome.used_fallback,
            "via_points_used": [list(p) for p in self._request_points()],
            "corridor": {
                "bbox": list(self.search_bbox.as_tuple()),
                "pad_km": round(self.corridor.pad_km, 3),
                "area_km2": round(self.corridor.area_km2, 1),
                "shrunk": self.corridor.shrunk,
            },
            "tracks_discovered": self.tracks_discovered,
            "evidence": [entry.to_dict() for entry in outcome.evidence],
        }

    def _request_points(self) -> List[Point]:
        req = self.request
        return [req.start, *req.vias, req.end]


@dataclass(slots=True)
class RoutePlannerConfig:
    corridor: CorridorConfig = field(default_factory=CorridorConfig)
    max_tracks: int = STITCH_MAX_TRACKS
    axis_km: float = STITCH_AXIS_KM
    time_budget_ms: Optional[float] = STITCH_TIME_BUDGET_MS
    logger: logging.Logger | None = None


class RoutePlanner:
    def __init__(
        self,
        stitcher: RouteStitcher,
        discovery: TrackSource,
        config: RoutePlannerConfig | None = None,
    ) -> None:
        self._stitcher = stitcher
        self._discovery = discovery
        self.config = config or RoutePlannerConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)

    def discover(self, bbox: BoundingBox) -> List[TrackCandidate]:
        try:
            return list(self._discovery.fetch_tracks(bbox))
        except DiscoveryError as exc:
            self._log.warning(
                "Track discovery failed; continuing without tracks: %s", exc
            )
            return []

    def plan(self, request: PlanRequest) -> PlanResult:
        bbox, corridor_result = resolve_search_bbox(
            request.start,
            request.end,
            self.config.corridor,
            request.region_hint_bbox,
        )
        self._log.info(
            "Planning %.1fkm route with %d vias; corridor pad=%.2fkm area=%.0fkm2%s",
            corridor_result.endpoint_distance_km,
            len(request.vias),
            corridor_result.pad_km,
            corridor_result.area_km2,
            " (shrunk)" if corridor_result.shrunk else "",
        )
        tracks = self.discover(bbox)

        max_tracks = (
            request.max_tracks
            if request.max_tracks is not None
            else self.config.max_tracks
        )
        axis_km = (
            request.axis_km if request.axis_km is not None else self.config.axis_km
        )
        time_budget_ms = (
            request.time_budget_ms
            if request.time_budget_ms is not None
            else self.config.time_budget_ms
        )
        outcome = self._stitcher.stitch(
            request.start,
            request.end,
            request.vias,
            tracks,
            max_tracks,
            axis_km,
            time_budget_ms,
        )
        route_id = new_route_id()
        self._log.info(
            "Planned route %s: %d points, %.1fkm%s",
            route_id,
            len(outcome.coordinates),
            outcome.distance_km,
            " (fallback)" if outcome.used_fallback else "",
        )
        return PlanResult(
            route_id=route_id,
            outcome=outcome,
            corridor=corridor_result,
            search_bbox=bbox,
            tracks_discovered=len(tracks),
            request=request,
        )


__all__ = [
    "PlanRequest",
    "PlanResult",
    "RoutePlanner",
    "RoutePlannerConfig",
    "TrackSource",
    "new_route_id",
]
