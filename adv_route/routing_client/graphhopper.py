"""GraphHopper route API adapter.

Talks to the ``/route`` endpoint and returns :class:`RouteResult` values.
Rate limiting is reported as :class:`RoutingRateLimitedError` so the
routing gate can decide how to wait; every other failure becomes a
:class:`RoutingError` carrying the upstream status and message.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import requests

from ..config import (
    GH_KEY,
    GRAPHHOPPER_URL,
    REQUEST_TIMEOUT,
    ROUTING_LOCALE,
    ROUTING_PROFILE,
)
from ..errors import RoutingError, RoutingRateLimitedError
from ..models import Point, RouteResult
from .response_handling import extract_error, parse_retry_after, safe_json
from .session import get_default_session

LOGGER = logging.getLogger(__name__)

JSONObj = Dict[str, Any]

# Road details requested alongside the geometry.
ROUTE_DETAILS = ("surface", "road_class")


def build_custom_model(
    must_use_areas: Iterable[Mapping[str, Any]] = (),
    *,
    distance_influence: float = 8,
) -> JSONObj:
    """Backroads-biased custom model.

    Penalises ferries, motorways, trunk and primary roads, paved surfaces,
    sand and footpaths; caps speed on tracks. ``must_use_areas`` are GeoJSON
    features with an ``id``; inside them motorway/trunk roads are allowed
    at full priority.
    """

    areas = [dict(feature) for feature in must_use_areas]
    priority: List[JSONObj] = [
        {"if": "road_environment == FERRY", "multiply_by": "0.01"},
        {"if": "road_class == MOTORWAY || road_class == TRUNK", "multiply_by": "0.2"},
        {"if": "road_class == PRIMARY", "multiply_by": "0.5"},
        {"if": "surface == ASPHALT || surface == PAVED", "multiply_by": "0.9"},
        {"if": "surface == SAND", "multiply_by": "0.25"},
        {"if": "track_type == GRADE4 || track_type == GRADE5", "multiply_by": "0.7"},
        {
            "if": "road_class == PATH || road_class == FOOTWAY "
            "|| road_class == PEDESTRIAN || road_class == STEPS",
            "multiply_by": "0.01",
        },
    ]
    for feature in areas:
        area_id = feature.get("id")
        if not area_id:
            LOGGER.warning("Skipping must-use area without id")
            continue
        priority.append(
            {
                "if": f"in_{area_id} && "
                "(road_class == MOTORWAY || road_class == TRUNK)",
                "multiply_by": "1",
            }
        )
    return {
        "distance_influence": distance_influence,
        "priority": priority,
        "speed": [
            {"if": "road_class == TRACK", "limit_to": "45"},
            {"if": "track_type == GRADE4 || track_type == GRADE5", "limit_to": "35"},
        ],
        "areas": {
            "type": "FeatureCollection",
            "features": [f for f in areas if f.get("id")],
        },
    }


class GraphHopperClient:
    """Thin client for GraphHopper's POST /route."""

    def __init__(
        self,
        api_key: str = GH_KEY,
        *,
        base_url: str = GRAPHHOPPER_URL,
        profile: str = ROUTING_PROFILE,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT,
        custom_model: Optional[JSONObj] = None,
    ) -> None:
        if not api_key:
            raise ValueError("GraphHopper API key not set. Please set GH_KEY.")
        self._api_key = api_key
        self.base_url = base_url
        self.profile = profile
        self.timeout = timeout
        self.custom_model = custom_model
        self._session = session or get_default_session()

    def build_body(self, points: Sequence[Point]) -> JSONObj:
        body: JSONObj = {
            "profile": self.profile,
            "points": [[float(lon), float(lat)] for lon, lat in points],
            "points_encoded": False,
            "instructions": False,
            "locale": ROUTING_LOCALE,
            "details": list(ROUTE_DETAILS),
            # custom_model needs the flexible (non-CH) mode.
            "ch.disable": True,
        }
        if self.custom_model is not None:
            body["custom_model"] = self.custom_model
        return body

    def route(self, points: Sequence[Point]) -> RouteResult:
        """Route through ``points`` in order and return the first path."""

        if len(points) < 2:
            raise RoutingError("At least two points are required to compute a route")
        body = self.build_body(points)
        LOGGER.debug("POST %s points=%d", self.base_url, len(points))
        try:
            response = self._session.post(
                self.base_url,
                params={"key": self._api_key},
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RoutingError(f"GraphHopper request failed: {exc}") from exc

        status = response.status_code
        if status == 429:
            retry_after = parse_retry_after(getattr(response, "headers", None))
            raise RoutingRateLimitedError(
                "GraphHopper rate limited", retry_after=retry_after
            )
        if not 200 <= status < 300:
            detail = extract_error(response) or "unknown error"
            raise RoutingError(f"GraphHopper error: {detail}", status=status)

        data = safe_json(response)
        if not isinstance(data, dict):
            raise RoutingError("GraphHopper returned a non-JSON body", status=status)
        return self._parse_path(data, status)

    @staticmethod
    def _parse_path(data: JSONObj, status: int) -> RouteResult:
        paths = data.get("paths") or []
        if not paths or not isinstance(paths[0], dict):
            raise RoutingError("No route found", status=status)
        path = paths[0]
        raw_coords = (path.get("points") or {}).get("coordinates") or []
        coords: List[Point] = []
        for raw in raw_coords:
            if not isinstance(raw, (list, tuple)) or len(raw) < 2:
                continue
            coords.append((float(raw[0]), float(raw[1])))
        if not coords:
            raise RoutingError("Route path has no coordinates", status=status)
        ascent = path.get("ascend")
        return RouteResult(
            coordinates=coords,
            distance_m=float(path.get("distance") or 0.0),
            duration_ms=float(path.get("time") or 0.0),
            ascent_m=float(ascent) if ascent is not None else None,
            details=dict(path.get("details") or {}),
        )


__all__ = ["GraphHopperClient", "build_custom_model", "ROUTE_DETAILS"]
