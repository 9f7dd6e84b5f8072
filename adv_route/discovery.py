"""Overpass client returning unpaved track candidates inside a bounding box."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import requests

from .config import (
    OVERPASS_QUERY_TIMEOUT,
    OVERPASS_REQUEST_TIMEOUT,
    OVERPASS_TRACK_SURFACES,
    OVERPASS_TRACK_TYPES,
    OVERPASS_URL,
)
from .errors import DiscoveryError
from .geometry import is_valid_point
from .models import BoundingBox, Point, TrackCandidate
from .routing_client.response_handling import extract_error, safe_json
from .routing_client.session import get_default_session

LOGGER = logging.getLogger(__name__)


class OverpassClient:
    """Query Overpass for ``highway=track`` ways with rideable surfaces."""

    def __init__(
        self,
        url: str = OVERPASS_URL,
        *,
        session: requests.Session | None = None,
        timeout: float = OVERPASS_REQUEST_TIMEOUT,
        query_timeout: int = OVERPASS_QUERY_TIMEOUT,
        surfaces: str = OVERPASS_TRACK_SURFACES,
        tracktypes: str = OVERPASS_TRACK_TYPES,
    ) -> None:
        if not url:
            raise ValueError("Overpass URL not set. Please set OVERPASS_URL.")
        self.url = url
        self.timeout = timeout
        self.query_timeout = query_timeout
        self.surfaces = surfaces
        self.tracktypes = tracktypes
        self._session = session or get_default_session()

    def build_query(self, bbox: BoundingBox) -> str:
        south, west, north, east = bbox.as_tuple()
        return (
            f"[out:json][timeout:{self.query_timeout}];\n"
            f'way["highway"="track"]\n'
            f"  ({south},{west},{north},{east})\n"
            f'  ["surface"~"{self.surfaces}"]\n'
            f'  ["tracktype"~"{self.tracktypes}"];\n'
            "out geom;"
        )

    def fetch_tracks(self, bbox: BoundingBox) -> List[TrackCandidate]:
        """Return track candidates in ``bbox``; raises :class:`DiscoveryError`."""

        query = self.build_query(bbox)
        LOGGER.debug("Overpass query bbox=%s", bbox.as_tuple())
        try:
            response = self._session.post(
                self.url, data={"data": query}, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise DiscoveryError(f"Overpass request failed: {exc}") from exc

        status = response.status_code
        if not 200 <= status < 300:
            detail = extract_error(response) or "unknown error"
            raise DiscoveryError(f"Overpass error: {detail}", status=status)
        data = safe_json(response)
        if not isinstance(data, dict):
            raise DiscoveryError("Overpass returned a non-JSON body", status=status)
        tracks = normalize_elements(data.get("elements") or [])
        LOGGER.info("Overpass returned %d track candidates", len(tracks))
        return tracks


def normalize_elements(elements: Sequence[Dict[str, Any]]) -> List[TrackCandidate]:
    """Convert Overpass ``out geom`` ways into candidates, dropping duplicates.

    Ways without an id or usable geometry are skipped; a way id seen twice
    keeps its first occurrence.
    """

    seen: set[Any] = set()
    tracks: List[TrackCandidate] = []
    for element in elements:
        if not isinstance(element, dict):
            continue
        way_id = element.get("id")
        if way_id is None or way_id in seen:
            continue
        coords: List[Point] = []
        for node in element.get("geometry") or []:
            if not isinstance(node, dict):
                continue
            point = (node.get("lon"), node.get("lat"))
            if is_valid_point(point):
                coords.append((float(point[0]), float(point[1])))
        if not coords:
            continue
        seen.add(way_id)
        tracks.append(TrackCandidate(id=way_id, coords=tuple(coords)))
    return tracks


__all__ = ["OverpassClient", "normalize_elements"]
