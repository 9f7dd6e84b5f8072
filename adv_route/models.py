"""Dataclasses describing route planning inputs, intermediates and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

# (longitude, latitude) in degrees.
Point = Tuple[float, float]


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned box in degrees, ordered like the Overpass bbox filter."""

    south: float
    west: float
    north: float
    east: float

    def __post_init__(self) -> None:
        if not (self.south < self.north and self.west < self.east):
            raise ValueError(
                f"Invalid bounding box {self.as_tuple()}: "
                "expected south < north and west < east"
            )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.south, self.west, self.north, self.east)

    def contains(self, point: Point) -> bool:
        lon, lat = point
        return self.south <= lat <= self.north and self.west <= lon <= self.east


@dataclass(slots=True)
class CorridorResult:
    """Padded search box derived from the route endpoints."""

    bbox: BoundingBox
    pad_km: float
    area_km2: float
    shrunk: bool
    endpoint_distance_km: float


@dataclass(frozen=True, slots=True)
class TrackCandidate:
    """Unpaved way returned by track discovery."""

    id: int | str
    coords: Tuple[Point, ...]


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    """Track candidate annotated with its position relative to the route axis."""

    track: TrackCandidate
    axis_fraction: float
    lateral_offset_km: float
    length_km: float

    @property
    def id(self) -> int | str:
        return self.track.id

    @property
    def coords(self) -> Tuple[Point, ...]:
        return self.track.coords


class AnchorOrigin(str, Enum):
    START = "start"
    VIA = "via"
    END = "end"
    TRACK = "track"


@dataclass(frozen=True, slots=True)
class Anchor:
    point: Point
    origin: AnchorOrigin
    track: Optional[ScoredCandidate] = None


@dataclass(slots=True)
class ConnectorSegment:
    """Routed path between two anchors."""

    coords: List[Point]


@dataclass(slots=True)
class TrackSegment:
    """Off-road track copied verbatim from discovery."""

    track_id: int | str
    coords: List[Point]


Segment = Union[ConnectorSegment, TrackSegment]


@dataclass(slots=True)
class RouteResult:
    """Normalised single path returned by the routing service."""

    coordinates: List[Point]
    distance_m: float
    duration_ms: float
    ascent_m: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EvidenceEntry:
    """Provenance record attached to a plan outcome."""

    kind: str
    ref: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "ref": self.ref}


@dataclass(slots=True)
class PlanOutcome:
    """Final stitched (or fallback) path plus evidence of how it was built."""

    coordinates: List[Point]
    evidence: List[EvidenceEntry]
    used_fallback: bool
    distance_km: float = 0.0
    diagnostics: Dict[str, Any] = field(default_factory=dict)


__all__ = [
    "Point",
    "BoundingBox",
    "CorridorResult",
    "TrackCandidate",
    "ScoredCandidate",
    "AnchorOrigin",
    "Anchor",
    "ConnectorSegment",
    "TrackSegment",
    "Segment",
    "RouteResult",
    "EvidenceEntry",
    "PlanOutcome",
]
