"""Distance, area and projection helpers on (lon, lat) degree points."""

from __future__ import annotations

import math
from typing import Any, Mapping, Sequence, Tuple

import numpy as np

from .errors import CoordinateError
from .models import BoundingBox, Point

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0
_M_PER_DEGREE = 111_000.0

AXIS_ORDERS = ("lonlat", "latlon", "auto")


def to_rad(deg: float) -> float:
    return deg * math.pi / 180


def dist_km(a: Sequence[float], b: Sequence[float]) -> float:
    """Great-circle (haversine) distance between two (lon, lat) points."""

    lon1, lat1 = a
    lon2, lat2 = b
    d_lat = to_rad(lat2 - lat1)
    d_lon = to_rad(lon2 - lon1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(to_rad(lat1)) * math.cos(to_rad(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, h)))


def dist_m(a: Sequence[float], b: Sequence[float]) -> float:
    return dist_km(a, b) * 1000.0


def bbox_area_km2(bbox: BoundingBox | Sequence[float]) -> float:
    """Approximate area as width at mid-latitude times height at mid-longitude."""

    south, west, north, east = (
        bbox.as_tuple() if isinstance(bbox, BoundingBox) else tuple(bbox)
    )
    mid_lat = (south + north) / 2
    mid_lon = (west + east) / 2
    width = dist_km((west, mid_lat), (east, mid_lat))
    height = dist_km((mid_lon, south), (mid_lon, north))
    return width * height


def path_length_km(coords: Sequence[Sequence[float]]) -> float:
    """Total haversine length of a polyline."""

    if len(coords) < 2:
        return 0.0
    radians = np.radians(np.asarray(coords, dtype=np.float64))
    lon = radians[:, 0]
    lat = radians[:, 1]
    d_lat = np.diff(lat)
    d_lon = np.diff(lon)
    h = (
        np.sin(d_lat / 2) ** 2
        + np.cos(lat[:-1]) * np.cos(lat[1:]) * np.sin(d_lon / 2) ** 2
    )
    legs = 2 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(h, 0.0, 1.0)))
    return float(np.sum(legs))


def midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)


def offset_point(point: Point, dx_m: float, dy_m: float) -> Point:
    """Shift a point east by ``dx_m`` and north by ``dy_m`` metres."""

    lon, lat = point
    cos_lat = math.cos(to_rad(lat)) or 1.0
    return (lon + dx_m / (_M_PER_DEGREE * cos_lat), lat + dy_m / _M_PER_DEGREE)


def project_onto_axis(point: Point, start: Point, end: Point) -> Tuple[float, float]:
    """Return ``(t, lateral_km)`` for ``point`` against the start->end segment.

    ``t`` is the clamped scalar projection in [0, 1] computed in a local
    planar frame (longitude scaled by the cosine of the mean latitude).
    ``lateral_km`` is the haversine distance from ``point`` to the projected
    position on the axis. A zero-length axis projects everything onto ``start``.
    """

    lon0, lat0 = start
    lon1, lat1 = end
    k = math.cos(to_rad((lat0 + lat1) / 2)) or 1.0
    ax = (lon1 - lon0) * k
    ay = lat1 - lat0
    bx = (point[0] - lon0) * k
    by = point[1] - lat0
    denom = ax * ax + ay * ay
    if denom == 0:
        t = 0.0
    else:
        t = min(1.0, max(0.0, (ax * bx + ay * by) / denom))
    projected = (lon0 + t * (lon1 - lon0), lat0 + t * (lat1 - lat0))
    return t, dist_km(point, projected)


def is_valid_point(value: Any) -> bool:
    """True for a pair of finite numbers inside the lon/lat ranges."""

    try:
        lon, lat = value
        lon = float(lon)
        lat = float(lat)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return False
    return -180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0


def resolve_axis_order(first: float, second: float) -> Point:
    """Decide which of two positional values is longitude by magnitude.

    Only a value beyond +/-90 can be a longitude and not a latitude, so the
    order is known only when exactly one component exceeds 90 in magnitude.
    Every other combination is rejected instead of guessed.
    """

    first_lon_only = abs(first) > 90
    second_lon_only = abs(second) > 90
    if first_lon_only and not second_lon_only:
        return (first, second)
    if second_lon_only and not first_lon_only:
        return (second, first)
    if first_lon_only and second_lon_only:
        raise CoordinateError(f"Neither value is a latitude: ({first}, {second})")
    raise CoordinateError(
        f"Ambiguous coordinate order for ({first}, {second}); "
        "pass an explicit lon/lat mapping"
    )


def parse_point(raw: Any, order: str = "lonlat") -> Point:
    """Normalise a user supplied coordinate into a ``(lon, lat)`` tuple.

    Accepted shapes: ``"lon,lat"`` strings, two-element sequences and
    mappings with ``lon`` (or ``lng``) and ``lat`` keys. Positional inputs
    are read according to ``order``; ``"auto"`` applies
    :func:`resolve_axis_order`.
    """

    if order not in AXIS_ORDERS:
        raise ValueError(f"order must be one of {AXIS_ORDERS}, got {order!r}")

    if isinstance(raw, Mapping):
        lon = raw.get("lon", raw.get("lng"))
        lat = raw.get("lat")
        if lon is None or lat is None:
            raise CoordinateError(f"Bad point format: {raw!r}")
        point = (_to_float(lon, raw), _to_float(lat, raw))
    else:
        if isinstance(raw, str):
            parts = [part.strip() for part in raw.split(",")]
        elif isinstance(raw, Sequence):
            parts = list(raw)
        else:
            raise CoordinateError(f"Bad point format: {raw!r}")
        if len(parts) != 2:
            raise CoordinateError(f"Bad point format: {raw!r}")
        first, second = (_to_float(part, raw) for part in parts)
        if order == "lonlat":
            point = (first, second)
        elif order == "latlon":
            point = (second, first)
        else:
            point = resolve_axis_order(first, second)

    if not is_valid_point(point):
        raise CoordinateError(f"Coordinate out of range: {raw!r}")
    return point


def parse_bbox(raw: Any) -> BoundingBox:
    """Build a :class:`BoundingBox` from ``[south, west, north, east]`` input."""

    if isinstance(raw, BoundingBox):
        return raw
    if isinstance(raw, str):
        raw = [part.strip() for part in raw.split(",")]
    try:
        values = [float(v) for v in raw]
    except (TypeError, ValueError) as exc:
        raise CoordinateError(f"Bad bounding box: {raw!r}") from exc
    if len(values) != 4 or not all(math.isfinite(v) for v in values):
        raise CoordinateError(f"Bad bounding box: {raw!r}")
    try:
        return BoundingBox(*values)
    except ValueError as exc:
        raise CoordinateError(str(exc)) from exc


def _to_float(value: Any, raw: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise CoordinateError(f"Bad point format: {raw!r}") from exc


__all__ = [
    "EARTH_RADIUS_KM",
    "KM_PER_DEGREE",
    "to_rad",
    "dist_km",
    "dist_m",
    "bbox_area_km2",
    "path_length_km",
    "midpoint",
    "offset_point",
    "project_onto_axis",
    "is_valid_point",
    "resolve_axis_order",
    "parse_point",
    "parse_bbox",
]
