"""Search corridor around the start/end axis, clamped by pad and area limits."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .config import CORRIDOR_MAX_AREA_KM2, CORRIDOR_PAD_KM_MAX, CORRIDOR_PAD_KM_MIN
from .errors import CoordinateError
from .geometry import KM_PER_DEGREE, bbox_area_km2, dist_km, parse_bbox, to_rad
from .models import BoundingBox, CorridorResult, Point

LOGGER = logging.getLogger(__name__)

# Share of the endpoint distance used as the initial pad.
PAD_DISTANCE_FACTOR = 0.25

# Smallest pad kept when area clamping cannot be met; the box stays non-degenerate.
_PAD_FLOOR_KM = 0.001
_FIT_ITERATIONS = 48


@dataclass(slots=True)
class CorridorConfig:
    pad_km_min: float = CORRIDOR_PAD_KM_MIN
    pad_km_max: float = CORRIDOR_PAD_KM_MAX
    max_area_km2: float = CORRIDOR_MAX_AREA_KM2

    def __post_init__(self) -> None:
        if self.pad_km_min <= 0:
            raise ValueError("pad_km_min must be > 0")
        if self.pad_km_max < self.pad_km_min:
            raise ValueError("pad_km_max must be >= pad_km_min")
        if self.max_area_km2 <= 0:
            raise ValueError("max_area_km2 must be > 0")


def _padded_bbox(start: Point, end: Point, pad_km: float) -> BoundingBox:
    min_lat = min(start[1], end[1])
    max_lat = max(start[1], end[1])
    min_lon = min(start[0], end[0])
    max_lon = max(start[0], end[0])
    mid_lat = (start[1] + end[1]) / 2
    lat_pad = pad_km / KM_PER_DEGREE
    lon_pad = pad_km / (KM_PER_DEGREE * (math.cos(to_rad(mid_lat)) or 1.0))
    return BoundingBox(
        min_lat - lat_pad, min_lon - lon_pad, max_lat + lat_pad, max_lon + lon_pad
    )


def _endpoint_area_km2(start: Point, end: Point) -> float:
    return bbox_area_km2(
        (
            min(start[1], end[1]),
            min(start[0], end[0]),
            max(start[1], end[1]),
            max(start[0], end[0]),
        )
    )


def _fit_pad(start: Point, end: Point, pad_hi: float, max_area_km2: float) -> float:
    """Largest pad in (0, pad_hi] whose box fits ``max_area_km2`` (bisection)."""

    lo, hi = 0.0, pad_hi
    for _ in range(_FIT_ITERATIONS):
        mid = (lo + hi) / 2
        if bbox_area_km2(_padded_bbox(start, end, mid)) <= max_area_km2:
            lo = mid
        else:
            hi = mid
    return max(lo, _PAD_FLOOR_KM)


def corridor(
    start: Point, end: Point, config: CorridorConfig | None = None
) -> CorridorResult:
    """Return the padded search box for a route between ``start`` and ``end``.

    The pad starts at a quarter of the endpoint distance clamped to the
    configured range. When the resulting box is larger than the configured
    maximum area the pad is scaled down once by ``sqrt(max / area)`` and
    ``shrunk`` is set; in that case the pad may fall below ``pad_km_min``.
    """

    cfg = config or CorridorConfig()
    distance = dist_km(start, end)
    pad_km = min(cfg.pad_km_max, max(cfg.pad_km_min, distance * PAD_DISTANCE_FACTOR))
    bbox = _padded_bbox(start, end, pad_km)
    area = bbox_area_km2(bbox)
    shrunk = False
    if area > cfg.max_area_km2:
        scale = math.sqrt(cfg.max_area_km2 / area)
        pad_km *= scale
        bbox = _padded_bbox(start, end, pad_km)
        area = bbox_area_km2(bbox)
        shrunk = True
        bare_area = _endpoint_area_km2(start, end)
        if bare_area > cfg.max_area_km2:
            # No pad can fit; keep the single sqrt pass.
            LOGGER.warning(
                "Endpoint box alone exceeds max corridor area (%.1fkm2 > %.1fkm2)",
                bare_area,
                cfg.max_area_km2,
            )
        elif area > cfg.max_area_km2:
            # Long thin corridors: area is not proportional to pad squared.
            pad_km = _fit_pad(start, end, pad_km, cfg.max_area_km2)
            bbox = _padded_bbox(start, end, pad_km)
            area = bbox_area_km2(bbox)
        LOGGER.debug(
            "Corridor shrunk by %.3f to pad=%.3fkm area=%.1fkm2", scale, pad_km, area
        )
    return CorridorResult(
        bbox=bbox,
        pad_km=pad_km,
        area_km2=area,
        shrunk=shrunk,
        endpoint_distance_km=distance,
    )


def resolve_search_bbox(
    start: Point,
    end: Point,
    config: CorridorConfig | None = None,
    explicit_bbox: Optional[Any] = None,
) -> Tuple[BoundingBox, CorridorResult]:
    """Pick the discovery box: a caller hint when acceptable, else the corridor.

    A hint is kept only when it parses, is no larger than the computed
    corridor and stays within the configured maximum area. Rejections are
    logged and never raised.
    """

    cfg = config or CorridorConfig()
    computed = corridor(start, end, cfg)
    if explicit_bbox is None:
        return computed.bbox, computed
    try:
        hint = parse_bbox(explicit_bbox)
    except CoordinateError as exc:
        LOGGER.warning("Ignoring region hint bbox: %s", exc)
        return computed.bbox, computed
    hint_area = bbox_area_km2(hint)
    if hint_area > computed.area_km2 or hint_area > cfg.max_area_km2:
        LOGGER.warning(
            "Ignoring region hint bbox %s: area %.1fkm2 exceeds corridor %.1fkm2 "
            "(max %.1fkm2)",
            hint.as_tuple(),
            hint_area,
            computed.area_km2,
            cfg.max_area_km2,
        )
        return computed.bbox, computed
    LOGGER.info("Using region hint bbox %s (%.1fkm2)", hint.as_tuple(), hint_area)
    return hint, computed


__all__ = ["CorridorConfig", "corridor", "resolve_search_bbox", "PAD_DISTANCE_FACTOR"]
