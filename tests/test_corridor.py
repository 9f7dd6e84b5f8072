import logging

import pytest

from adv_route.corridor import (
    PAD_DISTANCE_FACTOR,
    CorridorConfig,
    corridor,
    resolve_search_bbox,
)
from adv_route.geometry import bbox_area_km2, dist_km

NO_AREA_CAP = CorridorConfig(max_area_km2=1e9)


def test_short_route_uses_minimum_pad():
    result = corridor((10.0, 50.0), (10.01, 50.0))
    assert result.pad_km == pytest.approx(8.0)
    assert result.shrunk is False
    assert result.bbox.contains((10.0, 50.0))
    assert result.bbox.contains((10.01, 50.0))
    # Pad applies on both sides: the box is at least 2 * pad tall.
    south, _, north, _ = result.bbox.as_tuple()
    assert (north - south) * 111.0 == pytest.approx(16.0, rel=1e-6)


def test_medium_route_pad_scales_with_distance():
    start, end = (10.0, 50.0), (10.0, 50.54)
    result = corridor(start, end, NO_AREA_CAP)
    assert result.pad_km == pytest.approx(PAD_DISTANCE_FACTOR * dist_km(start, end))
    assert result.endpoint_distance_km == pytest.approx(dist_km(start, end))


def test_long_route_pad_capped_at_maximum():
    result = corridor((10.0, 50.0), (12.0, 51.5), NO_AREA_CAP)
    assert result.pad_km == pytest.approx(25.0)
    assert result.shrunk is False


def test_long_thin_corridor_is_shrunk_below_max_area():
    cfg = CorridorConfig(max_area_km2=1000.0)
    result = corridor((0.0, 0.0), (10.0, 0.0), cfg)
    assert result.shrunk is True
    assert result.area_km2 <= 1000.0
    assert bbox_area_km2(result.bbox) == pytest.approx(result.area_km2)
    # The area clamp may push the pad below the configured minimum.
    assert result.pad_km < cfg.pad_km_min


def test_oversized_endpoint_box_keeps_single_shrink_pass(caplog):
    start, end = (8.68, 49.41), (9.60, 50.20)
    with caplog.at_level(logging.WARNING, logger="adv_route.corridor"):
        result = corridor(start, end)
    assert result.shrunk is True
    assert "Endpoint box alone exceeds" in caplog.text
    assert result.area_km2 > 2500.0
    assert result.area_km2 == pytest.approx(bbox_area_km2(result.bbox))
    # Only the sqrt pass ran: the pad is well above the bisection floor.
    assert 1.0 < result.pad_km < 25.0


def test_default_cap_shrinks_and_respects_area():
    result = corridor((8.68, 49.41), (9.10, 49.80))
    assert result.shrunk is True
    assert result.area_km2 <= 2500.0 + 1e-6


def test_corridor_is_order_invariant():
    a, b = (8.68, 49.41), (8.95, 49.62)
    forward = corridor(a, b)
    backward = corridor(b, a)
    assert forward.bbox.as_tuple() == pytest.approx(backward.bbox.as_tuple())
    assert forward.pad_km == pytest.approx(backward.pad_km)


def test_config_validation():
    with pytest.raises(ValueError):
        CorridorConfig(pad_km_min=0)
    with pytest.raises(ValueError):
        CorridorConfig(pad_km_min=10, pad_km_max=5)
    with pytest.raises(ValueError):
        CorridorConfig(max_area_km2=0)


def test_resolve_search_bbox_without_hint_returns_corridor():
    bbox, result = resolve_search_bbox((10.0, 50.0), (10.1, 50.0))
    assert bbox == result.bbox


def test_resolve_search_bbox_accepts_small_hint(caplog):
    hint = [49.98, 9.99, 50.02, 10.11]
    with caplog.at_level(logging.INFO, logger="adv_route.corridor"):
        bbox, result = resolve_search_bbox((10.0, 50.0), (10.1, 50.0), None, hint)
    assert bbox.as_tuple() == tuple(hint)
    assert bbox != result.bbox
    assert "Using region hint" in caplog.text


def test_resolve_search_bbox_rejects_large_or_bad_hint(caplog):
    start, end = (10.0, 50.0), (10.1, 50.0)
    with caplog.at_level(logging.WARNING, logger="adv_route.corridor"):
        big, result = resolve_search_bbox(start, end, None, [40, 0, 60, 20])
        bad, _ = resolve_search_bbox(start, end, None, "not,a,bbox")
    assert big == result.bbox
    assert bad == result.bbox
    assert caplog.text.count("Ignoring region hint") == 2
