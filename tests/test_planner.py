import logging
import string

import pytest

from adv_route.errors import DiscoveryError
from adv_route.models import BoundingBox
from adv_route.planner import (
    PlanRequest,
    RoutePlanner,
    RoutePlannerConfig,
    new_route_id,
)
from adv_route.stitcher import RouteStitcher
from conftest import FakeClock, ScriptedGate


class FakeDiscovery:
    def __init__(self, tracks=None, exc=None):
        self.tracks = list(tracks or [])
        self.exc = exc
        self.boxes = []

    def fetch_tracks(self, bbox):
        self.boxes.append(bbox)
        if self.exc is not None:
            raise self.exc
        return self.tracks


def _planner(discovery, gate=None, **config):
    stitcher = RouteStitcher(gate or ScriptedGate(), clock=FakeClock())
    return RoutePlanner(stitcher, discovery, RoutePlannerConfig(**config))


def test_plan_stitches_discovered_tracks(east_axis, quarter_track):
    start, end = east_axis
    discovery = FakeDiscovery([quarter_track])
    result = _planner(discovery).plan(PlanRequest(start=start, end=end))

    assert result.outcome.used_fallback is False
    assert result.tracks_discovered == 1
    assert discovery.boxes == [result.search_bbox]
    assert result.search_bbox == result.corridor.bbox

    summary = result.summary()
    assert summary["id"] == result.route_id
    assert summary["summary"] == "Backroads-biased"
    assert summary["stats"]["points"] == 5
    assert summary["via_points_used"] == [list(start), list(end)]
    assert summary["corridor"]["shrunk"] is False
    assert {"type": "OSM_track", "ref": 101} in summary["evidence"]


def test_discovery_failure_degrades_to_fallback(east_axis, caplog):
    start, end = east_axis
    discovery = FakeDiscovery(exc=DiscoveryError("Overpass error: busy", status=429))
    with caplog.at_level(logging.WARNING, logger="RoutePlanner"):
        result = _planner(discovery).plan(PlanRequest(start=start, end=end))

    assert result.outcome.used_fallback is True
    assert result.tracks_discovered == 0
    assert result.summary()["summary"] == "Direct route"
    assert "Track discovery failed" in caplog.text


def test_request_overrides_config(east_axis, quarter_track):
    start, end = east_axis
    planner = _planner(FakeDiscovery([quarter_track]), max_tracks=5)
    result = planner.plan(PlanRequest(start=start, end=end, max_tracks=0))
    assert result.outcome.used_fallback is True
    assert result.outcome.diagnostics["fallback_reason"] == (
        "no tracks near the route axis"
    )


def test_region_hint_is_used_for_discovery(east_axis):
    start, end = east_axis
    discovery = FakeDiscovery()
    hint = [49.98, 9.99, 50.02, 10.51]
    result = _planner(discovery).plan(
        PlanRequest(start=start, end=end, region_hint_bbox=hint)
    )
    assert discovery.boxes == [BoundingBox(*hint)]
    assert result.summary()["corridor"]["bbox"] == hint


def test_vias_reported_in_summary(east_axis):
    start, end = east_axis
    via = (10.25, 50.05)
    gate = ScriptedGate()
    result = _planner(FakeDiscovery(), gate).plan(
        PlanRequest(start=start, end=end, vias=[via])
    )
    assert gate.calls == [[start, via, end]]
    assert result.summary()["via_points_used"] == [list(start), list(via), list(end)]


def test_new_route_id_shape():
    ids = {new_route_id() for _ in range(20)}
    assert len(ids) == 20
    for route_id in ids:
        assert len(route_id) == 12
        assert set(route_id) <= set(string.ascii_lowercase + string.digits)
    assert len(new_route_id(4)) == 4


def test_default_config_values():
    cfg = RoutePlannerConfig()
    assert cfg.max_tracks == 5
    assert cfg.axis_km == pytest.approx(10.0)
