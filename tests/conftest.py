"""Global pytest fixtures & helpers.

Adds project root to path and provides a fake clock plus a scripted routing
gate so stitching and planning tests never touch the network.
"""
from __future__ import annotations

import json
import os
import sys
from typing import Callable, List, Optional, Sequence

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from adv_route.geometry import path_length_km
from adv_route.models import Point, RouteResult, TrackCandidate


class FakeClock:
    """Monotonic clock stand-in; ``sleep`` advances time instead of blocking."""

    def __init__(self, start: float = 100.0, advance_on_sleep: bool = True):
        self.now = start
        self.sleeps: List[float] = []
        self._advance_on_sleep = advance_on_sleep

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if self._advance_on_sleep:
            self.now += seconds


def straight_route(points: Sequence[Point]) -> RouteResult:
    """Route result that simply follows the requested points."""
    coords = [tuple(p) for p in points]
    return RouteResult(
        coordinates=coords,
        distance_m=path_length_km(coords) * 1000.0,
        duration_ms=0.0,
    )


class ScriptedGate:
    """Routing gate stand-in. ``responder`` may return a result or raise."""

    def __init__(
        self, responder: Optional[Callable[[List[Point]], RouteResult]] = None
    ):
        self.calls: List[List[Point]] = []
        self._responder = responder or straight_route

    def route(self, points):
        points = [tuple(p) for p in points]
        self.calls.append(points)
        return self._responder(points)


class FakeResp:
    """Minimal fake response matching needed parts of requests.Response."""

    def __init__(self, status_code=200, data=None, headers=None, text=None):
        self.status_code = status_code
        self._data = data
        self.headers = headers or {}
        self._text = text

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data

    @property
    def text(self):
        if self._text is not None:
            return self._text
        return json.dumps(self._data)


class FakeSession:
    """Records POSTs and answers with a canned response or exception."""

    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.posts = []

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response


def make_track(track_id, coords) -> TrackCandidate:
    return TrackCandidate(id=track_id, coords=tuple(tuple(c) for c in coords))


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def scripted_gate():
    return ScriptedGate()


@pytest.fixture
def east_axis():
    """Start/end roughly 36 km apart along latitude 50."""
    return (10.0, 50.0), (10.5, 50.0)


@pytest.fixture
def quarter_track():
    """Track parallel to the east axis whose middle sits at fraction 0.25."""
    return make_track(
        101, [(10.10, 50.01), (10.125, 50.01), (10.15, 50.01)]
    )
