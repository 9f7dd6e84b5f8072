"""Route stitching: paved connectors between anchors, off-road tracks in between.

The stitcher runs one plan request through an explicit state machine::

    CLEANING -> SELECTING -> CONNECTING -> MERGING -> DONE
         \\            \\            \\          \\
          +------------+------------+----------+--> FALLBACK -> DONE

CLEANING drops malformed anchors and collapses near-duplicates. SELECTING
scores the discovered tracks and inserts the chosen track entries into the
anchor chain. CONNECTING routes each anchor pair through the routing gate,
attaching a track whenever a connector ends inside the join radius of the
next track's first coordinate. Failed pairs are rescued with a jittered
midpoint, then by skipping the target anchor. When the time budget runs out
the rest of the chain is routed in one call. MERGING flattens the segments.
FALLBACK routes the user anchors directly and is the only state whose
failure reaches the caller.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from .config import (
    STITCH_AXIS_KM,
    STITCH_JOIN_RADIUS_FLOOR_M,
    STITCH_JOIN_RADIUS_M,
    STITCH_MAX_TRACKS,
    STITCH_MIN_SEGMENT_M,
    STITCH_RESCUE_JITTER_M,
    STITCH_RESCUE_PER_PAIR,
    STITCH_RESCUE_TOTAL,
    STITCH_TIME_BUDGET_MS,
    TRACK_MIN_AXIS_GAP,
)
from .errors import RoutingError
from .geometry import (
    dist_m,
    is_valid_point,
    midpoint,
    offset_point,
    path_length_km,
    project_onto_axis,
)
from .models import (
    Anchor,
    AnchorOrigin,
    ConnectorSegment,
    EvidenceEntry,
    PlanOutcome,
    Point,
    RouteResult,
    ScoredCandidate,
    Segment,
    TrackCandidate,
    TrackSegment,
)
from .routing_client.gate import RouteProvider
from .track_selector import select_tracks

# Decimal places of a rescue midpoint that identify a repeated jitter.
_JITTER_SIGNATURE_PRECISION = 6


class StitchState(str, Enum):
    CLEANING = "cleaning"
    SELECTING = "selecting"
    CONNECTING = "connecting"
    MERGING = "merging"
    FALLBACK = "fallback"
    DONE = "done"


TRANSITIONS: Dict[StitchState, FrozenSet[StitchState]] = {
    StitchState.CLEANING: frozenset({StitchState.SELECTING, StitchState.FALLBACK}),
    StitchState.SELECTING: frozenset({StitchState.CONNECTING, StitchState.FALLBACK}),
    StitchState.CONNECTING: frozenset({StitchState.MERGING, StitchState.FALLBACK}),
    StitchState.MERGING: frozenset({StitchState.DONE, StitchState.FALLBACK}),
    StitchState.FALLBACK: frozenset({StitchState.DONE}),
    StitchState.DONE: frozenset(),
}


class PairOutcome(str, Enum):
    DIRECT = "direct"
    RESCUED = "rescued"
    SKIPPED = "skipped"
    ANCHOR_SKIPPED = "anchor_skipped"
    BUDGET_TAIL = "budget_tail"


@dataclass(slots=True)
class PairReport:
    """How one anchor pair was connected. ``attempts`` counts routing calls."""

    index: int
    outcome: PairOutcome
    attempts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "outcome": self.outcome.value,
            "attempts": self.attempts,
        }


@dataclass(slots=True)
class StitchConfig:
    join_radius_m: float = STITCH_JOIN_RADIUS_M
    min_segment_m: float = STITCH_MIN_SEGMENT_M
    rescue_per_pair: int = STITCH_RESCUE_PER_PAIR
    rescue_total: int = STITCH_RESCUE_TOTAL
    rescue_jitter_m: float = STITCH_RESCUE_JITTER_M
    min_axis_gap: float = TRACK_MIN_AXIS_GAP

    def __post_init__(self) -> None:
        self.join_radius_m = max(self.join_radius_m, STITCH_JOIN_RADIUS_FLOOR_M)
        if self.min_segment_m < 0:
            raise ValueError("min_segment_m must be >= 0")
        if self.rescue_per_pair < 0 or self.rescue_total < 0:
            raise ValueError("rescue caps must be >= 0")


class _OverBudget:
    """Marker returned by the rescue loop when the time budget ran out."""


_OVER_BUDGET = _OverBudget()


@dataclass(slots=True)
class _StitchRun:
    """Mutable state of a single stitch request."""

    start: Any
    end: Any
    vias: Sequence[Any]
    tracks: Sequence[TrackCandidate]
    max_tracks: int
    axis_km: float
    time_budget_ms: Optional[float]
    started_at: float
    state: StitchState = StitchState.CLEANING
    history: List[StitchState] = field(default_factory=list)
    user_anchors: List[Anchor] = field(default_factory=list)
    anchors: List[Anchor] = field(default_factory=list)
    selected: List[ScoredCandidate] = field(default_factory=list)
    segments: List[Segment] = field(default_factory=list)
    pairs: List[PairReport] = field(default_factory=list)
    attached: List[Any] = field(default_factory=list)
    skipped_anchors: List[int] = field(default_factory=list)
    last_jitter: Dict[int, Tuple[float, float]] = field(default_factory=dict)
    cursor: Optional[Point] = None
    track_cursor: int = 0
    rescue_used: int = 0
    auto_anchors: int = 0
    routing_calls: int = 0
    budget_hit: bool = False
    fallback_reason: Optional[str] = None
    outcome: Optional[PlanOutcome] = None


def merge_segments(segments: Sequence[Segment]) -> List[Point]:
    """Flatten segments, dropping a leading point equal to the previous end."""

    coords: List[Point] = []
    for segment in segments:
        points = segment.coords
        if coords and points and tuple(points[0]) == tuple(coords[-1]):
            points = points[1:]
        coords.extend(tuple(p) for p in points)
    return coords


class RouteStitcher:
    """Build a single backroads-biased path from anchors and discovered tracks."""

    def __init__(
        self,
        gate: RouteProvider,
        config: StitchConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self._gate = gate
        self.config = config or StitchConfig()
        self._clock = clock
        self._rng = rng or random.Random()
        self._log = logging.getLogger(self.__class__.__name__)
        self._handlers: Dict[StitchState, Callable[[_StitchRun], StitchState]] = {
            StitchState.CLEANING: self._clean,
            StitchState.SELECTING: self._select,
            StitchState.CONNECTING: self._connect,
            StitchState.MERGING: self._merge,
            StitchState.FALLBACK: self._fallback,
        }

    def stitch(
        self,
        start: Point,
        end: Point,
        vias: Sequence[Point] = (),
        tracks: Sequence[TrackCandidate] = (),
        max_tracks_to_use: int = STITCH_MAX_TRACKS,
        axis_km: float = STITCH_AXIS_KM,
        time_budget_ms: Optional[float] = STITCH_TIME_BUDGET_MS,
    ) -> PlanOutcome:
        """Return the stitched path, or the direct fallback route.

        Raises :class:`RoutingError` only when the fallback route itself
        cannot be computed.
        """

        run = _StitchRun(
            start=start,
            end=end,
            vias=list(vias or ()),
            tracks=list(tracks or ()),
            max_tracks=max_tracks_to_use,
            axis_km=axis_km,
            time_budget_ms=time_budget_ms,
            started_at=self._clock(),
        )
        run.history.append(run.state)
        while run.state is not StitchState.DONE:
            next_state = self._handlers[run.state](run)
            self._transition(run, next_state)
        if run.outcome is None:
            raise RuntimeError("Stitch finished without an outcome")
        run.outcome.diagnostics["states"] = [state.value for state in run.history]
        return run.outcome

    # ------------------------------------------------------------------
    # State machine plumbing
    # ------------------------------------------------------------------
    def _transition(self, run: _StitchRun, next_state: StitchState) -> None:
        if next_state not in TRANSITIONS[run.state]:
            raise RuntimeError(
                f"Illegal stitch transition {run.state.value} -> {next_state.value}"
            )
        self._log.debug("Stitch state %s -> %s", run.state.value, next_state.value)
        run.state = next_state
        run.history.append(next_state)

    @staticmethod
    def _cursor(run: _StitchRun) -> Point:
        if run.cursor is None:
            raise RuntimeError(f"No routing cursor in state {run.state.value}")
        return run.cursor

    def _over_budget(self, run: _StitchRun) -> bool:
        if run.time_budget_ms is None:
            return False
        elapsed_ms = (self._clock() - run.started_at) * 1000.0
        return elapsed_ms > run.time_budget_ms

    def _to_fallback(self, run: _StitchRun, reason: str) -> StitchState:
        run.fallback_reason = reason
        return StitchState.FALLBACK

    # ------------------------------------------------------------------
    # CLEANING
    # ------------------------------------------------------------------
    def _clean(self, run: _StitchRun) -> StitchState:
        raw: List[Tuple[Any, AnchorOrigin]] = [(run.start, AnchorOrigin.START)]
        raw.extend((via, AnchorOrigin.VIA) for via in run.vias)
        raw.append((run.end, AnchorOrigin.END))

        anchors: List[Anchor] = []
        for value, origin in raw:
            if not is_valid_point(value):
                self._log.debug("Dropping malformed %s anchor %r", origin.value, value)
                continue
            point = (float(value[0]), float(value[1]))
            anchor = Anchor(point=point, origin=origin)
            if anchors and dist_m(anchors[-1].point, point) < self.config.min_segment_m:
                previous = anchors[-1]
                # The end survives a collapse so the route still finishes there.
                if origin is AnchorOrigin.END and previous.origin is AnchorOrigin.VIA:
                    anchors[-1] = anchor
                self._log.debug(
                    "Collapsed %s anchor into preceding %s",
                    origin.value,
                    previous.origin.value,
                )
                continue
            anchors.append(anchor)

        run.user_anchors = anchors
        if len(anchors) < 2:
            return self._to_fallback(run, "fewer than two usable anchors")
        return StitchState.SELECTING

    # ------------------------------------------------------------------
    # SELECTING
    # ------------------------------------------------------------------
    def _select(self, run: _StitchRun) -> StitchState:
        if not run.tracks:
            return self._to_fallback(run, "no tracks discovered")
        first = run.user_anchors[0].point
        last = run.user_anchors[-1].point
        run.selected = select_tracks(
            run.tracks,
            first,
            last,
            max_tracks=run.max_tracks,
            max_axis_km=run.axis_km,
            min_axis_gap=self.config.min_axis_gap,
        )
        if not run.selected:
            return self._to_fallback(run, "no tracks near the route axis")
        run.anchors = self._insert_track_anchors(run.user_anchors, run.selected)
        self._log.info(
            "Selected %d of %d tracks; %d anchors to connect",
            len(run.selected),
            len(run.tracks),
            len(run.anchors),
        )
        return StitchState.CONNECTING

    @staticmethod
    def _insert_track_anchors(
        user_anchors: Sequence[Anchor], selected: Sequence[ScoredCandidate]
    ) -> List[Anchor]:
        """Insert each track entry before the first user anchor further along."""

        first = user_anchors[0].point
        last = user_anchors[-1].point
        anchors: List[Anchor] = [user_anchors[0]]
        pending = list(selected)
        for anchor in user_anchors[1:]:
            if anchor.origin is AnchorOrigin.END:
                fraction = float("inf")
            else:
                fraction, _ = project_onto_axis(anchor.point, first, last)
            while pending and pending[0].axis_fraction <= fraction:
                track = pending.pop(0)
                entry = Anchor(
                    point=track.coords[0], origin=AnchorOrigin.TRACK, track=track
                )
                anchors.append(entry)
            anchors.append(anchor)
        return anchors

    # ------------------------------------------------------------------
    # CONNECTING
    # ------------------------------------------------------------------
    def _connect(self, run: _StitchRun) -> StitchState:
        anchors = run.anchors
        run.cursor = anchors[0].point
        i = 0
        while i < len(anchors) - 1:
            if self._over_budget(run):
                return self._route_tail(run, i + 1)
            target = anchors[i + 1]

            if target.track is not None and target.track.id in run.attached:
                # Joined early from a preceding connector; the cursor is past it.
                run.pairs.append(PairReport(i, PairOutcome.SKIPPED))
                i += 1
                continue

            if dist_m(run.cursor, target.point) < self.config.min_segment_m:
                self._log.debug(
                    "Pair %d: hop below %.0fm, skipping", i, self.config.min_segment_m
                )
                run.pairs.append(PairReport(i, PairOutcome.SKIPPED))
                self._attach_track(run, target)
                i += 1
                continue

            report = PairReport(i, PairOutcome.DIRECT)
            run.pairs.append(report)
            result: RouteResult | _OverBudget | None = self._call(
                run, [run.cursor, target.point], report
            )
            if result is None:
                result = self._rescue(run, i, target, report)
            if isinstance(result, _OverBudget):
                return self._route_tail(run, i + 1)
            if result is not None:
                self._append_connector(run, result)
                self._attach_track(run, target)
                i += 1
                continue

            # Rescue exhausted: try once more without the target anchor.
            skip_to = i + 2
            if target.origin is AnchorOrigin.END or skip_to >= len(anchors):
                return self._to_fallback(run, f"pair {i} could not be routed")
            report.outcome = PairOutcome.ANCHOR_SKIPPED
            result = self._call(run, [run.cursor, anchors[skip_to].point], report)
            if result is None:
                return self._to_fallback(
                    run, f"pair {i} could not be routed, even skipping anchor {i + 1}"
                )
            self._log.warning(
                "Pair %d: dropped %s anchor %d after failed rescue",
                i,
                target.origin.value,
                i + 1,
            )
            run.skipped_anchors.append(i + 1)
            self._pass_track(run, target)
            self._append_connector(run, result)
            self._attach_track(run, anchors[skip_to])
            i = skip_to
        return StitchState.MERGING

    def _call(
        self, run: _StitchRun, points: List[Point], report: PairReport
    ) -> Optional[RouteResult]:
        report.attempts += 1
        run.routing_calls += 1
        try:
            return self._gate.route(points)
        except RoutingError as exc:
            self._log.warning(
                "Pair %d attempt %d failed (%d points): %s",
                report.index,
                report.attempts,
                len(points),
                exc,
            )
            return None

    def _rescue(
        self, run: _StitchRun, index: int, target: Anchor, report: PairReport
    ) -> RouteResult | _OverBudget | None:
        """Retry a failed pair through a jittered midpoint."""

        origin = self._cursor(run)
        jitter = self.config.rescue_jitter_m
        for _ in range(self.config.rescue_per_pair):
            if run.rescue_used >= self.config.rescue_total:
                self._log.warning(
                    "Pair %d: total rescue cap (%d) reached",
                    index,
                    self.config.rescue_total,
                )
                return None
            if self._over_budget(run):
                return _OVER_BUDGET
            mid = offset_point(
                midpoint(origin, target.point),
                self._rng.uniform(-jitter, jitter),  # nosec B311
                self._rng.uniform(-jitter, jitter),  # nosec B311
            )
            signature = (
                round(mid[0], _JITTER_SIGNATURE_PRECISION),
                round(mid[1], _JITTER_SIGNATURE_PRECISION),
            )
            if run.last_jitter.get(index) == signature:
                self._log.warning("Pair %d: rescue stalled on repeated jitter", index)
                return None
            run.last_jitter[index] = signature
            run.rescue_used += 1
            result = self._call(run, [origin, mid, target.point], report)
            if result is not None:
                report.outcome = PairOutcome.RESCUED
                run.auto_anchors += 1
                self._log.info("Pair %d rescued on attempt %d", index, report.attempts)
                return result
        return None

    def _route_tail(self, run: _StitchRun, next_index: int) -> StitchState:
        """Time budget spent: route cursor -> remaining user anchors in one call."""

        cursor = self._cursor(run)
        run.budget_hit = True
        remaining = [
            a.point
            for a in run.anchors[next_index:]
            if a.origin is not AnchorOrigin.TRACK
        ]
        points = [cursor, *remaining]
        self._log.warning(
            "Stitch time budget (%sms) exhausted; routing %d remaining anchors",
            run.time_budget_ms,
            len(remaining),
        )
        report = PairReport(next_index - 1, PairOutcome.BUDGET_TAIL)
        run.pairs.append(report)
        result = self._call(run, points, report)
        if result is None:
            return self._to_fallback(run, "direct route after time budget failed")
        self._append_connector(run, result)
        return StitchState.MERGING

    def _append_connector(self, run: _StitchRun, result: RouteResult) -> None:
        coords = list(result.coordinates)
        run.segments.append(ConnectorSegment(coords=coords))
        run.cursor = coords[-1]

    def _attach_track(self, run: _StitchRun, reached: Anchor) -> None:
        """Append the next selected track when its entry is within the join radius."""

        if run.track_cursor >= len(run.selected):
            return
        track = run.selected[run.track_cursor]
        gap_m = dist_m(self._cursor(run), track.coords[0])
        if gap_m <= self.config.join_radius_m:
            run.segments.append(
                TrackSegment(track_id=track.id, coords=list(track.coords))
            )
            run.attached.append(track.id)
            run.track_cursor += 1
            run.cursor = track.coords[-1]
            self._log.debug("Attached track %s (entry %.0fm away)", track.id, gap_m)
        elif reached.track is track:
            self._log.info(
                "Track %s entry %.0fm from connector end (radius %.0fm); not attached",
                track.id,
                gap_m,
                self.config.join_radius_m,
            )
            run.track_cursor += 1

    def _pass_track(self, run: _StitchRun, dropped: Anchor) -> None:
        if (
            dropped.track is not None
            and run.track_cursor < len(run.selected)
            and run.selected[run.track_cursor] is dropped.track
        ):
            run.track_cursor += 1

    # ------------------------------------------------------------------
    # MERGING
    # ------------------------------------------------------------------
    def _merge(self, run: _StitchRun) -> StitchState:
        coords = merge_segments(run.segments)
        if len(coords) < 2:
            return self._to_fallback(run, "stitching produced no path")
        evidence = [EvidenceEntry("OSM_track", track_id) for track_id in run.attached]
        evidence.append(EvidenceEntry("auto_anchors", run.auto_anchors))
        evidence.append(
            EvidenceEntry("GH_ok", "budget_tail" if run.budget_hit else "stitched")
        )
        run.outcome = PlanOutcome(
            coordinates=coords,
            evidence=evidence,
            used_fallback=False,
            distance_km=path_length_km(coords),
            diagnostics=self._diagnostics(run),
        )
        self._log.info(
            "Stitched %d segments (%d tracks, %d rescued anchors, %d routing calls)",
            len(run.segments),
            len(run.attached),
            run.auto_anchors,
            run.routing_calls,
        )
        return StitchState.DONE

    # ------------------------------------------------------------------
    # FALLBACK
    # ------------------------------------------------------------------
    def _fallback(self, run: _StitchRun) -> StitchState:
        points = [a.point for a in run.user_anchors]
        if len(points) < 2:
            points = [
                (float(p[0]), float(p[1]))
                for p in (run.start, run.end)
                if is_valid_point(p)
            ]
        if len(points) < 2:
            raise RoutingError("Not enough valid points to compute a route")

        self._log.warning("Falling back to direct route: %s", run.fallback_reason)
        run.routing_calls += 1
        try:
            result = self._gate.route(points)
        except RoutingError as exc:
            if len(points) <= 2:
                raise
            self._log.warning(
                "Fallback through %d anchors failed (%s); trying start -> end",
                len(points),
                exc,
            )
            run.routing_calls += 1
            result = self._gate.route([points[0], points[-1]])

        coords = list(result.coordinates)
        run.outcome = PlanOutcome(
            coordinates=coords,
            evidence=[
                EvidenceEntry("fallback", run.fallback_reason),
                EvidenceEntry("GH_ok", "paths[0]"),
            ],
            used_fallback=True,
            distance_km=(
                result.distance_m / 1000.0
                if result.distance_m
                else path_length_km(coords)
            ),
            diagnostics=self._diagnostics(run),
        )
        return StitchState.DONE

    def _diagnostics(self, run: _StitchRun) -> Dict[str, Any]:
        return {
            "states": [state.value for state in run.history],
            "pairs": [pair.to_dict() for pair in run.pairs],
            "selected_tracks": [track.id for track in run.selected],
            "attached_tracks": list(run.attached),
            "skipped_anchors": list(run.skipped_anchors),
            "rescue_attempts": run.rescue_used,
            "auto_anchors": run.auto_anchors,
            "routing_calls": run.routing_calls,
            "time_budget_hit": run.budget_hit,
            "fallback_reason": run.fallback_reason,
            "elapsed_ms": (self._clock() - run.started_at) * 1000.0,
        }


__all__ = [
    "StitchState",
    "TRANSITIONS",
    "PairOutcome",
    "PairReport",
    "StitchConfig",
    "RouteStitcher",
    "merge_segments",
]
