"""Score discovered tracks against the start->end axis and pick a spaced subset."""

from __future__ import annotations

import logging
from typing import List, Sequence

from .config import TRACK_MIN_AXIS_GAP
from .geometry import path_length_km, project_onto_axis
from .models import Point, ScoredCandidate, TrackCandidate

LOGGER = logging.getLogger(__name__)


def score_track(track: TrackCandidate, start: Point, end: Point) -> ScoredCandidate:
    """Project the track's middle coordinate onto the axis and measure its length."""

    representative = track.coords[len(track.coords) // 2]
    fraction, lateral = project_onto_axis(representative, start, end)
    return ScoredCandidate(
        track=track,
        axis_fraction=fraction,
        lateral_offset_km=lateral,
        length_km=path_length_km(track.coords),
    )


def select_tracks(
    tracks: Sequence[TrackCandidate],
    start: Point,
    end: Point,
    *,
    max_tracks: int,
    max_axis_km: float,
    min_axis_gap: float = TRACK_MIN_AXIS_GAP,
) -> List[ScoredCandidate]:
    """Return up to ``max_tracks`` candidates ordered from start to end.

    Candidates further than ``max_axis_km`` from the axis are dropped. The
    rest are taken longest first (discovery order breaks ties) as long as
    each keeps ``min_axis_gap`` of axis fraction away from those already
    accepted.
    """

    if max_tracks <= 0 or not tracks:
        return []

    scored = [score_track(track, start, end) for track in tracks if track.coords]
    near = [c for c in scored if c.lateral_offset_km <= max_axis_km]
    # sorted() is stable, so equal lengths keep discovery order.
    ranked = sorted(near, key=lambda c: -c.length_km)

    accepted: List[ScoredCandidate] = []
    for candidate in ranked:
        if len(accepted) >= max_tracks:
            break
        if any(
            abs(candidate.axis_fraction - other.axis_fraction) < min_axis_gap
            for other in accepted
        ):
            continue
        accepted.append(candidate)

    LOGGER.debug(
        "Selected %d/%d tracks (%d within %.1fkm of axis)",
        len(accepted),
        len(tracks),
        len(near),
        max_axis_km,
    )
    return sorted(accepted, key=lambda c: c.axis_fraction)


__all__ = ["score_track", "select_tracks"]
