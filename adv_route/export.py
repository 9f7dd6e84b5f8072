"""GPX and GeoJSON serialisation of planned coordinates."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

from .models import PlanOutcome, Point

LOGGER = logging.getLogger(__name__)


def to_gpx(name: str, coords: Sequence[Point]) -> str:
    """Return a GPX 1.1 document with a single track segment."""

    gpx_lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<gpx version="1.1" creator="adv-route" '
        'xmlns="http://www.topografix.com/GPX/1/1">',
        "  <trk>",
        f"    <name>{escape(name)}</name>",
        "    <trkseg>",
    ]
    for lon, lat in coords:
        gpx_lines.append(f'      <trkpt lat="{lat:.6f}" lon="{lon:.6f}"></trkpt>')
    gpx_lines.extend(["    </trkseg>", "  </trk>", "</gpx>"])
    return "\n".join(gpx_lines) + "\n"


def to_geojson(
    coords: Sequence[Point], properties: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """Return a GeoJSON LineString feature."""

    return {
        "type": "Feature",
        "geometry": {
            "type": "LineString",
            "coordinates": [[float(lon), float(lat)] for lon, lat in coords],
        },
        "properties": dict(properties or {}),
    }


def write_route_files(
    route_id: str,
    outcome: PlanOutcome,
    out_dir: str | Path,
    *,
    name: str = "ADV Route",
) -> Tuple[Path, Path]:
    """Write ``<route_id>.gpx`` and ``<route_id>.geojson`` into ``out_dir``."""

    directory = Path(out_dir)
    directory.mkdir(parents=True, exist_ok=True)
    gpx_path = directory / f"{route_id}.gpx"
    geojson_path = directory / f"{route_id}.geojson"
    gpx_path.write_text(to_gpx(name, outcome.coordinates), encoding="utf-8")
    feature = to_geojson(
        outcome.coordinates,
        {
            "name": name,
            "distance_km": round(outcome.distance_km, 3),
            "used_fallback": outcome.used_fallback,
        },
    )
    geojson_path.write_text(json.dumps(feature), encoding="utf-8")
    LOGGER.info("Wrote %s and %s", gpx_path, geojson_path)
    return gpx_path, geojson_path


__all__ = [
    "to_gpx",
    "to_geojson",
    "write_route_files",
]
