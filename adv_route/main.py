"""Command line entry point: plan one route and write GPX / GeoJSON files.

Usage examples:

    # Plan between two lon,lat points (GH_KEY must be set or stored in .env)
    python -m adv_route --start 8.68,49.41 --end 8.95,49.62

    # With vias, a region hint and an output folder
    python -m adv_route --start 8.68,49.41 --end 8.95,49.62 \
        --via 8.80,49.50 --bbox 49.35,8.60,49.70,9.05 --out-dir routes/

    # Negative coordinates may be given as --end=-122.3,37.9 or --end -122.3,37.9
    python -m adv_route --start=-122.42,37.77 --end=-122.27,37.80
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .config import GH_KEY, OUTPUT_DIR, OUTPUT_INCLUDE_CUSTOM_MODEL
from .corridor import CorridorConfig
from .discovery import OverpassClient
from .errors import CoordinateError, RoutingError
from .export import write_route_files
from .geometry import parse_point
from .planner import PlanRequest, RoutePlanner, RoutePlannerConfig
from .routing_client import (
    GraphHopperClient,
    RoutingGate,
    RoutingRateLimiter,
    build_custom_model,
)
from .stitcher import RouteStitcher, StitchConfig

# Options whose value is a "lon,lat" pair that may start with a minus sign.
POINT_OPTIONS = ("--start", "--end", "--via")


def _setup_logging(verbose: bool = False) -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _join_point_values(argv: Sequence[str]) -> List[str]:
    """Glue "--end -122.3,37.9" into "--end=-122.3,37.9".

    argparse reads a dash-prefixed value containing a comma as an unknown
    option, so points west of Greenwich or south of the equator would
    otherwise need the "=" form.
    """

    joined: List[str] = []
    args = list(argv)
    i = 0
    while i < len(args):
        token = args[i]
        if (
            token in POINT_OPTIONS
            and i + 1 < len(args)
            and args[i + 1].startswith("-")
            and "," in args[i + 1]
        ):
            joined.append(f"{token}={args[i + 1]}")
            i += 2
            continue
        joined.append(token)
        i += 1
    return joined


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adv_route",
        description="Plan a backroads-biased motorcycle route between two points.",
    )
    parser.add_argument(
        "--start",
        required=True,
        help="Start point as lon,lat (e.g. --start=-122.4,37.8)",
    )
    parser.add_argument("--end", required=True, help="End point as lon,lat")
    parser.add_argument(
        "--via",
        action="append",
        default=[],
        help="Intermediate point as lon,lat (repeatable)",
    )
    parser.add_argument(
        "--bbox",
        default=None,
        help="Region hint as south,west,north,east (ignored when too large)",
    )
    parser.add_argument(
        "--must-use-areas",
        type=Path,
        default=None,
        help="GeoJSON FeatureCollection of areas where motorways are allowed",
    )
    parser.add_argument("--max-tracks", type=int, default=None)
    parser.add_argument("--axis-km", type=float, default=None)
    parser.add_argument("--time-budget-ms", type=float, default=None)
    parser.add_argument(
        "--auto-order",
        action="store_true",
        help="Detect lon/lat order by magnitude; ambiguous points are rejected",
    )
    parser.add_argument("--out-dir", type=Path, default=Path(OUTPUT_DIR))
    parser.add_argument("--name", default="ADV Route")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def load_must_use_areas(path: Optional[Path]) -> List[Dict[str, Any]]:
    if path is None:
        return []
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict) and payload.get("type") == "FeatureCollection":
        features = payload.get("features") or []
    elif isinstance(payload, list):
        features = payload
    else:
        raise ValueError(f"{path} is not a GeoJSON FeatureCollection")
    return [f for f in features if isinstance(f, dict)]


def build_planner(custom_model: Optional[Dict[str, Any]] = None) -> RoutePlanner:
    """Wire the default clients, gate, stitcher and planner."""

    client = GraphHopperClient(GH_KEY, custom_model=custom_model)
    gate = RoutingGate(client, RoutingRateLimiter())
    stitcher = RouteStitcher(gate, StitchConfig())
    return RoutePlanner(
        stitcher,
        OverpassClient(),
        RoutePlannerConfig(corridor=CorridorConfig()),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(_join_point_values(argv))
    _setup_logging(args.verbose)
    order = "auto" if args.auto_order else "lonlat"

    try:
        start = parse_point(args.start, order)
        end = parse_point(args.end, order)
        vias = [parse_point(via, order) for via in args.via]
    except CoordinateError as exc:
        logging.error("Invalid coordinate: %s", exc)
        return 2

    try:
        custom_model = build_custom_model(load_must_use_areas(args.must_use_areas))
        planner = build_planner(custom_model)
    except (OSError, ValueError) as exc:
        logging.error("Failed to set up planner: %s", exc)
        return 2

    request = PlanRequest(
        start=start,
        end=end,
        vias=vias,
        region_hint_bbox=args.bbox,
        max_tracks=args.max_tracks,
        axis_km=args.axis_km,
        time_budget_ms=args.time_budget_ms,
    )
    try:
        result = planner.plan(request)
    except RoutingError as exc:
        logging.error("Route planning failed: %s", exc)
        return 1

    gpx_path, geojson_path = write_route_files(
        result.route_id, result.outcome, args.out_dir, name=args.name
    )
    summary = result.summary()
    summary["gpx_path"] = str(gpx_path)
    summary["geojson_path"] = str(geojson_path)
    if OUTPUT_INCLUDE_CUSTOM_MODEL:
        summary["custom_model_used"] = custom_model
    print(json.dumps(summary, indent=2))
    return 0
