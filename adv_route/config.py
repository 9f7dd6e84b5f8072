"""Central configuration for the adventure route planner.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Secrets are read from environment variables (optionally
via a local `.env`).
"""

from __future__ import annotations

import importlib
import os


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except ImportError:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# Routing service (GraphHopper)
# ---------------------------------------------------------------------------
GRAPHHOPPER_URL = os.getenv("GRAPHHOPPER_URL", "https://graphhopper.com/api/1/route")

# API key pulled from the environment. Do not hardcode secrets.
GH_KEY = os.getenv("GH_KEY", "")

# Vehicle profile sent with every route request.
ROUTING_PROFILE = os.getenv("ROUTING_PROFILE", "car")
ROUTING_LOCALE = os.getenv("ROUTING_LOCALE", "en")


# ---------------------------------------------------------------------------
# Spatial discovery service (Overpass)
# ---------------------------------------------------------------------------
OVERPASS_URL = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")

# Server-side query timeout (seconds) embedded in the Overpass QL header.
OVERPASS_QUERY_TIMEOUT = _env_int("OVERPASS_QUERY_TIMEOUT", 60)

# Surface and tracktype patterns that count as rideable unpaved ways.
OVERPASS_TRACK_SURFACES = os.getenv(
    "OVERPASS_TRACK_SURFACES", "gravel|compacted|fine_gravel|ground|dirt"
)
OVERPASS_TRACK_TYPES = os.getenv("OVERPASS_TRACK_TYPES", "grade1|grade2|grade3")


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
HTTP_POOL_CONNECTIONS = 10
HTTP_POOL_MAXSIZE = 10

# urllib3 retries for 5xx responses (429 is handled by the routing gate).
HTTP_RETRY_TOTAL = _env_int("HTTP_RETRY_TOTAL", 3)
HTTP_USER_AGENT = os.getenv("HTTP_USER_AGENT", "adv-route-planner/0.1")

# Request timeout in seconds. Overpass gets a little longer than its own
# server-side timeout so the server gives up first.
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 30)
OVERPASS_REQUEST_TIMEOUT = OVERPASS_QUERY_TIMEOUT + 10


# ---------------------------------------------------------------------------
# Corridor
# ---------------------------------------------------------------------------
# Padding (km) applied around the start/end box, before area clamping.
CORRIDOR_PAD_KM_MIN = _env_float("CORRIDOR_PAD_KM_MIN", 8.0)
CORRIDOR_PAD_KM_MAX = _env_float("CORRIDOR_PAD_KM_MAX", 25.0)

# Largest search area sent to the discovery service.
CORRIDOR_MAX_AREA_KM2 = _env_float("CORRIDOR_MAX_AREA_KM2", 2500.0)


# ---------------------------------------------------------------------------
# Track selection and stitching
# ---------------------------------------------------------------------------
# Maximum number of off-road tracks attached to a single route.
STITCH_MAX_TRACKS = _env_int("STITCH_MAX_TRACKS", 5)

# Tracks whose midpoint lies further than this from the start->end line are ignored.
STITCH_AXIS_KM = _env_float("STITCH_AXIS_KM", 10.0)

# Minimum spacing (fraction of the axis) between two selected tracks.
TRACK_MIN_AXIS_GAP = _env_float("TRACK_MIN_AXIS_GAP", 0.1)

# A track joins the route when its entry lies within this radius of a connector end.
# Values below STITCH_JOIN_RADIUS_FLOOR_M are raised to the floor.
STITCH_JOIN_RADIUS_M = _env_float("STITCH_JOIN_RADIUS_M", 300.0)
STITCH_JOIN_RADIUS_FLOOR_M = 50.0

# Hops shorter than this are collapsed (cleaning) or skipped (connecting).
STITCH_MIN_SEGMENT_M = _env_float("STITCH_MIN_SEGMENT_M", 50.0)

# Rescue attempt caps: per anchor pair and across the whole request.
STITCH_RESCUE_PER_PAIR = _env_int("STITCH_RESCUE_PER_PAIR", 3)
STITCH_RESCUE_TOTAL = _env_int("STITCH_RESCUE_TOTAL", 8)

# Maximum offset (metres) applied to a rescue midpoint on each axis.
STITCH_RESCUE_JITTER_M = _env_float("STITCH_RESCUE_JITTER_M", 40.0)

# Wall-clock budget for one stitch before the remaining chain is routed directly.
STITCH_TIME_BUDGET_MS = _env_int("STITCH_TIME_BUDGET_MS", 20000)


# ---------------------------------------------------------------------------
# Routing rate limiter and cache
# ---------------------------------------------------------------------------
# ROUTING_MAX_RPS caps outgoing routing calls per second (process wide).
ROUTING_MAX_RPS = _env_float("ROUTING_MAX_RPS", 2.0)
# ROUTING_JITTER_RANGE adds random delay (seconds) on top of the minimum gap.
ROUTING_JITTER_RANGE = (0.0, _env_float("ROUTING_JITTER_MAX_SECONDS", 0.15))
# ROUTING_RATE_LIMIT_DELAY_S is the pause applied on 429 without a server hint.
ROUTING_RATE_LIMIT_DELAY_S = _env_float("ROUTING_RATE_LIMIT_DELAY_S", 2.0)

# Memoised two-point routes. Entries expire so long-running processes stay bounded.
ROUTE_CACHE_SIZE = _env_int("ROUTE_CACHE_SIZE", 2048)
ROUTE_CACHE_TTL_SECONDS = _env_int("ROUTE_CACHE_TTL_SECONDS", 6 * 3600)
# Decimal places kept when building route cache keys (5 ~ 1 m).
ROUTE_CACHE_PRECISION = 5


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------
# Directory (absolute or relative) where the CLI writes GPX / GeoJSON files.
OUTPUT_DIR = os.getenv("ADV_ROUTE_OUTPUT_DIR", "routes")

# Include the GraphHopper custom model in the CLI summary output.
OUTPUT_INCLUDE_CUSTOM_MODEL = _env_bool("OUTPUT_INCLUDE_CUSTOM_MODEL", False)
