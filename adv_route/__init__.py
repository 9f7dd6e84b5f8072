"""Adventure motorcycle route planner (backroads stitching)."""

from .errors import AdvRouteError, DiscoveryError, RoutingError
from .main import main
from .models import PlanOutcome, TrackCandidate
from .planner import PlanRequest, RoutePlanner
from .stitcher import RouteStitcher, StitchConfig

__all__ = [
    "main",
    "AdvRouteError",
    "DiscoveryError",
    "RoutingError",
    "PlanOutcome",
    "TrackCandidate",
    "PlanRequest",
    "RoutePlanner",
    "RouteStitcher",
    "StitchConfig",
]
