"""Routing service components (rate limiter, session, GraphHopper adapter, gate)."""

from .gate import RouteProvider, RoutingGate  # noqa: F401
from .graphhopper import GraphHopperClient, build_custom_model  # noqa: F401
from .rate_limiter import RoutingRateLimiter  # noqa: F401
from .session import create_session, get_default_session  # noqa: F401
