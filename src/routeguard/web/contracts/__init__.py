"""Request and response contracts for the web layer.

These Pydantic models define the API interface for web clients.
"""

from routeguard.web.contracts.chains import (
    ChainInfo,
    ChainListResponse,
    IntermediaryInfo,
    VenueInfo,
)
from routeguard.web.contracts.routes import (
    AttemptInfo,
    ResolveRouteRequest,
    ResolveRouteResponse,
    RouteInfo,
    SimulationInfo,
    TokenRef,
)

__all__ = [
    # Route contracts
    "AttemptInfo",
    "ResolveRouteRequest",
    "ResolveRouteResponse",
    "RouteInfo",
    "SimulationInfo",
    "TokenRef",
    # Chain contracts
    "ChainInfo",
    "ChainListResponse",
    "IntermediaryInfo",
    "VenueInfo",
]
