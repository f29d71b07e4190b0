"""Web services for route resolution.

SECURITY: These services MUST NOT sign or broadcast transactions. They
quote, rank and simulate; signing happens client-side.
"""

from routeguard.web.services.chain_service import ChainService
from routeguard.web.services.route_service import RouteService

__all__ = [
    "ChainService",
    "RouteService",
]
