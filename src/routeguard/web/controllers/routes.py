"""Route resolution API endpoints."""

from functools import lru_cache

from fastapi import APIRouter, Depends, Response

from routeguard.errors import ErrorKind
from routeguard.factory import create_engine
from routeguard.web.contracts.routes import ResolveRouteRequest, ResolveRouteResponse
from routeguard.web.services.route_service import RouteService

router = APIRouter(prefix="/routes", tags=["routes"])

ERROR_STATUS = {
    ErrorKind.INVALID_REQUEST.value: 400,
    ErrorKind.REQUEST_SUPERSEDED.value: 409,
    ErrorKind.UPSTREAM_TIMEOUT.value: 504,
}


@lru_cache
def get_route_service() -> RouteService:
    """Process-wide route service (overridden in tests)."""
    return RouteService(create_engine())


@router.post("/resolve", response_model=ResolveRouteResponse)
async def resolve_route(
    request: ResolveRouteRequest,
    response: Response,
    service: RouteService = Depends(get_route_service),
) -> ResolveRouteResponse:
    """Resolve, rank and simulate a swap route.

    Returns the best route (or cross-chain plan) with the applied slippage
    and simulation result. This is a READ-ONLY operation - nothing is
    signed or broadcast.
    """
    result = await service.resolve(request)
    if not result.success:
        response.status_code = ERROR_STATUS.get(result.error_kind, 422)
    return result
