"""Swap resolution engine.

request -> auto/fixed slippage resolution (aggregation inside) -> expiry check
-> simulation -> response for client-side signing.
"""

import logging
import time
from dataclasses import replace
from typing import Callable, Iterable, Optional

from web3 import Web3

from routeguard.chains import IntermediaryCatalog
from routeguard.errors import InvalidRequest
from routeguard.models import SlippageMode, SwapRequest, SwapResponse
from routeguard.simulation import SimulationValidator
from routeguard.slippage import AutoSlippageController
from routeguard.utils.deadline import Deadline
from routeguard.utils.supervisor import RequestSupervisor

logger = logging.getLogger(__name__)

MAX_HOPS_LIMIT = 3


def validate_request(request: SwapRequest, catalog: Optional[IntermediaryCatalog] = None) -> None:
    """Reject malformed requests before any upstream call is made.

    With a catalog, native assets must have a registered wrapped token and a
    same-chain request must not be a plain wrap or unwrap.
    """
    if request.amount_in <= 0:
        raise InvalidRequest("amount_in must be positive")
    if request.from_token == request.to_token:
        raise InvalidRequest("from_token and to_token are the same token")
    for token in (request.from_token, request.to_token):
        if not Web3.is_address(token.address):
            raise InvalidRequest(f"Invalid token address: {token.address}")
    if not Web3.is_address(request.recipient_address):
        raise InvalidRequest(f"Invalid recipient address: {request.recipient_address}")
    if request.sender_address is not None and not Web3.is_address(request.sender_address):
        raise InvalidRequest(f"Invalid sender address: {request.sender_address}")
    if request.max_hops is not None and not 1 <= request.max_hops <= MAX_HOPS_LIMIT:
        raise InvalidRequest(f"max_hops must be between 1 and {MAX_HOPS_LIMIT}")
    if request.slippage_mode == SlippageMode.FIXED and request.slippage_bps is None:
        raise InvalidRequest("Fixed slippage mode requires slippage_bps")

    if catalog is not None:
        from_graph = catalog.to_graph_token(request.from_token)
        to_graph = catalog.to_graph_token(request.to_token)
        if not request.is_cross_chain and from_graph.key == to_graph.key:
            raise InvalidRequest(
                f"{request.from_token} -> {request.to_token} is a wrap or unwrap, not a swap"
            )


class SwapEngine:
    """Resolves a swap request into a validated, ready-to-sign route."""

    def __init__(
        self,
        controller: AutoSlippageController,
        validator: SimulationValidator,
        supervisor: Optional[RequestSupervisor] = None,
        request_deadline_seconds: float = 12.0,
        default_max_hops: int = 3,
        clock: Callable[[], float] = time.time,
        catalog: Optional[IntermediaryCatalog] = None,
        resources: Iterable = (),
    ):
        self.controller = controller
        self.validator = validator
        self.supervisor = supervisor or RequestSupervisor()
        self.request_deadline_seconds = request_deadline_seconds
        self.default_max_hops = default_max_hops
        self._clock = clock
        self.catalog = catalog
        # Objects with an async close(), released on shutdown
        self.resources = list(resources)

    async def resolve(self, request: SwapRequest) -> SwapResponse:
        """
        Resolve a swap request.

        Args:
            request: Tokens, amount, slippage mode and recipient

        Returns:
            SwapResponse with the route (or flattened cross-chain plan),
            applied slippage, simulation result and expiry

        Raises:
            RouteGuardError: the taxonomy error of the stage that was exhausted
        """
        validate_request(request, self.catalog)
        if request.max_hops is None:
            request = replace(request, max_hops=self.default_max_hops)

        deadline = Deadline(self.request_deadline_seconds)
        if request.slippage_mode == SlippageMode.FIXED:
            resolution = await self.controller.resolve_fixed(request, deadline)
        else:
            resolution = await self.controller.resolve_with_auto_slippage(request, deadline)

        route = resolution.route
        route.ensure_fresh(self._clock())

        simulation = await self.validator.simulate(route, request.signer_address)
        if not simulation.ok:
            logger.info(
                f"Route {route.source_label} simulation not ok "
                f"({simulation.error_kind}, fatal={simulation.fatal})"
            )

        return SwapResponse(
            route=route,
            applied_slippage_bps=resolution.applied_slippage_bps,
            simulation=simulation,
            expires_at=route.expires_at,
            attempts=resolution.attempts,
            alternatives=resolution.alternatives,
        )

    async def resolve_for(self, client_id: str, request: SwapRequest) -> SwapResponse:
        """Resolve as the current request of `client_id`, superseding any older one."""
        return await self.supervisor.run(client_id, self.resolve(request))

    async def close(self) -> None:
        """Cancel in-flight requests, then release upstream sessions."""
        await self.supervisor.cancel_all()
        for resource in self.resources:
            await resource.close()
