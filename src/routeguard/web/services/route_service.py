"""Route resolution service.

Translates web contracts into engine requests and engine results (or
taxonomy errors) back into contracts. Nothing here signs or broadcasts:
the response is prepared for client-side signing.
"""

import logging
from typing import Optional

from routeguard.engine import SwapEngine
from routeguard.errors import (
    FixedSlippageFailed,
    RouteGuardError,
    SlippageExceededMax,
    SlippageTooLow,
)
from routeguard.models import (
    BridgeQuote,
    Route,
    SimulationResult,
    SlippageAttempt,
    SlippageMode,
    SwapRequest,
    SwapResponse,
    Token,
)
from routeguard.web.contracts.routes import (
    AttemptInfo,
    BridgeInfo,
    CrossChainPlanInfo,
    HopInfo,
    ResolveRouteRequest,
    ResolveRouteResponse,
    RouteInfo,
    SimulationInfo,
    TokenRef,
    TransactionInfo,
)

logger = logging.getLogger(__name__)


def to_token(ref: TokenRef) -> Token:
    return Token(chain_id=ref.chain_id, address=ref.address, decimals=ref.decimals, symbol=ref.symbol)


def to_swap_request(request: ResolveRouteRequest) -> SwapRequest:
    return SwapRequest(
        from_token=to_token(request.from_token),
        to_token=to_token(request.to_token),
        amount_in=int(request.amount_in),
        recipient_address=request.recipient_address,
        slippage_mode=SlippageMode(request.slippage_mode),
        slippage_bps=request.slippage_bps,
        max_hops=request.max_hops,
        sender_address=request.sender_address,
        liquidity_usd=request.liquidity_usd,
    )


def route_info(route: Route) -> RouteInfo:
    transaction = None
    if route.transaction is not None:
        transaction = TransactionInfo(
            to=route.transaction.to,
            data=route.transaction.data,
            value=str(route.transaction.value),
        )
    return RouteInfo(
        source=route.source_label,
        path=[token.address for token in route.path],
        steps=[
            HopInfo(
                venue=step.venue_id,
                from_token=step.from_token.address,
                to_token=step.to_token.address,
                from_amount=str(step.from_amount),
                to_amount=str(step.to_amount),
            )
            for step in route.steps
        ],
        amount_in=str(route.amount_in),
        output_amount=str(route.output_amount),
        min_output_amount=str(route.min_output_amount),
        price_impact_bps=route.price_impact_bps,
        estimated_gas_usd=route.estimated_gas_usd,
        protocol_fee_usd=route.protocol_fee_usd,
        score=route.score,
        needs_unwrap=route.needs_unwrap,
        router_address=route.router_address or None,
        transaction=transaction,
        expires_at=route.expires_at,
    )


def bridge_info(quote: BridgeQuote) -> BridgeInfo:
    return BridgeInfo(
        provider=quote.provider_id,
        from_chain=quote.from_chain,
        to_chain=quote.to_chain,
        input_token=quote.input_token.address,
        output_token=quote.output_token.address,
        amount_in=str(quote.amount_in),
        output_amount=str(quote.output_amount),
        fee_usd=quote.fee_usd,
        eta_seconds=quote.eta_seconds,
    )


def simulation_info(result: SimulationResult) -> SimulationInfo:
    return SimulationInfo(
        ok=result.ok,
        proceedable=result.proceedable,
        call_variant=result.selected_call_variant.value if result.selected_call_variant else None,
        error_kind=result.error_kind,
        error_message=result.error_message,
        fatal=result.fatal,
        warnings=list(result.warnings),
    )


def attempt_info(attempt: SlippageAttempt) -> AttemptInfo:
    return AttemptInfo(
        attempt=attempt.attempt_number,
        slippage_bps=attempt.slippage_bps,
        failed=attempt.failed,
        output_amount=str(attempt.output_amount),
        failure_reason=attempt.failure_reason,
    )


def to_response(result: SwapResponse) -> ResolveRouteResponse:
    plan = result.cross_chain_plan
    plan_info: Optional[CrossChainPlanInfo] = None
    if plan is not None:
        plan_info = CrossChainPlanInfo(
            source_leg=route_info(plan.source_leg) if plan.source_leg else None,
            bridge=bridge_info(plan.bridge),
            dest_leg=route_info(plan.dest_leg) if plan.dest_leg else None,
        )
    return ResolveRouteResponse(
        success=True,
        route=route_info(result.route),
        cross_chain_plan=plan_info,
        applied_slippage_bps=result.applied_slippage_bps,
        simulation=simulation_info(result.simulation),
        expires_at=result.expires_at,
        attempts=[attempt_info(a) for a in result.attempts],
        alternatives=[route_info(r) for r in result.alternatives],
    )


def error_response(error: RouteGuardError) -> ResolveRouteResponse:
    response = ResolveRouteResponse(success=False, error=error.message, error_kind=error.kind.value)
    if isinstance(error, FixedSlippageFailed):
        response.hint = error.hint
        response.required_slippage_bps = error.required_bps
    elif isinstance(error, SlippageTooLow):
        response.required_slippage_bps = error.required_bps
    elif isinstance(error, SlippageExceededMax):
        response.max_slippage_tried_bps = error.max_tried_bps
        response.attempts = [attempt_info(a) for a in error.attempts]
    return response


class RouteService:
    """Resolves routes for web clients.

    This is a READ-ONLY service: it quotes and simulates, never executes.
    """

    def __init__(self, engine: SwapEngine):
        self.engine = engine

    async def resolve(self, request: ResolveRouteRequest) -> ResolveRouteResponse:
        """Resolve a route.

        Args:
            request: Route resolution parameters

        Returns:
            ResolveRouteResponse; on failure `success` is False and
            `error_kind` names the taxonomy error
        """
        try:
            swap_request = to_swap_request(request)
            if request.client_id:
                result = await self.engine.resolve_for(request.client_id, swap_request)
            else:
                result = await self.engine.resolve(swap_request)
        except RouteGuardError as e:
            logger.info(f"Route resolution failed ({e.kind.value}): {e.message}")
            return error_response(e)

        logger.info(
            f"Resolved {swap_request.from_token} -> {swap_request.to_token} via "
            f"{result.route.source_label} at {result.applied_slippage_bps} bps"
        )
        return to_response(result)
