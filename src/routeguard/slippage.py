"""Auto-slippage controller.

Wraps the quote aggregator in a bounded, strictly sequential retry loop:

1. Look up pool liquidity for the pair
2. Pick the starting tolerance from the liquidity tier
3. Aggregate with that tolerance, recording the attempt
4. Escalate (x2, capped) and retry, up to the attempt cap
5. Pick the successful attempt with the highest output

Fixed mode performs exactly one aggregation and explains its failure.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from routeguard.chains import IntermediaryCatalog
from routeguard.config import Settings
from routeguard.errors import (
    FixedSlippageFailed,
    InvalidRequest,
    NoLiquidityFound,
    RouteGuardError,
    SlippageExceededMax,
    SlippageTooLow,
)
from routeguard.liquidity.oracle import LiquidityOracle
from routeguard.models import Route, SlippageAttempt, SwapRequest
from routeguard.routing.aggregator import QuoteAggregator
from routeguard.utils.deadline import Deadline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlippagePolicy:
    """Product policy for tolerance selection and escalation.

    Tiers are (max_liquidity_usd, slippage_bps) pairs in ascending order;
    liquidity above the last tier starts at `floor_bps`.
    """

    tiers: tuple[tuple[Decimal, int], ...] = (
        (Decimal("10000"), 1000),
        (Decimal("50000"), 500),
        (Decimal("100000"), 300),
        (Decimal("500000"), 150),
        (Decimal("1000000"), 100),
    )
    floor_bps: int = 50
    default_bps: int = 50
    multiplier: int = 2
    max_bps: int = 3050
    max_attempts: int = 3
    tie_tolerance: Decimal = Decimal("0.0001")
    gas_tie_break: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "SlippagePolicy":
        return cls(
            tiers=tuple(settings.liquidity_tiers),
            floor_bps=settings.slippage_floor_bps,
            default_bps=settings.default_slippage_bps,
            multiplier=settings.slippage_multiplier,
            max_bps=settings.max_auto_slippage_bps,
            max_attempts=settings.max_slippage_attempts,
            gas_tie_break=settings.gas_tie_break,
        )

    def initial_slippage(self, liquidity_usd: Optional[Decimal]) -> int:
        """Starting tolerance: lower liquidity means a higher start."""
        if liquidity_usd is None or liquidity_usd <= 0:
            return min(self.default_bps, self.max_bps)
        for limit, bps in self.tiers:
            if liquidity_usd <= limit:
                return min(bps, self.max_bps)
        return min(self.floor_bps, self.max_bps)


def next_slippage(current_bps: int, policy: SlippagePolicy) -> int:
    """Escalated tolerance, never above the cap."""
    return min(current_bps * policy.multiplier, policy.max_bps)


def select_best_attempt(
    attempts: list[SlippageAttempt],
    policy: SlippagePolicy,
) -> Optional[SlippageAttempt]:
    """Highest output wins; outputs within the tie tolerance go to the lower tolerance.

    With `gas_tie_break` enabled, tied attempts compare estimated gas first.
    """
    successful = [a for a in attempts if not a.failed and a.route is not None and a.output_amount > 0]
    if not successful:
        return None

    best_output = max(a.output_amount for a in successful)
    threshold = Decimal(best_output) * (1 - policy.tie_tolerance)
    tied = [a for a in successful if Decimal(a.output_amount) >= threshold]

    if policy.gas_tie_break:
        return min(tied, key=lambda a: (a.route.estimated_gas_usd, a.slippage_bps, a.attempt_number))
    return min(tied, key=lambda a: (a.slippage_bps, a.attempt_number))


@dataclass(frozen=True)
class SlippageResolution:
    """Winning route plus the attempts that led to it."""

    route: Route
    applied_slippage_bps: int
    attempts: tuple[SlippageAttempt, ...] = ()
    liquidity_usd: Optional[Decimal] = None
    alternatives: tuple[Route, ...] = ()


class AutoSlippageController:
    """Runs aggregation attempts with escalating slippage tolerance."""

    def __init__(
        self,
        aggregator: QuoteAggregator,
        oracle: Optional[LiquidityOracle] = None,
        policy: Optional[SlippagePolicy] = None,
        catalog: Optional[IntermediaryCatalog] = None,
    ):
        """Initialize the controller.

        Args:
            aggregator: Quote aggregator called once per attempt
            oracle: Liquidity source for the starting tier (default tolerance if None)
            policy: Tier and escalation policy
            catalog: Maps native assets to wrapped ones for liquidity lookups
        """
        self.aggregator = aggregator
        self.oracle = oracle
        self.policy = policy or SlippagePolicy()
        self.catalog = catalog

    async def resolve_with_auto_slippage(
        self,
        request: SwapRequest,
        deadline: Optional[Deadline] = None,
    ) -> SlippageResolution:
        """
        Resolve a route, escalating slippage on failure.

        Returns:
            SlippageResolution with the best successful attempt

        Raises:
            SlippageExceededMax: no attempt produced a route
        """
        liquidity_usd = await self._liquidity(request)
        current = self.policy.initial_slippage(liquidity_usd)
        logger.info(
            f"Starting auto slippage {request.from_token} -> {request.to_token}: "
            f"liquidity {liquidity_usd if liquidity_usd is not None else 'unknown'}, "
            f"initial {current} bps"
        )

        attempts: list[SlippageAttempt] = []
        alternatives: dict[int, list[Route]] = {}
        for number in range(1, self.policy.max_attempts + 1):
            try:
                routes = await self._aggregate(request, current, deadline)
            except InvalidRequest:
                raise
            except RouteGuardError as e:
                attempts.append(
                    SlippageAttempt(number, current, failed=True, failure_reason=e.message)
                )
                logger.info(f"Attempt {number} at {current} bps failed: {e.message}")
            else:
                attempts.append(SlippageAttempt(number, current, route=routes[0]))
                alternatives[number] = routes
                logger.info(
                    f"Attempt {number} at {current} bps succeeded: "
                    f"{routes[0].source_label}, output {routes[0].output_amount}"
                )

            # At the cap there is nothing left to escalate to
            if current >= self.policy.max_bps:
                break
            current = next_slippage(current, self.policy)

        best = select_best_attempt(attempts, self.policy)
        if best is None:
            highest = max(a.slippage_bps for a in attempts)
            raise SlippageExceededMax(highest, attempts)

        logger.info(
            f"Selected attempt {best.attempt_number} at {best.slippage_bps} bps "
            f"({len(attempts)} attempt(s), "
            f"{sum(1 for a in attempts if not a.failed)} successful)"
        )
        return SlippageResolution(
            route=best.route.with_slippage(best.slippage_bps),
            applied_slippage_bps=best.slippage_bps,
            attempts=tuple(attempts),
            liquidity_usd=liquidity_usd,
            alternatives=tuple(alternatives[best.attempt_number][1:]),
        )

    async def resolve_fixed(
        self,
        request: SwapRequest,
        deadline: Optional[Deadline] = None,
    ) -> SlippageResolution:
        """
        Resolve a route with exactly one aggregation at the requested tolerance.

        Raises:
            FixedSlippageFailed: with a hint to raise slippage, try auto mode,
                or that no liquidity exists at all
        """
        slippage = request.slippage_bps
        if slippage is None:
            raise InvalidRequest("Fixed slippage mode requires slippage_bps")
        if slippage < 0 or slippage >= 10_000:
            raise InvalidRequest(f"slippage_bps out of range: {slippage}")

        try:
            routes = await self._aggregate(request, slippage, deadline)
        except SlippageTooLow as e:
            raise FixedSlippageFailed(
                FixedSlippageFailed.RAISE_SLIPPAGE, slippage, required_bps=e.required_bps
            ) from e
        except InvalidRequest:
            raise
        except NoLiquidityFound as e:
            raise FixedSlippageFailed(FixedSlippageFailed.NO_LIQUIDITY, slippage, detail=e.message) from e
        except RouteGuardError as e:
            raise FixedSlippageFailed(FixedSlippageFailed.TRY_AUTO, slippage, detail=e.message) from e

        attempt = SlippageAttempt(1, slippage, route=routes[0])
        return SlippageResolution(
            route=routes[0].with_slippage(slippage),
            applied_slippage_bps=slippage,
            attempts=(attempt,),
            alternatives=tuple(routes[1:]),
        )

    async def _aggregate(
        self,
        request: SwapRequest,
        slippage_bps: int,
        deadline: Optional[Deadline],
    ) -> list[Route]:
        return await self.aggregator.aggregate(
            request.from_token,
            request.to_token,
            request.from_token.chain_id,
            request.amount_in,
            request.external_routes,
            slippage_bps=slippage_bps,
            sender=request.signer_address,
            max_hops=request.max_hops or 3,
            deadline=deadline,
        )

    async def _liquidity(self, request: SwapRequest) -> Optional[Decimal]:
        """Liquidity supplied with the request wins over an oracle lookup."""
        if request.liquidity_usd is not None and request.liquidity_usd > 0:
            return request.liquidity_usd
        if self.oracle is None:
            return None

        from_token, to_token = request.from_token, request.to_token
        if self.catalog is not None:
            from_token = self.catalog.to_graph_token(from_token)
            to_token = self.catalog.to_graph_token(to_token)
        return await self.oracle.pair_liquidity_usd(from_token.chain_id, from_token, to_token)
