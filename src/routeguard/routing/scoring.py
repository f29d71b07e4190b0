"""Pure ranking logic over per-source results.

Nothing here touches the network: the aggregator collects SourceResults and
hands them to `rank_routes` and `failure_for`, which unit tests can call with
hand-built results.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from routeguard.errors import NoRouteFound, RouteGuardError, SlippageTooLow, UpstreamTimeout
from routeguard.models import BPS, Route
from routeguard.routing.base import SourceResult, SourceStatus

# Scores within 0.01% of each other are ties
TIE_TOLERANCE = Decimal("0.0001")


@dataclass(frozen=True)
class RankingOutcome:
    """Ranked routes plus what was filtered out and why."""

    routes: tuple[Route, ...]
    over_tolerance: tuple[Route, ...] = ()
    expired: int = 0
    unexecutable: int = 0

    @property
    def required_slippage_bps(self) -> Optional[int]:
        """Smallest tolerance that would have admitted a rejected candidate."""
        if not self.over_tolerance:
            return None
        return min(route.price_impact_bps for route in self.over_tolerance)


def score_route(
    route: Route,
    amount_in_usd: Decimal,
    output_price_usd: Optional[Decimal],
    hop_penalty_usd: Decimal,
) -> Decimal:
    """score = output value - gas - impact cost - protocol fees - hop penalty.

    An unknown output price values the output at 1 USD per whole token, so
    routes for the same pair still rank by output.
    """
    price = output_price_usd if output_price_usd is not None else Decimal("1")
    output_value = route.output_token.from_units(route.output_amount) * price
    impact_cost = Decimal(route.price_impact_bps) * amount_in_usd / BPS
    return (
        output_value
        - route.estimated_gas_usd
        - impact_cost
        - route.protocol_fee_usd
        - route.hop_count * hop_penalty_usd
    )


def scores_tie(a: Decimal, b: Decimal) -> bool:
    scale = max(abs(a), abs(b))
    if scale == 0:
        return True
    return abs(a - b) <= scale * TIE_TOLERANCE


def _path_sort_key(route: Route) -> tuple:
    return (route.path_key, route.source_label)


def order_routes(routes: Sequence[Route]) -> list[Route]:
    """Deterministic ordering: score descending with the 0.01% tie rule.

    Routes are walked in score order and grouped while they stay within the
    tolerance of the group's leader. Inside a group: fewer hops, then lower
    slippage requirement, then path key.
    """
    by_score = sorted(
        routes,
        key=lambda r: (-r.score, r.hop_count, r.price_impact_bps, _path_sort_key(r)),
    )
    ordered: list[Route] = []
    group: list[Route] = []
    for route in by_score:
        if group and not scores_tie(group[0].score, route.score):
            ordered.extend(sorted(group, key=_tie_key))
            group = []
        group.append(route)
    ordered.extend(sorted(group, key=_tie_key))
    return ordered


def _tie_key(route: Route) -> tuple:
    return (route.hop_count, route.price_impact_bps, _path_sort_key(route))


def dedupe_routes(routes: Sequence[Route]) -> list[Route]:
    """Collapse identical paths, keeping the higher verified output."""
    best: dict[tuple, Route] = {}
    for route in routes:
        current = best.get(route.path_key)
        if current is None or route.output_amount > current.output_amount:
            best[route.path_key] = route
    return list(best.values())


def rank_routes(
    results: Sequence[SourceResult],
    *,
    slippage_bps: int,
    amount_in_usd: Decimal,
    output_price_usd: Optional[Decimal],
    hop_penalty_usd: Decimal,
    now: float,
) -> RankingOutcome:
    """Filter, dedupe, score and order every candidate from every source."""
    candidates = [route for result in results if result.succeeded for route in result.routes]

    # Quote-only routes (no router, no transaction) cannot be submitted
    executable = [route for route in candidates if route.is_executable]
    unexecutable = len(candidates) - len(executable)

    fresh = [route for route in executable if not route.is_expired(now)]
    expired = len(executable) - len(fresh)

    within = [route for route in fresh if route.price_impact_bps <= slippage_bps]
    over = [route for route in fresh if route.price_impact_bps > slippage_bps]

    scored = [
        route.with_score(score_route(route, amount_in_usd, output_price_usd, hop_penalty_usd))
        for route in dedupe_routes(within)
    ]
    return RankingOutcome(
        routes=tuple(order_routes(scored)),
        over_tolerance=tuple(over),
        expired=expired,
        unexecutable=unexecutable,
    )


def failure_for(
    results: Sequence[SourceResult],
    outcome: RankingOutcome,
    slippage_bps: int,
) -> RouteGuardError:
    """The taxonomy error for an aggregation that produced no usable route."""
    required = outcome.required_slippage_bps
    if required is not None:
        return SlippageTooLow(slippage_bps, required)

    if results and all(result.status == SourceStatus.TIMEOUT for result in results):
        names = ", ".join(result.source for result in results)
        return UpstreamTimeout(f"Every route source timed out ({names})")

    for result in results:
        if isinstance(result.error, RouteGuardError):
            return result.error

    if outcome.expired:
        return NoRouteFound(f"All {outcome.expired} candidate route(s) expired before ranking")
    if outcome.unexecutable:
        return NoRouteFound(
            f"{outcome.unexecutable} candidate route(s) had no router or transaction to execute"
        )

    summary = "; ".join(
        f"{result.source}: {result.error_message or result.status.value}" for result in results
    )
    return NoRouteFound(f"No route found ({summary or 'no sources applicable'})")
