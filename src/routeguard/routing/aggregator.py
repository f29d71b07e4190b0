"""Quote aggregator: runs every applicable source concurrently and ranks the pool."""

import asyncio
import logging
import time
from decimal import Decimal
from typing import Callable, Iterable, Optional

from routeguard.chains import IntermediaryCatalog
from routeguard.errors import RouteGuardError
from routeguard.liquidity.oracle import LiquidityOracle
from routeguard.models import Route, Token
from routeguard.routing.base import RouteContext, RouteSource, SourceResult
from routeguard.routing.scoring import failure_for, rank_routes
from routeguard.utils.deadline import Deadline

logger = logging.getLogger(__name__)

EXTERNAL_SOURCE = "external"


class QuoteAggregator:
    """Collects candidates from route sources and returns them ranked."""

    def __init__(
        self,
        sources: Optional[list[RouteSource]] = None,
        oracle: Optional[LiquidityOracle] = None,
        catalog: Optional[IntermediaryCatalog] = None,
        hop_penalty_usd: Decimal = Decimal("0.10"),
        request_deadline_seconds: float = 12.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the aggregator.

        Args:
            sources: Candidate-producing strategies, in priority order
            oracle: USD price source for scoring (prices unknown if None)
            catalog: Intermediary catalog used to price native assets via their wrapped form
            hop_penalty_usd: Score penalty per hop
            request_deadline_seconds: Default budget when no deadline is passed in
            clock: Wall clock used for expiry checks
        """
        self.sources: list[RouteSource] = sources or []
        self.oracle = oracle
        self.catalog = catalog
        self.hop_penalty_usd = hop_penalty_usd
        self.request_deadline_seconds = request_deadline_seconds
        self._clock = clock

    def add_source(self, source: RouteSource) -> None:
        """Add a route source."""
        self.sources.append(source)

    async def aggregate(
        self,
        from_token: Token,
        to_token: Token,
        chain_id: int,
        amount_in: int,
        external_routes: Iterable[Route] = (),
        *,
        slippage_bps: int,
        sender: Optional[str] = None,
        max_hops: int = 3,
        deadline: Optional[Deadline] = None,
    ) -> list[Route]:
        """
        Get every usable route, best first.

        Args:
            from_token: Token sold
            to_token: Token bought (may be on another chain)
            chain_id: Source chain id
            amount_in: Input amount in base units
            external_routes: Routes already resolved by independent adapters
            slippage_bps: Tolerance for this attempt; routes needing more are dropped
            sender: Wallet address, lets adapters build ready-to-sign transactions
            max_hops: Upper bound for the route finder
            deadline: Request-level deadline shared with the caller

        Returns:
            Ranked routes (highest score first), never empty

        Raises:
            RouteGuardError: SlippageTooLow, UpstreamTimeout, NoLiquidityFound,
                NoRouteFound or BridgeUnavailable when nothing usable remains
        """
        deadline = deadline or Deadline(self.request_deadline_seconds)
        context = RouteContext(
            from_token=from_token,
            to_token=to_token,
            amount_in=amount_in,
            slippage_bps=slippage_bps,
            sender=sender,
            max_hops=max_hops,
            deadline=deadline,
        )
        if from_token.chain_id != chain_id:
            logger.warning(f"chain_id {chain_id} does not match {from_token}; using token chain")

        results = await self.collect(context, external_routes)

        amount_in_usd, output_price = await self._prices(from_token, to_token, amount_in)
        outcome = rank_routes(
            results,
            slippage_bps=slippage_bps,
            amount_in_usd=amount_in_usd,
            output_price_usd=output_price,
            hop_penalty_usd=self.hop_penalty_usd,
            now=self._clock(),
        )

        if outcome.over_tolerance:
            logger.debug(
                f"{len(outcome.over_tolerance)} candidate(s) need more than {slippage_bps} bps"
            )

        if not outcome.routes:
            error = failure_for(results, outcome, slippage_bps)
            logger.info(f"No usable route {from_token} -> {to_token}: {error.message}")
            raise error

        best = outcome.routes[0]
        logger.info(
            f"Got {len(outcome.routes)} route(s) for {from_token} -> {to_token}. "
            f"Best: {best.source_label} via {best.hop_count} hop(s), "
            f"output {best.output_amount}, score {best.score:.4f}"
        )
        return list(outcome.routes)

    async def collect(
        self,
        context: RouteContext,
        external_routes: Iterable[Route] = (),
    ) -> list[SourceResult]:
        """Run every applicable source concurrently, each bounded by its budget."""
        results: list[SourceResult] = []
        external = list(external_routes)
        if external:
            results.append(SourceResult.ok(EXTERNAL_SOURCE, external))

        applicable = [source for source in self.sources if source.applies_to(context)]
        if not applicable:
            logger.debug(f"No sources apply to {context.from_token} -> {context.to_token}")

        results.extend(await asyncio.gather(*(self._run(source, context) for source in applicable)))
        return results

    async def _run(self, source: RouteSource, context: RouteContext) -> SourceResult:
        """Run one source; timeouts and errors become results, never exceptions."""
        budget = context.deadline.bound(source.timeout) if context.deadline else source.timeout
        started = time.monotonic()
        if budget <= 0:
            logger.warning(f"{source.name} skipped: request deadline already reached")
            return SourceResult.timed_out(source.name)

        try:
            routes = await asyncio.wait_for(source.produce_candidates(context), timeout=budget)
        except asyncio.TimeoutError:
            elapsed = time.monotonic() - started
            logger.warning(f"{source.name} timed out after {elapsed:.2f}s")
            return SourceResult.timed_out(source.name, elapsed)
        except RouteGuardError as e:
            elapsed = time.monotonic() - started
            logger.info(f"{source.name} found nothing: {e.message}")
            return SourceResult.failed(source.name, e, elapsed)
        except Exception as e:
            elapsed = time.monotonic() - started
            logger.warning(f"{source.name} failed: {type(e).__name__}: {e}")
            return SourceResult.failed(source.name, e, elapsed)

        elapsed = time.monotonic() - started
        logger.debug(f"{source.name} produced {len(routes)} candidate(s) in {elapsed:.2f}s")
        return SourceResult.ok(source.name, routes, elapsed)

    async def _prices(
        self,
        from_token: Token,
        to_token: Token,
        amount_in: int,
    ) -> tuple[Decimal, Optional[Decimal]]:
        """USD value of the input and USD price of the output token."""
        if self.oracle is None:
            return Decimal("0"), None
        input_price, output_price = await asyncio.gather(
            self.oracle.price_usd(self._priceable(from_token)),
            self.oracle.price_usd(self._priceable(to_token)),
        )
        amount_in_usd = from_token.from_units(amount_in) * input_price if input_price else Decimal("0")
        return amount_in_usd, output_price

    def _priceable(self, token: Token) -> Token:
        if token.is_native and self.catalog is not None:
            wrapped = self.catalog.wrapped_native(token.chain_id)
            if wrapped is not None:
                return wrapped
        return token
