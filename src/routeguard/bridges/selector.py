"""Bridge selector and cross-chain route builder.

A plan is source-chain swap -> bridge transfer -> destination-chain swap.
Plans are all-or-nothing: if any leg cannot be resolved the bridge token is
abandoned and the next one is tried; a partial plan is never returned.
"""

import asyncio
import logging
from typing import Optional

from routeguard.bridges.base import BridgeProvider
from routeguard.chains import IntermediaryCatalog
from routeguard.errors import (
    BridgeUnavailable,
    InvalidRequest,
    NoRouteFound,
    RouteGuardError,
)
from routeguard.models import BridgeQuote, CrossChainPlan, Route, Token
from routeguard.routing.base import RouteContext, RouteSource
from routeguard.routing.finder import RouteFinder

logger = logging.getLogger(__name__)


def bridge_quote_rank(quote: BridgeQuote) -> tuple:
    """Output (desc), fee (asc), time (asc), reliability (desc)."""
    return (-quote.output_amount, quote.fee_usd, quote.eta_seconds, -quote.reliability_score)


class BridgeSelector:
    """Composes cross-chain plans from the route finder and bridge providers."""

    def __init__(
        self,
        providers: list[BridgeProvider],
        finder: RouteFinder,
        catalog: IntermediaryCatalog,
        timeout: float = 10.0,
        max_hops: int = 3,
    ):
        """Initialize the selector.

        Args:
            providers: Registered bridge providers
            finder: Route finder used for the source and destination legs
            catalog: Intermediary catalog holding the bridgeable tokens
            timeout: Per-provider quote budget in seconds
            max_hops: Hop bound for each swap leg
        """
        self.providers = providers
        self.finder = finder
        self.catalog = catalog
        self.timeout = timeout
        self.max_hops = max_hops

    async def build_cross_chain_plan(
        self,
        from_chain: int,
        from_token: Token,
        to_chain: int,
        to_token: Token,
        amount_in: int,
        slippage_bps: int,
    ) -> CrossChainPlan:
        """
        Build a complete cross-chain plan.

        Args:
            from_chain: Source chain id
            from_token: Token sold on the source chain
            to_chain: Destination chain id
            to_token: Token bought on the destination chain
            amount_in: Input amount in base units
            slippage_bps: Tolerance applied to both swap legs

        Returns:
            CrossChainPlan with every required leg resolved

        Raises:
            BridgeUnavailable: no provider quoted any bridgeable token
            NoRouteFound: bridges quoted but a swap leg could not be resolved
        """
        if from_chain == to_chain:
            raise InvalidRequest("Cross-chain plan needs two different chains")
        if from_token.chain_id != from_chain or to_token.chain_id != to_chain:
            raise InvalidRequest("Token chain ids do not match the requested chains")

        symbols = self._ordered_symbols(from_chain, from_token, to_chain)
        if not symbols:
            raise BridgeUnavailable(f"No bridgeable token shared by chains {from_chain} and {to_chain}")

        quoted_any = False
        queried_any = False
        failures: list[str] = []

        for symbol in symbols:
            src_bridge = self.catalog.by_symbol(from_chain, symbol).token(from_chain)
            dst_bridge = self.catalog.by_symbol(to_chain, symbol).token(to_chain)

            # (b) source leg; the leg's actual output token becomes the bridge input
            source_leg: Optional[Route] = None
            bridge_input, bridge_amount = from_token, amount_in
            if self.catalog.to_graph_token(from_token).key != src_bridge.key:
                try:
                    source_leg = await self.finder.find_route(
                        from_chain, from_token, src_bridge, amount_in, max_hops=self.max_hops
                    )
                except RouteGuardError as e:
                    logger.debug(f"Source leg to {symbol} failed: {e.message}")
                    failures.append(f"source leg to {symbol}: {e.message}")
                    continue
                source_leg = source_leg.with_slippage(slippage_bps)
                bridge_input, bridge_amount = source_leg.final_token, source_leg.output_amount

            # Deliver the requested token directly when it is the bridge token itself
            bridge_output = to_token if self.catalog.to_graph_token(to_token).key == dst_bridge.key else dst_bridge

            # (c) every provider, ranked
            queried_any = True
            quotes = await self.quote_all(from_chain, to_chain, bridge_input, bridge_amount, bridge_output)
            if not quotes:
                failures.append(f"no bridge quote for {symbol}")
                continue
            quoted_any = True
            bridge = quotes[0]

            # (d) destination leg
            dest_leg: Optional[Route] = None
            if bridge.output_token.key != to_token.key:
                try:
                    dest_leg = await self.finder.find_route(
                        to_chain,
                        bridge.output_token,
                        to_token,
                        bridge.output_amount,
                        max_hops=self.max_hops,
                    )
                except RouteGuardError as e:
                    logger.debug(f"Destination leg from {symbol} failed: {e.message}")
                    failures.append(f"destination leg from {symbol}: {e.message}")
                    continue
                dest_leg = dest_leg.with_slippage(slippage_bps)

            plan = CrossChainPlan(source_leg=source_leg, bridge=bridge, dest_leg=dest_leg)
            logger.info(
                f"Cross-chain plan via {bridge.provider_id} ({symbol}): "
                f"{from_token} -> {to_token}, output {plan.output_amount}"
            )
            return plan

        detail = "; ".join(failures)
        if queried_any and not quoted_any:
            raise BridgeUnavailable(
                f"No bridge provider quoted {from_chain} -> {to_chain} ({detail})"
            )
        raise NoRouteFound(f"No complete cross-chain plan {from_token} -> {to_token} ({detail})")

    async def quote_all(
        self,
        from_chain: int,
        to_chain: int,
        token: Token,
        amount: int,
        dest_token: Token,
    ) -> list[BridgeQuote]:
        """Query every provider concurrently; failures count as unavailable."""
        providers = [p for p in self.providers if p.supports(from_chain, to_chain)]
        results = await asyncio.gather(
            *(self._quote_one(p, from_chain, to_chain, token, amount, dest_token) for p in providers)
        )
        return sorted((q for q in results if q is not None), key=bridge_quote_rank)

    async def _quote_one(
        self,
        provider: BridgeProvider,
        from_chain: int,
        to_chain: int,
        token: Token,
        amount: int,
        dest_token: Token,
    ) -> Optional[BridgeQuote]:
        try:
            return await asyncio.wait_for(
                provider.quote(from_chain, to_chain, token, amount, dest_token),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{provider.name} bridge quote timed out after {self.timeout}s")
        except Exception as e:
            logger.warning(f"{provider.name} bridge quote failed: {type(e).__name__}: {e}")
        return None

    def _ordered_symbols(self, from_chain: int, from_token: Token, to_chain: int) -> list[str]:
        """Bridgeable symbols, the input token's own symbol first when it is one."""
        symbols = self.catalog.bridgeable_symbols(from_chain, to_chain)
        graph_token = self.catalog.to_graph_token(from_token)
        own = self.catalog.find(from_chain, graph_token.address)
        if own is not None and own.symbol in symbols:
            symbols.remove(own.symbol)
            symbols.insert(0, own.symbol)
        return symbols


class BridgeSource(RouteSource):
    """Exposes the bridge selector as a candidate source for cross-chain requests."""

    def __init__(self, selector: BridgeSelector, timeout: float = 12.0):
        self.selector = selector
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "bridge-selector"

    def applies_to(self, context: RouteContext) -> bool:
        return context.is_cross_chain

    async def produce_candidates(self, context: RouteContext) -> list[Route]:
        plan = await self.selector.build_cross_chain_plan(
            context.from_token.chain_id,
            context.from_token,
            context.to_token.chain_id,
            context.to_token,
            context.amount_in,
            context.slippage_bps,
        )
        return [plan.to_route().with_slippage(context.slippage_bps)]
