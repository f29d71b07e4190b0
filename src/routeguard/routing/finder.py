"""Route finder: direct, 2-hop and 3-hop path search with on-chain verification.

Candidates are evaluated in a fixed priority order that doubles as the
tie-break: direct pool, then catalog intermediaries in catalog order, then a
guaranteed fallback through the chain's wrapped-native token. Nothing becomes
a route until the venue router has quoted it.
"""

import asyncio
import logging
import time
from decimal import Decimal
from typing import Callable, Optional, Sequence

from routeguard.chains import ExchangeRegistry, IntermediaryCatalog
from routeguard.errors import InvalidRequest, NoLiquidityFound, NoRouteFound
from routeguard.liquidity.oracle import LiquidityOracle
from routeguard.models import BPS, UNWRAP_VENUE, Edge, Hop, Route, Token
from routeguard.onchain.base import CallReverted, ChainReader, QuoteProvider
from routeguard.routing.base import RouteContext, RouteSource

logger = logging.getLogger(__name__)

SOURCE_LABEL = "route-finder"

WEI_PER_NATIVE = Decimal(10) ** 18


def price_impact_bps(path: Sequence[Token], amounts: Sequence[int], edges: Sequence[Optional[Edge]]) -> int:
    """Constant-product price impact of a path, compounded across hops.

    Hops without reserve data contribute nothing.
    """
    total = Decimal("0")
    for index, edge in enumerate(edges):
        if edge is None:
            continue
        token_in = path[index]
        reserve_in = edge.reserve_of(token_in)
        if reserve_in <= 0:
            continue
        amount = token_in.from_units(amounts[index])
        impact = amount / (reserve_in + amount)
        total = total + impact - total * impact
    return int((min(total, Decimal("1")) * BPS).to_integral_value())


class RouteFinder:
    """Finds and verifies the best path between two tokens on one chain."""

    def __init__(
        self,
        oracle: LiquidityOracle,
        quotes: QuoteProvider,
        catalog: IntermediaryCatalog,
        registry: ExchangeRegistry,
        chain_reader: Optional[ChainReader] = None,
        worker_limit: int = 6,
        quote_timeout: float = 4.0,
        route_ttl_seconds: float = 60,
        gas_per_hop: int = 150_000,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the finder.

        Args:
            oracle: Liquidity oracle used to filter candidates
            quotes: On-chain quote provider used for verification
            catalog: Intermediary catalog (injected, immutable)
            registry: Exchange registry (injected, immutable)
            chain_reader: Gas price source for gas estimates (optional)
            worker_limit: Concurrent verifications per find_route call
            quote_timeout: Budget for one on-chain quote
            route_ttl_seconds: Validity of produced routes
            gas_per_hop: Gas units estimated per swap hop
            clock: Wall clock used for expires_at
        """
        self.oracle = oracle
        self.quotes = quotes
        self.catalog = catalog
        self.registry = registry
        self.chain_reader = chain_reader
        self.worker_limit = worker_limit
        self.quote_timeout = quote_timeout
        self.route_ttl_seconds = route_ttl_seconds
        self.gas_per_hop = gas_per_hop
        self._clock = clock

    async def find_route(
        self,
        chain_id: int,
        from_token: Token,
        to_token: Token,
        amount_in: int,
        max_hops: int = 3,
    ) -> Route:
        """
        Find the best verified route.

        Args:
            chain_id: Chain both tokens live on
            from_token: Token sold (native allowed)
            to_token: Token bought (native allowed, unwrapped at the end)
            amount_in: Input amount in base units
            max_hops: Upper bound on swap hops (1-3)

        Returns:
            The verified Route

        Raises:
            NoLiquidityFound: neither token has any known pool and nothing verified
            NoRouteFound: every candidate including the fallback failed verification
        """
        if from_token.chain_id != chain_id or to_token.chain_id != chain_id:
            raise InvalidRequest(f"Tokens must both be on chain {chain_id}")
        if amount_in <= 0:
            raise InvalidRequest("amount_in must be positive")
        if max_hops < 1:
            raise InvalidRequest("max_hops must be at least 1")

        src = self.catalog.to_graph_token(from_token)
        dst = self.catalog.to_graph_token(to_token)
        if src.key == dst.key:
            raise InvalidRequest("Source and destination resolve to the same token")

        search = _Search(self, chain_id, from_token, to_token, src, dst, amount_in)
        logger.info(f"Finding route {amount_in} {from_token} -> {to_token} (max {max_hops} hops)")

        # (a) direct pool, lowest hop count always wins
        direct = await self.oracle.direct_edge(chain_id, src, dst)
        if direct is not None:
            route = await search.verify([src, dst], [direct])
            if route is not None:
                logger.info(f"Direct route verified on {route.venue_id}")
                return route
            logger.debug(f"Direct pool {src}/{dst} did not verify")

        src_neighbors, dst_neighbors = await asyncio.gather(
            self.oracle.neighbors(chain_id, src),
            self.oracle.neighbors(chain_id, dst),
        )
        intermediaries = [
            token for token in self.catalog.tokens(chain_id) if token.key not in (src.key, dst.key)
        ]

        # (b) one intermediary shared by both tokens
        if max_hops >= 2:
            candidates = [
                ([src, mid, dst], [src_neighbors[mid.address], dst_neighbors[mid.address]])
                for mid in intermediaries
                if mid.address in src_neighbors and mid.address in dst_neighbors
            ]
            route = await search.best_of(candidates)
            if route is not None:
                logger.info(f"2-hop route verified via {route.path[1]}")
                return route

        # (c) two distinct intermediaries with a usable pool between them
        if max_hops >= 3:
            firsts = [mid for mid in intermediaries if mid.address in src_neighbors]
            seconds = [mid for mid in intermediaries if mid.address in dst_neighbors]
            middle = await asyncio.gather(*(search.neighbors(mid) for mid in firsts))
            candidates = []
            for first, first_neighbors in zip(firsts, middle):
                for second in seconds:
                    if second.key == first.key or second.address not in first_neighbors:
                        continue
                    candidates.append(
                        (
                            [src, first, second, dst],
                            [
                                src_neighbors[first.address],
                                first_neighbors[second.address],
                                dst_neighbors[second.address],
                            ],
                        )
                    )
            route = await search.best_of(candidates)
            if route is not None:
                logger.info(f"3-hop route verified via {route.path[1]} and {route.path[2]}")
                return route

        # (d) wrapped-native fallback, attempted even when the oracle calls it thin
        route = await self._fallback(search, max_hops)
        if route is not None:
            logger.info(f"Fallback route through wrapped native verified on {route.venue_id}")
            return route

        src_pairs, dst_pairs = await asyncio.gather(
            self.oracle.get_pairs(chain_id, src),
            self.oracle.get_pairs(chain_id, dst),
        )
        if not src_pairs or not dst_pairs:
            isolated = src if not src_pairs else dst
            raise NoLiquidityFound(f"No liquidity data for {isolated} on chain {chain_id}")
        raise NoRouteFound(
            f"No verified route from {from_token} to {to_token} "
            f"(tried {search.attempted} candidate path(s))"
        )

    async def _fallback(self, search: "_Search", max_hops: int) -> Optional[Route]:
        chain_id = search.chain_id
        src, dst = search.src, search.dst
        wrapped = self.catalog.wrapped_native(chain_id)
        if wrapped is None:
            return None

        if wrapped.key in (src.key, dst.key):
            path = [src, dst]
            edges = [await self.oracle.direct_edge(chain_id, src, dst, usable_only=False)]
        else:
            path = [src, wrapped, dst]
            edges = list(
                await asyncio.gather(
                    self.oracle.direct_edge(chain_id, src, wrapped, usable_only=False),
                    self.oracle.direct_edge(chain_id, wrapped, dst, usable_only=False),
                )
            )

        if len(path) - 1 > max_hops or search.was_attempted(path):
            return None
        return await search.verify(path, edges)

    async def estimate_gas_usd(self, chain_id: int, hops: int) -> Decimal:
        """Gas cost of a route in USD, zero when gas price or native price is unknown."""
        return await self.gas_cost_usd(chain_id, self.gas_per_hop * hops)

    async def gas_cost_usd(self, chain_id: int, gas_units: int) -> Decimal:
        if self.chain_reader is None or gas_units <= 0:
            return Decimal("0")
        wrapped = self.catalog.wrapped_native(chain_id)
        try:
            gas_price = await asyncio.wait_for(
                self.chain_reader.get_gas_price(chain_id), timeout=self.quote_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Gas price lookup timed out on chain {chain_id}")
            return Decimal("0")
        except Exception as e:
            logger.warning(f"Gas price lookup failed on chain {chain_id}: {e}")
            return Decimal("0")
        native_price = await self.oracle.price_usd(wrapped) if wrapped else None
        if not gas_price or native_price is None:
            return Decimal("0")
        gas_native = Decimal(gas_units * gas_price) / WEI_PER_NATIVE
        return gas_native * native_price


class _Search:
    """Per-invocation verification state."""

    def __init__(
        self,
        finder: RouteFinder,
        chain_id: int,
        from_token: Token,
        to_token: Token,
        src: Token,
        dst: Token,
        amount_in: int,
    ):
        self.finder = finder
        self.chain_id = chain_id
        self.from_token = from_token
        self.to_token = to_token
        self.src = src
        self.dst = dst
        self.amount_in = amount_in
        self.semaphore = asyncio.Semaphore(finder.worker_limit)
        self._attempted: set[tuple] = set()
        self._gas_usd: dict[int, Decimal] = {}

    @property
    def attempted(self) -> int:
        return len(self._attempted)

    def was_attempted(self, path: Sequence[Token]) -> bool:
        return tuple(token.key for token in path) in self._attempted

    async def neighbors(self, token: Token) -> dict[str, Edge]:
        """Oracle neighbor lookup bounded by the same worker limit as verification."""
        async with self.semaphore:
            return await self.finder.oracle.neighbors(self.chain_id, token)

    async def best_of(self, candidates: list[tuple[list[Token], list[Edge]]]) -> Optional[Route]:
        """Verify candidates concurrently; highest output wins, ties keep catalog order."""
        if not candidates:
            return None
        results = await asyncio.gather(*(self.verify(path, edges) for path, edges in candidates))
        best: Optional[Route] = None
        for route in results:
            if route is not None and (best is None or route.output_amount > best.output_amount):
                best = route
        return best

    async def verify(self, path: list[Token], edges: list[Optional[Edge]]) -> Optional[Route]:
        """Quote `path` on the registry's venues; the first venue that quotes wins."""
        self._attempted.add(tuple(token.key for token in path))
        finder = self.finder
        addresses = [token.address for token in path]
        preferred = [edge.venue_id for edge in edges if edge is not None]
        label = " -> ".join(str(token) for token in path)

        for venue in finder.registry.ordered_for(self.chain_id, preferred):
            async with self.semaphore:
                try:
                    amounts = await asyncio.wait_for(
                        finder.quotes.get_amounts_out(self.chain_id, venue, addresses, self.amount_in),
                        timeout=finder.quote_timeout,
                    )
                except CallReverted as e:
                    logger.debug(f"Candidate {label} reverted on {venue.venue_id}: {e.reason}")
                    continue
                except asyncio.TimeoutError:
                    logger.debug(f"Candidate {label} timed out on {venue.venue_id}")
                    continue
                except Exception as e:
                    logger.debug(f"Candidate {label} failed on {venue.venue_id}: {type(e).__name__}: {e}")
                    continue

            if len(amounts) != len(path) or amounts[-1] <= 0:
                logger.debug(f"Candidate {label} returned unusable amounts on {venue.venue_id}")
                continue
            return await self._build(path, edges, amounts, venue.venue_id, venue.router_address)

        return None

    async def _build(
        self,
        path: list[Token],
        edges: list[Optional[Edge]],
        amounts: list[int],
        venue_id: str,
        router_address: str,
    ) -> Route:
        steps = [
            Hop(venue_id, path[i], path[i + 1], amounts[i], amounts[i + 1])
            for i in range(len(path) - 1)
        ]
        needs_unwrap = self.to_token.is_native
        if needs_unwrap:
            steps.append(Hop(UNWRAP_VENUE, path[-1], self.to_token, amounts[-1], amounts[-1]))

        hops = len(path) - 1
        if hops not in self._gas_usd:
            self._gas_usd[hops] = await self.finder.estimate_gas_usd(self.chain_id, hops)

        return Route(
            input_token=self.from_token,
            output_token=self.to_token,
            path=tuple(path),
            steps=tuple(steps),
            source_label=SOURCE_LABEL,
            amount_in=self.amount_in,
            output_amount=amounts[-1],
            price_impact_bps=price_impact_bps(path, amounts, edges),
            estimated_gas_usd=self._gas_usd[hops],
            expires_at=self.finder._clock() + self.finder.route_ttl_seconds,
            needs_unwrap=needs_unwrap,
            venue_id=venue_id,
            router_address=router_address,
        )


class FinderSource(RouteSource):
    """Exposes the route finder as one candidate source of the aggregator."""

    def __init__(self, finder: RouteFinder, timeout: float = 8.0):
        self.finder = finder
        self.timeout = timeout

    @property
    def name(self) -> str:
        return SOURCE_LABEL

    async def produce_candidates(self, context: RouteContext) -> list[Route]:
        route = await self.finder.find_route(
            context.chain_id,
            context.from_token,
            context.to_token,
            context.amount_in,
            max_hops=context.max_hops,
        )
        return [route]
