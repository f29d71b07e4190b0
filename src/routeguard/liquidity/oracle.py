"""Liquidity oracle: pool existence and depth, cached per token.

Answers "does a tradable pool exist between X and Y on chain C, and how liquid
is it?". Pair data is cached for a short TTL and is the only state shared
between concurrent requests.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from routeguard.liquidity.base import PairDataProvider
from routeguard.models import Edge, Token
from routeguard.utils.cache import TTLCache

logger = logging.getLogger(__name__)


class LiquidityOracle:
    """Cached view over a pair-data provider."""

    def __init__(
        self,
        provider: PairDataProvider,
        cache_ttl_seconds: float = 300,
        min_liquidity_usd: Decimal = Decimal("1000"),
        timeout: float = 4.0,
        cache: Optional[TTLCache] = None,
        cache_max_entries: Optional[int] = None,
    ):
        """Initialize the oracle.

        Args:
            provider: Upstream pair-data source
            cache_ttl_seconds: How long pair lists stay fresh
            min_liquidity_usd: Edges below this are not usable for routing
            timeout: Per-lookup budget in seconds
            cache: Cache instance to share (a new one is created if None)
            cache_max_entries: Size bound of a newly created cache
        """
        self.provider = provider
        self.min_liquidity_usd = min_liquidity_usd
        self.timeout = timeout
        if cache is None:
            cache = TTLCache(cache_ttl_seconds, max_size=cache_max_entries)
        self._cache: TTLCache[list[Edge]] = cache

    async def get_pairs(self, chain_id: int, token: Token) -> list[Edge]:
        """All known pools of `token` on `chain_id`.

        Upstream failures and timeouts are logged and read as "no data".
        """
        key = (chain_id, token.address)

        async def fetch() -> list[Edge]:
            return await asyncio.wait_for(
                self.provider.get_pairs_for_token(chain_id, token.address),
                timeout=self.timeout,
            )

        try:
            return await self._cache.get_or_fetch(key, fetch)
        except asyncio.TimeoutError:
            logger.warning(
                f"{self.provider.name} timed out after {self.timeout}s for {token} "
                f"- treating as no liquidity data"
            )
        except Exception as e:
            logger.warning(
                f"{self.provider.name} lookup failed for {token}: {type(e).__name__}: {e}"
            )
        return []

    def is_usable(self, edge: Edge) -> bool:
        return edge.usable(self.min_liquidity_usd)

    async def direct_edge(
        self,
        chain_id: int,
        token_a: Token,
        token_b: Token,
        usable_only: bool = True,
    ) -> Optional[Edge]:
        """The most liquid pool between two tokens, if any."""
        pairs = await self.get_pairs(chain_id, token_a)
        candidates = [
            edge
            for edge in pairs
            if edge.involves(token_b) and (not usable_only or self.is_usable(edge))
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda e: e.liquidity_usd)

    async def neighbors(
        self,
        chain_id: int,
        token: Token,
        usable_only: bool = True,
    ) -> dict[str, Edge]:
        """Counterpart address -> most liquid edge, for every pool of `token`."""
        result: dict[str, Edge] = {}
        for edge in await self.get_pairs(chain_id, token):
            if usable_only and not self.is_usable(edge):
                continue
            if not edge.involves(token):
                continue
            other = edge.other(token).address
            current = result.get(other)
            if current is None or edge.liquidity_usd > current.liquidity_usd:
                result[other] = edge
        return result

    async def pair_liquidity_usd(
        self,
        chain_id: int,
        token_a: Token,
        token_b: Token,
    ) -> Optional[Decimal]:
        """Liquidity used to pick the starting slippage tier.

        Uses the direct pool when one exists, else the most liquid pool of
        `token_a`. None when nothing is known.
        """
        direct = await self.direct_edge(chain_id, token_a, token_b, usable_only=False)
        if direct is not None:
            return direct.liquidity_usd

        pairs = await self.get_pairs(chain_id, token_a)
        if not pairs:
            return None
        return max(edge.liquidity_usd for edge in pairs)

    async def price_usd(self, token: Token) -> Optional[Decimal]:
        """USD price of a token, read from its most liquid priced pool."""
        priced = [
            (edge.liquidity_usd, edge.price_of(token))
            for edge in await self.get_pairs(token.chain_id, token)
            if edge.involves(token) and edge.price_of(token) is not None
        ]
        if not priced:
            return None
        return max(priced, key=lambda item: item[0])[1]

    def clear_cache(self) -> None:
        self._cache.invalidate()
