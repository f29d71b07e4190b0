"""DexScreener pair data integration.

API docs: https://docs.dexscreener.com/api/reference
"""

import logging
import time
from decimal import Decimal
from typing import Optional

import httpx

from routeguard.config import optional_decimal
from routeguard.liquidity.base import PairDataProvider
from routeguard.models import Edge, Token

logger = logging.getLogger(__name__)

DEXSCREENER_API = "https://api.dexscreener.com"

# DexScreener chain slugs by EVM chain id
CHAIN_SLUGS = {
    1: "ethereum",
    56: "bsc",
    137: "polygon",
    42161: "arbitrum",
    43114: "avalanche",
    8453: "base",
}


class DexScreenerPairProvider(PairDataProvider):
    """Pool liquidity and reserves from DexScreener's token endpoint."""

    def __init__(
        self,
        base_url: str = DEXSCREENER_API,
        timeout: float = 4.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize DexScreener provider.

        Args:
            base_url: API root
            timeout: HTTP timeout in seconds
            client: Shared httpx client (a short-lived one is used if None)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return "DexScreener"

    async def get_pairs_for_token(self, chain_id: int, token_address: str) -> list[Edge]:
        slug = CHAIN_SLUGS.get(chain_id)
        if slug is None:
            logger.debug(f"DexScreener does not cover chain {chain_id}")
            return []

        url = f"{self.base_url}/latest/dex/tokens/{token_address}"
        if self._client is not None:
            response = await self._client.get(url, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)

        response.raise_for_status()
        data = response.json()

        edges = []
        for pair in data.get("pairs") or []:
            if pair.get("chainId") != slug:
                continue
            edge = self._parse_pair(chain_id, pair)
            if edge is not None:
                edges.append(edge)

        logger.debug(f"DexScreener: {len(edges)} pair(s) for {token_address} on chain {chain_id}")
        return edges

    def _parse_pair(self, chain_id: int, pair: dict) -> Optional[Edge]:
        """Convert one DexScreener pair object into an Edge."""
        base = pair.get("baseToken") or {}
        quote = pair.get("quoteToken") or {}
        if not base.get("address") or not quote.get("address"):
            return None

        liquidity = pair.get("liquidity") or {}
        liquidity_usd = optional_decimal(liquidity.get("usd")) or Decimal("0")

        # priceUsd is the base token's price; priceNative is base priced in quote
        price_base = optional_decimal(pair.get("priceUsd"))
        price_native = optional_decimal(pair.get("priceNative"))
        price_quote = None
        if price_base is not None and price_native:
            price_quote = price_base / price_native

        return Edge(
            token_a=Token(chain_id, base["address"], symbol=base.get("symbol", "")),
            token_b=Token(chain_id, quote["address"], symbol=quote.get("symbol", "")),
            venue_id=pair.get("dexId", ""),
            liquidity_usd=liquidity_usd,
            reserve_a=optional_decimal(liquidity.get("base")) or Decimal("0"),
            reserve_b=optional_decimal(liquidity.get("quote")) or Decimal("0"),
            last_verified_at=time.time(),
            pair_address=(pair.get("pairAddress") or "").lower(),
            price_usd_a=price_base,
            price_usd_b=price_quote,
        )
