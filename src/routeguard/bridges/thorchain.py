"""THORChain cross-chain bridge integration.

THORChain swaps native and token assets across chains through its own
liquidity pools. Only the quote endpoint is used here.
API docs: https://dev.thorchain.org/
"""

import logging
import time
from decimal import Decimal
from typing import Optional

import httpx

from routeguard.bridges.base import USD_STABLES, BridgeProvider
from routeguard.models import BridgeQuote, Token

logger = logging.getLogger(__name__)

# THORChain API endpoints
THORNODE_MAINNET = "https://thornode.ninerealms.com"

# THORChain uses 8 decimal places for all assets
THOR_DECIMALS = 8

# THORChain chain prefix and native symbol by EVM chain id
THORCHAIN_CHAINS = {
    1: ("ETH", "ETH"),
    56: ("BSC", "BNB"),
    43114: ("AVAX", "AVAX"),
    8453: ("BASE", "ETH"),
}


def thorchain_asset(token: Token) -> Optional[str]:
    """Convert a token to THORChain notation (CHAIN.SYMBOL or CHAIN.SYMBOL-CONTRACT)."""
    chain = THORCHAIN_CHAINS.get(token.chain_id)
    if chain is None:
        return None
    prefix, native_symbol = chain
    if token.is_native:
        return f"{prefix}.{native_symbol}"
    if not token.symbol:
        return None
    return f"{prefix}.{token.symbol.upper()}-{token.address.upper()}"


def to_thor_units(amount: int, decimals: int) -> int:
    return amount * 10**THOR_DECIMALS // 10**decimals


def from_thor_units(amount: int, decimals: int) -> int:
    return amount * 10**decimals // 10**THOR_DECIMALS


class THORChainBridge(BridgeProvider):
    """THORChain cross-chain transfer provider."""

    def __init__(
        self,
        thornode_url: str = THORNODE_MAINNET,
        timeout: float = 10.0,
        reliability_score: Decimal = Decimal("0.9"),
        quote_ttl_seconds: float = 60,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize THORChain bridge.

        Args:
            thornode_url: THORNode API root
            timeout: HTTP timeout in seconds
            reliability_score: Static reliability used for ranking ties
            quote_ttl_seconds: Fallback validity when THORNode omits expiry
            client: Shared httpx client (a short-lived one is used if None)
        """
        self.thornode_url = thornode_url.rstrip("/")
        self.timeout = timeout
        self.reliability_score = reliability_score
        self.quote_ttl_seconds = quote_ttl_seconds
        self._client = client

    @property
    def name(self) -> str:
        return "thorchain"

    def supports(self, from_chain: int, to_chain: int) -> bool:
        return from_chain in THORCHAIN_CHAINS and to_chain in THORCHAIN_CHAINS

    async def quote(
        self,
        from_chain: int,
        to_chain: int,
        token: Token,
        amount: int,
        dest_token: Token,
    ) -> Optional[BridgeQuote]:
        tc_from = thorchain_asset(token)
        tc_to = thorchain_asset(dest_token)
        if not tc_from or not tc_to:
            logger.debug(f"THORChain asset not found: {token} or {dest_token}")
            return None

        amount_base = to_thor_units(amount, token.decimals)
        if amount_base <= 0:
            return None

        params = {"from_asset": tc_from, "to_asset": tc_to, "amount": str(amount_base)}
        url = f"{self.thornode_url}/thorchain/quote/swap"
        if self._client is not None:
            response = await self._client.get(url, params=params, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params)

        if response.status_code != 200:
            logger.warning(f"THORChain API error: {response.status_code}")
            return None

        data = response.json()
        if "error" in data:
            logger.warning(f"THORChain quote error: {data['error']}")
            return None

        expected_output = int(data.get("expected_amount_out", "0"))
        if expected_output <= 0:
            return None

        # fees.total is denominated in the output asset
        fees = data.get("fees", {})
        fee_usd = Decimal("0")
        if dest_token.symbol.upper() in USD_STABLES:
            fee_usd = Decimal(int(fees.get("total", "0"))) / Decimal(10**THOR_DECIMALS)

        eta = data.get("total_swap_seconds")
        if eta is None:
            eta = int(data.get("inbound_confirmation_seconds", 600)) + int(
                data.get("outbound_delay_seconds", 0)
            )

        expiry = data.get("expiry")
        return BridgeQuote(
            provider_id=self.name,
            from_chain=from_chain,
            to_chain=to_chain,
            input_token=token,
            output_token=dest_token,
            amount_in=amount,
            output_amount=from_thor_units(expected_output, dest_token.decimals),
            fee_usd=fee_usd,
            eta_seconds=int(eta),
            reliability_score=self.reliability_score,
            expires_at=float(expiry) if expiry else time.time() + self.quote_ttl_seconds,
        )
