"""LI.FI bridge aggregator integration.

API docs: https://docs.li.fi/li.fi-api/li.fi-api/requesting-a-quote
"""

import logging
import time
from decimal import Decimal
from typing import Optional

import httpx

from routeguard.bridges.base import BridgeProvider
from routeguard.config import optional_decimal
from routeguard.models import NATIVE_ALIAS, BPS, BridgeQuote, Token

logger = logging.getLogger(__name__)

LIFI_API = "https://li.quest/v1"

# Placeholder sender accepted by LI.FI for quote-only requests
QUOTE_ADDRESS = "0x0000000000000000000000000000000000000001"


class LiFiBridge(BridgeProvider):
    """LI.FI cross-chain transfer provider."""

    def __init__(
        self,
        base_url: str = LIFI_API,
        timeout: float = 10.0,
        from_address: str = QUOTE_ADDRESS,
        slippage_bps: int = 50,
        reliability_score: Decimal = Decimal("0.95"),
        quote_ttl_seconds: float = 60,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize LI.FI bridge.

        Args:
            base_url: API root
            timeout: HTTP timeout in seconds
            from_address: fromAddress sent with quote requests
            slippage_bps: Bridge-leg slippage sent to LI.FI
            reliability_score: Static reliability used for ranking ties
            quote_ttl_seconds: Validity of a quote
            client: Shared httpx client (a short-lived one is used if None)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.from_address = from_address
        self.slippage_bps = slippage_bps
        self.reliability_score = reliability_score
        self.quote_ttl_seconds = quote_ttl_seconds
        self._client = client

    @property
    def name(self) -> str:
        return "lifi"

    @staticmethod
    def _api_address(token: Token) -> str:
        return NATIVE_ALIAS if token.is_native else token.address

    async def quote(
        self,
        from_chain: int,
        to_chain: int,
        token: Token,
        amount: int,
        dest_token: Token,
    ) -> Optional[BridgeQuote]:
        params = {
            "fromChain": str(from_chain),
            "toChain": str(to_chain),
            "fromToken": self._api_address(token),
            "toToken": self._api_address(dest_token),
            "fromAmount": str(amount),
            "fromAddress": self.from_address,
            "slippage": str(Decimal(self.slippage_bps) / BPS),
        }
        url = f"{self.base_url}/quote"
        if self._client is not None:
            response = await self._client.get(url, params=params, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params)

        # LI.FI answers 404 when no bridge serves the transfer
        if response.status_code in (400, 404):
            logger.debug(f"LI.FI has no route for {token} -> {dest_token}: {response.text}")
            return None
        response.raise_for_status()

        data = response.json()
        estimate = data.get("estimate") or {}
        output_amount = int(estimate.get("toAmount") or 0)
        if output_amount <= 0:
            return None

        fee_usd = sum(
            (optional_decimal(cost.get("amountUSD")) or Decimal("0"))
            for cost in estimate.get("feeCosts") or []
        )

        return BridgeQuote(
            provider_id=self.name,
            from_chain=from_chain,
            to_chain=to_chain,
            input_token=token,
            output_token=dest_token,
            amount_in=amount,
            output_amount=output_amount,
            fee_usd=Decimal(fee_usd),
            eta_seconds=int(estimate.get("executionDuration") or 0),
            reliability_score=self.reliability_score,
            expires_at=time.time() + self.quote_ttl_seconds,
        )
