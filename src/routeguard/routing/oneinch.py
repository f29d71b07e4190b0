"""1inch DEX aggregator adapter.

Uses the 1inch Swap API v6 on EVM chains. Without a sender only `/quote` is
called; with a sender `/swap` also returns a ready-to-sign transaction.
API docs: https://portal.1inch.dev/documentation/apis/swap/introduction
"""

import logging
import time
from decimal import Decimal
from typing import Awaitable, Callable, Optional

import httpx

from routeguard.models import NATIVE_ALIAS, Hop, Route, Token, TransactionRequest
from routeguard.routing.base import RouteContext, RouteSource

logger = logging.getLogger(__name__)

# 1inch API endpoints
ONEINCH_API_V6 = "https://api.1inch.dev/swap/v6.0"

# Chain IDs served by the adapter
SUPPORTED_CHAIN_IDS = {1, 56, 137, 42161, 43114, 8453}

SOURCE_LABEL = "1inch"


def parse_int(value, default: int = 0) -> int:
    """Parse an int that may come as int, decimal string or hex string."""
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


class OneInchAdapter(RouteSource):
    """1inch aggregation as one more candidate source.

    The route it returns is a single adapter hop; execution goes through
    the adapter's own transaction rather than a UniswapV2 router call.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = ONEINCH_API_V6,
        timeout: float = 4.0,
        route_ttl_seconds: float = 60,
        gas_cost_usd: Optional[Callable[[int, int], Awaitable[Decimal]]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize 1inch adapter.

        Args:
            api_key: 1inch API key (adapter does not apply without one)
            base_url: API root
            timeout: HTTP timeout and source budget in seconds
            route_ttl_seconds: Validity of produced routes
            gas_cost_usd: Converts (chain_id, gas units) into USD
            client: Shared httpx client (a short-lived one is used if None)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.route_ttl_seconds = route_ttl_seconds
        self._gas_cost_usd = gas_cost_usd
        self._client = client

    @property
    def name(self) -> str:
        return SOURCE_LABEL

    def applies_to(self, context: RouteContext) -> bool:
        return (
            bool(self.api_key)
            and not context.is_cross_chain
            and context.chain_id in SUPPORTED_CHAIN_IDS
        )

    def _get_headers(self) -> dict:
        """Get API headers with authorization."""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @staticmethod
    def _api_address(token: Token) -> str:
        return NATIVE_ALIAS if token.is_native else token.address

    async def _get(self, url: str, params: dict) -> dict:
        if self._client is not None:
            response = await self._client.get(
                url, headers=self._get_headers(), params=params, timeout=self.timeout
            )
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self._get_headers(), params=params)

        if response.status_code != 200:
            logger.warning(f"1inch API error: {response.status_code} - {response.text}")
        response.raise_for_status()
        return response.json()

    async def produce_candidates(self, context: RouteContext) -> list[Route]:
        params = {
            "src": self._api_address(context.from_token),
            "dst": self._api_address(context.to_token),
            "amount": str(context.amount_in),
        }
        endpoint = "quote"
        if context.sender:
            endpoint = "swap"
            params.update(
                {
                    "from": context.sender,
                    "slippage": str(Decimal(context.slippage_bps) / 100),
                    "disableEstimate": "true",
                }
            )
        else:
            params["includeGas"] = "true"

        data = await self._get(f"{self.base_url}/{context.chain_id}/{endpoint}", params)

        # v6 reports dstAmount; older payloads used toAmount
        output_amount = parse_int(data.get("dstAmount", data.get("toAmount")))
        if output_amount <= 0:
            logger.debug(f"1inch returned no output for {context.from_token} -> {context.to_token}")
            return []

        transaction = None
        tx_data = data.get("tx") or {}
        gas = parse_int(data.get("gas", tx_data.get("gas")), default=0)
        if tx_data:
            transaction = TransactionRequest(
                to=tx_data.get("to", ""),
                data=tx_data.get("data", "0x"),
                value=parse_int(tx_data.get("value")),
            )

        gas_usd = Decimal("0")
        if self._gas_cost_usd is not None and gas:
            gas_usd = await self._gas_cost_usd(context.chain_id, gas)

        route = Route(
            input_token=context.from_token,
            output_token=context.to_token,
            path=(context.from_token, context.to_token),
            steps=(
                Hop(SOURCE_LABEL, context.from_token, context.to_token, context.amount_in, output_amount),
            ),
            source_label=SOURCE_LABEL,
            amount_in=context.amount_in,
            output_amount=output_amount,
            estimated_gas_usd=gas_usd,
            expires_at=time.time() + self.route_ttl_seconds,
            venue_id=SOURCE_LABEL,
            router_address=transaction.to if transaction else "",
            transaction=transaction,
        )
        logger.info(
            f"Quote from 1inch: {context.amount_in} {context.from_token} -> "
            f"{output_amount} {context.to_token}"
        )
        return [route]
