"""Tests for upstream integrations (pair data, 1inch, bridges, RPC sessions)."""

from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest

from routeguard.bridges.lifi import LiFiBridge
from routeguard.bridges.thorchain import THORChainBridge, thorchain_asset
from routeguard.liquidity.dexscreener import DexScreenerPairProvider
from routeguard.models import NATIVE_ALIAS, Token
from routeguard.onchain.web3_client import Web3ChainClient
from routeguard.routing.base import RouteContext
from routeguard.routing.oneinch import OneInchAdapter, parse_int
from tests.conftest import CHAIN, DEST_CHAIN, ETH, ONE, TKA, TKB, USDC, USDC_BSC, WALLET, WETH


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestDexScreener:
    """Tests for DexScreenerPairProvider."""

    @pytest.mark.asyncio
    async def test_parses_pairs_for_chain(self):
        """Test pairs on other chains are dropped and fields are mapped."""
        payload = {
            "pairs": [
                {
                    "chainId": "ethereum",
                    "dexId": "uniswap",
                    "pairAddress": "0xABCDEF",
                    "baseToken": {"address": TKA.address, "symbol": "TKA"},
                    "quoteToken": {"address": WETH.address, "symbol": "WETH"},
                    "priceUsd": "2",
                    "priceNative": "0.001",
                    "liquidity": {"usd": 125000.5, "base": 30000, "quote": 30},
                },
                {
                    "chainId": "bsc",
                    "dexId": "pancakeswap",
                    "baseToken": {"address": TKA.address, "symbol": "TKA"},
                    "quoteToken": {"address": USDC_BSC.address, "symbol": "USDC"},
                    "liquidity": {"usd": 999999},
                },
            ]
        }
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=payload)

        async with mock_client(handler) as client:
            provider = DexScreenerPairProvider(client=client)
            edges = await provider.get_pairs_for_token(CHAIN, TKA.address)

        assert seen == [f"/latest/dex/tokens/{TKA.address}"]
        assert len(edges) == 1
        edge = edges[0]
        assert edge.token_a == TKA
        assert edge.token_b == WETH
        assert edge.venue_id == "uniswap"
        assert edge.pair_address == "0xabcdef"
        assert edge.liquidity_usd == Decimal("125000.5")
        assert edge.reserve_a == Decimal("30000")
        assert edge.price_of(TKA) == Decimal("2")
        assert edge.price_of(WETH) == Decimal("2000")

    @pytest.mark.asyncio
    async def test_unknown_chain_skips_request(self):
        """Test chains without a slug return no data."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            provider = DexScreenerPairProvider(client=client)
            assert await provider.get_pairs_for_token(999, TKA.address) == []

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        """Test upstream errors propagate to the oracle."""
        async with mock_client(lambda request: httpx.Response(500)) as client:
            provider = DexScreenerPairProvider(client=client)
            with pytest.raises(httpx.HTTPStatusError):
                await provider.get_pairs_for_token(CHAIN, TKA.address)


class TestOneInchAdapter:
    """Tests for OneInchAdapter."""

    def _context(self, from_token=TKA, to_token=TKB, sender=None):
        return RouteContext(from_token=from_token, to_token=to_token, amount_in=ONE, slippage_bps=50, sender=sender)

    @pytest.mark.asyncio
    async def test_quote_without_sender(self):
        """Test the quote endpoint yields a single adapter hop."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"dstAmount": "1234", "gas": 180000})

        async with mock_client(handler) as client:
            adapter = OneInchAdapter(api_key="key", client=client)
            routes = await adapter.produce_candidates(self._context(from_token=ETH))

        request = requests[0]
        assert request.url.path == f"/swap/v6.0/{CHAIN}/quote"
        assert request.headers["Authorization"] == "Bearer key"
        assert request.url.params["src"] == NATIVE_ALIAS
        assert request.url.params["includeGas"] == "true"

        route = routes[0]
        assert route.output_amount == 1234
        assert route.source_label == "1inch"
        assert route.hop_count == 1
        assert route.transaction is None

    @pytest.mark.asyncio
    async def test_swap_with_sender_builds_transaction(self):
        """Test a known sender gets a ready-to-sign transaction."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={"dstAmount": "999", "tx": {"to": "0xrouter", "data": "0xdead", "value": "0", "gas": 200000}},
            )

        async with mock_client(handler) as client:
            adapter = OneInchAdapter(api_key="key", client=client)
            routes = await adapter.produce_candidates(self._context(sender=WALLET))

        assert requests[0].url.path.endswith("/swap")
        assert requests[0].url.params["from"] == WALLET
        assert requests[0].url.params["slippage"] == "0.5"
        route = routes[0]
        assert route.transaction.to == "0xrouter"
        assert route.transaction.data == "0xdead"
        assert route.router_address == "0xrouter"

    @pytest.mark.asyncio
    async def test_zero_output_yields_nothing(self):
        """Test empty quotes produce no candidate."""
        async with mock_client(lambda request: httpx.Response(200, json={"dstAmount": "0"})) as client:
            adapter = OneInchAdapter(api_key="key", client=client)
            assert await adapter.produce_candidates(self._context()) == []

    def test_applies_only_with_key_and_same_chain(self):
        """Test the adapter is disabled without an API key or across chains."""
        assert not OneInchAdapter(api_key="").applies_to(self._context())
        assert OneInchAdapter(api_key="key").applies_to(self._context())
        assert not OneInchAdapter(api_key="key").applies_to(self._context(to_token=USDC_BSC))

    def test_parse_int(self):
        """Test decimal, hex and missing values."""
        assert parse_int("42") == 42
        assert parse_int("0x2a") == 42
        assert parse_int(None, default=7) == 7
        assert parse_int(42) == 42


class TestTHORChainBridge:
    """Tests for THORChainBridge."""

    def test_asset_notation(self):
        """Test THORChain asset strings."""
        assert thorchain_asset(ETH) == "ETH.ETH"
        assert thorchain_asset(USDC) == f"ETH.USDC-{USDC.address.upper()}"
        assert thorchain_asset(Token(137, USDC.address, 6, "USDC")) is None
        assert thorchain_asset(Token(CHAIN, TKA.address)) is None

    def test_supported_chains(self):
        """Test chain pair support."""
        bridge = THORChainBridge()
        assert bridge.supports(CHAIN, DEST_CHAIN)
        assert not bridge.supports(CHAIN, 137)

    @pytest.mark.asyncio
    async def test_quote(self):
        """Test amounts convert through THORChain's 8 decimals."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "expected_amount_out": "99000000",
                    "fees": {"total": "150000000"},
                    "total_swap_seconds": 720,
                    "expiry": 1700000100,
                },
            )

        async with mock_client(handler) as client:
            bridge = THORChainBridge(client=client)
            quote = await bridge.quote(CHAIN, DEST_CHAIN, USDC, 1_000_000, USDC_BSC)

        params = requests[0].url.params
        assert params["amount"] == "100000000"
        assert params["from_asset"] == f"ETH.USDC-{USDC.address.upper()}"
        assert params["to_asset"] == f"BSC.USDC-{USDC_BSC.address.upper()}"
        assert quote.output_amount == 99 * 10**16
        assert quote.fee_usd == Decimal("1.5")
        assert quote.eta_seconds == 720
        assert quote.expires_at == 1700000100.0
        assert quote.provider_id == "thorchain"

    @pytest.mark.asyncio
    async def test_quote_error_payload(self):
        """Test an error body means no quote."""
        async with mock_client(lambda request: httpx.Response(200, json={"error": "pool halted"})) as client:
            bridge = THORChainBridge(client=client)
            assert await bridge.quote(CHAIN, DEST_CHAIN, USDC, 1_000_000, USDC_BSC) is None


class TestLiFiBridge:
    """Tests for LiFiBridge."""

    @pytest.mark.asyncio
    async def test_quote(self):
        """Test LI.FI estimates map onto a bridge quote."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "estimate": {
                        "toAmount": str(98 * 10**16),
                        "feeCosts": [{"amountUSD": "1.25"}, {"amountUSD": "0.75"}],
                        "executionDuration": 180,
                    }
                },
            )

        async with mock_client(handler) as client:
            bridge = LiFiBridge(client=client)
            quote = await bridge.quote(CHAIN, DEST_CHAIN, ETH, ONE, USDC_BSC)

        params = requests[0].url.params
        assert params["fromToken"] == NATIVE_ALIAS
        assert params["toChain"] == str(DEST_CHAIN)
        assert params["slippage"] == "0.005"
        assert quote.output_amount == 98 * 10**16
        assert quote.fee_usd == Decimal("2.00")
        assert quote.eta_seconds == 180
        assert quote.input_token == ETH

    @pytest.mark.asyncio
    async def test_no_route(self):
        """Test a 404 means the transfer is not served."""
        async with mock_client(lambda request: httpx.Response(404, json={"message": "No available quotes"})) as client:
            bridge = LiFiBridge(client=client)
            assert await bridge.quote(CHAIN, DEST_CHAIN, USDC, 1_000_000, USDC_BSC) is None


class FakeProvider:
    def __init__(self, error=None):
        self.error = error
        self.disconnected = False

    async def disconnect(self) -> None:
        self.disconnected = True
        if self.error is not None:
            raise self.error


class TestWeb3ChainClient:
    """Tests for Web3ChainClient session handling."""

    def test_web3_is_created_once_per_chain(self):
        """Test the provider for a chain is built lazily and reused."""
        client = Web3ChainClient(lambda chain_id: "http://localhost:8545")

        assert client.web3(CHAIN) is client.web3(CHAIN)
        with pytest.raises(ValueError):
            Web3ChainClient(lambda chain_id: "").web3(CHAIN)

    @pytest.mark.asyncio
    async def test_close_disconnects_every_provider(self):
        """Test shutdown disconnects each opened session, even after a failure."""
        client = Web3ChainClient(lambda chain_id: "http://localhost:8545")
        broken = FakeProvider(error=RuntimeError("already closed"))
        healthy = FakeProvider()
        client._clients = {CHAIN: SimpleNamespace(provider=broken), DEST_CHAIN: SimpleNamespace(provider=healthy)}

        await client.close()

        assert broken.disconnected
        assert healthy.disconnected
        assert client._clients == {}
