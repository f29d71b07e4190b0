"""Pytest configuration and fixtures.

Every upstream (pair data, on-chain quotes, balances, dry runs, bridges) is
replaced by an in-memory fake so routing behaviour is deterministic.
"""

import os
from decimal import Decimal
from typing import Optional

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["ONEINCH_API_KEY"] = ""

from routeguard.bridges.base import BridgeProvider
from routeguard.chains import NATIVE, STABLE, CatalogEntry, ChainConfig, ExchangeRegistry, IntermediaryCatalog, Venue
from routeguard.liquidity.base import PairDataProvider
from routeguard.liquidity.oracle import LiquidityOracle
from routeguard.models import BridgeQuote, Edge, Hop, Route, Token
from routeguard.onchain.base import CallOutcome, CallReverted, ChainReader, QuoteProvider, SimulationProvider
from routeguard.routing.finder import RouteFinder

CHAIN = 1
DEST_CHAIN = 56
NOW = 1_700_000_000.0

WETH = Token(CHAIN, "0x" + "a1" * 20, 18, "WETH")
USDC = Token(CHAIN, "0x" + "a2" * 20, 6, "USDC")
DAI = Token(CHAIN, "0x" + "a3" * 20, 18, "DAI")
TKA = Token(CHAIN, "0x" + "b1" * 20, 18, "TKA")
TKB = Token(CHAIN, "0x" + "b2" * 20, 18, "TKB")
ETH = Token.native(CHAIN, "ETH")

WBNB = Token(DEST_CHAIN, "0x" + "c1" * 20, 18, "WBNB")
USDC_BSC = Token(DEST_CHAIN, "0x" + "c2" * 20, 18, "USDC")
TKC = Token(DEST_CHAIN, "0x" + "d1" * 20, 18, "TKC")

ROUTER = "0x" + "f1" * 20
ROUTER_BSC = "0x" + "f2" * 20
WALLET = "0x" + "e1" * 20

ONE = 10**18


def make_edge(
    token_a: Token,
    token_b: Token,
    liquidity: int = 50_000,
    reserve_a: str = "0",
    reserve_b: str = "0",
    venue: str = "uniswap",
    price_a: Optional[str] = None,
    price_b: Optional[str] = None,
) -> Edge:
    return Edge(
        token_a=token_a,
        token_b=token_b,
        venue_id=venue,
        liquidity_usd=Decimal(liquidity),
        reserve_a=Decimal(reserve_a),
        reserve_b=Decimal(reserve_b),
        last_verified_at=NOW,
        price_usd_a=Decimal(price_a) if price_a is not None else None,
        price_usd_b=Decimal(price_b) if price_b is not None else None,
    )


def make_route(
    path: list[Token],
    output_amount: int,
    amount_in: int = ONE,
    source: str = "test",
    price_impact_bps: int = 0,
    expires_at: float = NOW + 60,
    gas_usd: str = "0",
) -> Route:
    amounts = [amount_in] + [output_amount] * (len(path) - 1)
    steps = tuple(
        Hop("uniswap-v2", path[i], path[i + 1], amounts[i], amounts[i + 1]) for i in range(len(path) - 1)
    )
    return Route(
        input_token=path[0],
        output_token=path[-1],
        path=tuple(path),
        steps=steps,
        source_label=source,
        amount_in=amount_in,
        output_amount=output_amount,
        price_impact_bps=price_impact_bps,
        estimated_gas_usd=Decimal(gas_usd),
        expires_at=expires_at,
        venue_id="uniswap-v2",
        router_address=ROUTER,
    )


class FakePairProvider(PairDataProvider):
    """Pair data from a fixed edge list."""

    def __init__(self, edges: Optional[list[Edge]] = None, fail: bool = False):
        self.edges = list(edges or [])
        self.fail = fail
        self.calls: list[tuple[int, str]] = []

    @property
    def name(self) -> str:
        return "fake-pairs"

    async def get_pairs_for_token(self, chain_id: int, token_address: str) -> list[Edge]:
        self.calls.append((chain_id, token_address))
        if self.fail:
            raise ConnectionError("pair service down")
        address = token_address.lower()
        return [
            edge
            for edge in self.edges
            if edge.token_a.chain_id == chain_id and address in (edge.token_a.address, edge.token_b.address)
        ]


class FakeQuoteProvider(QuoteProvider):
    """getAmountsOut answers keyed by path; unknown paths revert."""

    def __init__(self):
        self.outputs: dict[tuple[str, ...], int] = {}
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    def set(self, path: list[Token], output: int) -> None:
        self.outputs[tuple(token.address for token in path)] = output

    async def get_amounts_out(self, chain_id, venue, path, amount_in):
        key = tuple(path)
        self.calls.append((venue.venue_id, key))
        if key not in self.outputs:
            raise CallReverted("UniswapV2Library: INSUFFICIENT_LIQUIDITY")
        output = self.outputs[key]
        return [amount_in] + [output] * (len(path) - 1)


class FakeChainReader(ChainReader):
    """Balances and allowances from dictionaries."""

    def __init__(self, balance: int = 100 * ONE, allowance: int = 100 * ONE, gas_price: Optional[int] = None):
        self.balance = balance
        self.allowance = allowance
        self.gas_price = gas_price
        self.fail_balance = False

    async def get_native_balance(self, chain_id, owner):
        if self.fail_balance:
            raise ConnectionError("rpc down")
        return self.balance

    async def get_token_balance(self, chain_id, token_address, owner):
        if self.fail_balance:
            raise ConnectionError("rpc down")
        return self.balance

    async def get_allowance(self, chain_id, token_address, owner, spender):
        return self.allowance

    async def get_gas_price(self, chain_id):
        return self.gas_price


class FakeSimulator(SimulationProvider):
    """Returns queued outcomes in order, then succeeds."""

    def __init__(self, outcomes: Optional[list[CallOutcome]] = None):
        self.outcomes = list(outcomes or [])
        self.calls: list[dict] = []

    async def simulate_call(self, chain_id, to, data, from_address, value=0):
        self.calls.append({"chain_id": chain_id, "to": to, "data": data, "from": from_address, "value": value})
        if self.outcomes:
            return self.outcomes.pop(0)
        return CallOutcome(success=True)


class FakeBridge(BridgeProvider):
    """Bridge that delivers `rate` of the input, or fails."""

    def __init__(
        self,
        name: str,
        rate: Decimal = Decimal("0.99"),
        fee_usd: str = "1",
        eta: int = 600,
        error: Optional[Exception] = None,
        unavailable: bool = False,
    ):
        self._name = name
        self.rate = rate
        self.fee_usd = Decimal(fee_usd)
        self.eta = eta
        self.error = error
        self.unavailable = unavailable
        self.calls: list[tuple] = []

    @property
    def name(self) -> str:
        return self._name

    async def quote(self, from_chain, to_chain, token, amount, dest_token):
        self.calls.append((from_chain, to_chain, token, amount, dest_token))
        if self.error is not None:
            raise self.error
        if self.unavailable:
            return None
        return BridgeQuote(
            provider_id=self._name,
            from_chain=from_chain,
            to_chain=to_chain,
            input_token=token,
            output_token=dest_token,
            amount_in=amount,
            output_amount=int(Decimal(amount) * self.rate),
            fee_usd=self.fee_usd,
            eta_seconds=self.eta,
            reliability_score=self.reliability_score,
            expires_at=NOW + 120,
        )


@pytest.fixture
def catalog() -> IntermediaryCatalog:
    return IntermediaryCatalog(
        entries={
            CHAIN: (
                CatalogEntry("WETH", WETH.address, 18, NATIVE, bridgeable=True),
                CatalogEntry("USDC", USDC.address, 6, STABLE, bridgeable=True),
                CatalogEntry("DAI", DAI.address, 18, STABLE),
            ),
            DEST_CHAIN: (
                CatalogEntry("WBNB", WBNB.address, 18, NATIVE),
                CatalogEntry("USDC", USDC_BSC.address, 18, STABLE, bridgeable=True),
            ),
        },
        chains={
            CHAIN: ChainConfig(CHAIN, "Testchain", "ETH", WETH.address, ""),
            DEST_CHAIN: ChainConfig(DEST_CHAIN, "Destchain", "BNB", WBNB.address, ""),
        },
        version="test",
    )


@pytest.fixture
def registry() -> ExchangeRegistry:
    return ExchangeRegistry(
        venues={
            CHAIN: (Venue("uniswap-v2", "Uniswap V2", ROUTER, "0x" + "0f" * 20, dex_ids=("uniswap",)),),
            DEST_CHAIN: (
                Venue("pancakeswap-v2", "PancakeSwap V2", ROUTER_BSC, "0x" + "0e" * 20, dex_ids=("pancakeswap",)),
            ),
        },
        version="test",
    )


@pytest.fixture
def pairs() -> FakePairProvider:
    return FakePairProvider()


@pytest.fixture
def oracle(pairs) -> LiquidityOracle:
    return LiquidityOracle(pairs, cache_ttl_seconds=300, min_liquidity_usd=Decimal("1000"), timeout=1.0)


@pytest.fixture
def quotes() -> FakeQuoteProvider:
    return FakeQuoteProvider()


@pytest.fixture
def reader() -> FakeChainReader:
    return FakeChainReader()


@pytest.fixture
def finder(oracle, quotes, catalog, registry) -> RouteFinder:
    return RouteFinder(oracle, quotes, catalog, registry, quote_timeout=1.0, clock=lambda: NOW)
