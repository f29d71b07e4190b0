"""Per-chain registries: chain metadata, intermediary catalog and exchange venues.

Supports 6 EVM chains with constant-product (UniswapV2-style) routers:
- ETH (Uniswap V2, SushiSwap), BNB (PancakeSwap V2), MATIC (QuickSwap)
- ARB (SushiSwap), AVAX (Trader Joe V1), BASE (Uniswap V2)

The registries are immutable data. The finder and bridge selector receive
them at construction time, so tests and deployments can pass their own.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from routeguard.errors import InvalidRequest
from routeguard.models import Token

NATIVE = "native"
STABLE = "stable"
BLUECHIP = "bluechip"

# Catalog order within a chain is native-wrapped, then stablecoins, then blue-chips
CATEGORY_PRIORITY = {NATIVE: 0, STABLE: 1, BLUECHIP: 2}


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for an EVM chain."""

    chain_id: int
    name: str
    symbol: str
    wrapped_native: str
    explorer_url: str
    decimals: int = 18

    @property
    def native_token(self) -> Token:
        return Token.native(self.chain_id, symbol=self.symbol, decimals=self.decimals)

    @property
    def wrapped_token(self) -> Token:
        return Token(self.chain_id, self.wrapped_native, self.decimals, f"W{self.symbol}")


@dataclass(frozen=True)
class CatalogEntry:
    """A high-liquidity token used as a stepping stone between two tokens."""

    symbol: str
    address: str
    decimals: int
    category: str
    bridgeable: bool = False

    def token(self, chain_id: int) -> Token:
        return Token(chain_id, self.address, self.decimals, self.symbol)


@dataclass(frozen=True)
class Venue:
    """An on-chain exchange venue (UniswapV2-style router)."""

    venue_id: str
    name: str
    router_address: str
    factory_address: str
    # dexId values the pair-data provider reports for this venue
    dex_ids: tuple[str, ...] = ()
    supports_fee_on_transfer: bool = True

    def matches(self, venue_id: str) -> bool:
        return venue_id == self.venue_id or venue_id in self.dex_ids


# ======================
# Chain Configurations
# ======================

CHAINS: dict[int, ChainConfig] = {
    1: ChainConfig(
        chain_id=1,
        name="Ethereum",
        symbol="ETH",
        wrapped_native="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        explorer_url="https://etherscan.io",
    ),
    56: ChainConfig(
        chain_id=56,
        name="BNB Smart Chain",
        symbol="BNB",
        wrapped_native="0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c",
        explorer_url="https://bscscan.com",
    ),
    137: ChainConfig(
        chain_id=137,
        name="Polygon",
        symbol="MATIC",
        wrapped_native="0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",
        explorer_url="https://polygonscan.com",
    ),
    42161: ChainConfig(
        chain_id=42161,
        name="Arbitrum One",
        symbol="ETH",
        wrapped_native="0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
        explorer_url="https://arbiscan.io",
    ),
    43114: ChainConfig(
        chain_id=43114,
        name="Avalanche",
        symbol="AVAX",
        wrapped_native="0xB31f66AA3C1e785363F0875A1B74E27b85FD66c7",
        explorer_url="https://snowtrace.io",
    ),
    8453: ChainConfig(
        chain_id=8453,
        name="Base",
        symbol="ETH",
        wrapped_native="0x4200000000000000000000000000000000000006",
        explorer_url="https://basescan.org",
    ),
}


# ======================
# Intermediary Catalog
# ======================

DEFAULT_INTERMEDIARIES: dict[int, tuple[CatalogEntry, ...]] = {
    1: (
        CatalogEntry("WETH", "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", 18, NATIVE, bridgeable=True),
        CatalogEntry("USDC", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", 6, STABLE, bridgeable=True),
        CatalogEntry("USDT", "0xdAC17F958D2ee523a2206206994597C13D831ec7", 6, STABLE, bridgeable=True),
        CatalogEntry("DAI", "0x6B175474E89094C44Da98b954EedcdeCB5BE3830", 18, STABLE, bridgeable=True),
        CatalogEntry("WBTC", "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599", 8, BLUECHIP),
    ),
    56: (
        CatalogEntry("WBNB", "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c", 18, NATIVE),
        CatalogEntry("USDT", "0x55d398326f99059fF775485246999027B3197955", 18, STABLE, bridgeable=True),
        CatalogEntry("USDC", "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d", 18, STABLE, bridgeable=True),
        CatalogEntry("BUSD", "0xe9e7CEA3DedcA5984780Bafc599bD69ADd087D56", 18, STABLE),
        CatalogEntry("WETH", "0x2170Ed0880ac9A755fd29B2688956BD959F933F8", 18, BLUECHIP, bridgeable=True),
        CatalogEntry("BTCB", "0x7130d2A12B9BCbFAe4f2634d864A1Ee1Ce3Ead9c", 18, BLUECHIP),
    ),
    137: (
        CatalogEntry("WMATIC", "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270", 18, NATIVE),
        CatalogEntry("USDC", "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359", 6, STABLE, bridgeable=True),
        CatalogEntry("USDT", "0xc2132D05D31c914a87C6611C10748AEb04B58e8F", 6, STABLE, bridgeable=True),
        CatalogEntry("DAI", "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063", 18, STABLE, bridgeable=True),
        CatalogEntry("WETH", "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619", 18, BLUECHIP, bridgeable=True),
        CatalogEntry("WBTC", "0x1BFD67037B42Cf73acF2047067bd4F2C47D9BfD6", 8, BLUECHIP),
    ),
    42161: (
        CatalogEntry("WETH", "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", 18, NATIVE, bridgeable=True),
        CatalogEntry("USDC", "0xaf88d065e77c8cC2239327C5EDb3A432268e5831", 6, STABLE, bridgeable=True),
        CatalogEntry("USDT", "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9", 6, STABLE, bridgeable=True),
        CatalogEntry("DAI", "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1", 18, STABLE, bridgeable=True),
        CatalogEntry("WBTC", "0x2f2a2543B76A4166549F7aaB2e75Bef0aefC5B0f", 8, BLUECHIP),
    ),
    43114: (
        CatalogEntry("WAVAX", "0xB31f66AA3C1e785363F0875A1B74E27b85FD66c7", 18, NATIVE),
        CatalogEntry("USDC", "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E", 6, STABLE, bridgeable=True),
        CatalogEntry("USDT", "0x9702230A8Ea53601f5cD2dc00fDBc13d4dF4A8c7", 6, STABLE, bridgeable=True),
        CatalogEntry("WETH", "0x49D5c2BdFfac6CE2BFdB6640F4F80f226bc10bAB", 18, BLUECHIP, bridgeable=True),
    ),
    8453: (
        CatalogEntry("WETH", "0x4200000000000000000000000000000000000006", 18, NATIVE, bridgeable=True),
        CatalogEntry("USDC", "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", 6, STABLE, bridgeable=True),
        CatalogEntry("DAI", "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb", 18, STABLE, bridgeable=True),
    ),
}


# ======================
# Exchange Registry
# ======================

DEFAULT_VENUES: dict[int, tuple[Venue, ...]] = {
    1: (
        Venue(
            venue_id="uniswap-v2",
            name="Uniswap V2",
            router_address="0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D",
            factory_address="0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f",
            dex_ids=("uniswap",),
        ),
        Venue(
            venue_id="sushiswap",
            name="SushiSwap",
            router_address="0xd9e1cE17f2641f24aE83637ab66a2cca9C378B9F",
            factory_address="0xC0AEe478e3658e2610c5F7A4A2E1777cE9e4f2Ac",
            dex_ids=("sushiswap",),
        ),
    ),
    56: (
        Venue(
            venue_id="pancakeswap-v2",
            name="PancakeSwap V2",
            router_address="0x10ED43C718714eb63d5aA57B78B54704E256024E",
            factory_address="0xcA143Ce32Fe78f1f7019d7d551a6402fC5350c73",
            dex_ids=("pancakeswap",),
        ),
    ),
    137: (
        Venue(
            venue_id="quickswap",
            name="QuickSwap",
            router_address="0xa5E0829CaCEd8fFDD4De3c43696c57F7D7A678ff",
            factory_address="0x5757371414417b8C6CAad45bAeF941aBc7d3Ab32",
            dex_ids=("quickswap",),
        ),
    ),
    42161: (
        Venue(
            venue_id="sushiswap",
            name="SushiSwap",
            router_address="0x1b02dA8Cb0d097eB8D57A175b88c7D8b47997506",
            factory_address="0xc35DADB65012eC5796536bD9864eD8773aBc74C4",
            dex_ids=("sushiswap",),
        ),
    ),
    43114: (
        Venue(
            venue_id="traderjoe-v1",
            name="Trader Joe V1",
            router_address="0x60aE616a2155Ee3d9A68541Ba4544862310933d4",
            factory_address="0x9Ad6C38BE94206cA50bb0d90783181662f0Cfa10",
            dex_ids=("traderjoe",),
        ),
    ),
    8453: (
        Venue(
            venue_id="uniswap-v2",
            name="Uniswap V2",
            router_address="0x4752ba5DBc23f44D87826276BF6Fd6b1C372aD24",
            factory_address="0x8909Dc15e40173Ff4699343b6eB8132c65e18eC6",
            dex_ids=("uniswap",),
        ),
    ),
}


class IntermediaryCatalog:
    """Per-chain ordered list of intermediary tokens."""

    def __init__(
        self,
        entries: Optional[dict[int, Iterable[CatalogEntry]]] = None,
        chains: Optional[dict[int, ChainConfig]] = None,
        version: str = "1",
    ):
        source = DEFAULT_INTERMEDIARIES if entries is None else entries
        # Stable sort keeps the declared order inside each category
        self._entries: dict[int, tuple[CatalogEntry, ...]] = {
            chain_id: tuple(sorted(items, key=lambda e: CATEGORY_PRIORITY.get(e.category, 99)))
            for chain_id, items in source.items()
        }
        self._chains = dict(CHAINS if chains is None else chains)
        self.version = version

    @property
    def chain_ids(self) -> list[int]:
        return list(self._entries.keys())

    def for_chain(self, chain_id: int) -> tuple[CatalogEntry, ...]:
        return self._entries.get(chain_id, ())

    def tokens(self, chain_id: int) -> list[Token]:
        """Intermediary tokens for a chain, in priority order."""
        return [entry.token(chain_id) for entry in self.for_chain(chain_id)]

    def find(self, chain_id: int, address: str) -> Optional[CatalogEntry]:
        address = address.lower()
        for entry in self.for_chain(chain_id):
            if entry.address.lower() == address:
                return entry
        return None

    def by_symbol(self, chain_id: int, symbol: str) -> Optional[CatalogEntry]:
        for entry in self.for_chain(chain_id):
            if entry.symbol == symbol.upper():
                return entry
        return None

    def chain(self, chain_id: int) -> Optional[ChainConfig]:
        return self._chains.get(chain_id)

    def wrapped_native(self, chain_id: int) -> Optional[Token]:
        """The chain's wrapped-native token, with catalog metadata if listed."""
        config = self.chain(chain_id)
        if config is None:
            return None
        entry = self.find(chain_id, config.wrapped_native)
        return entry.token(chain_id) if entry else config.wrapped_token

    def to_graph_token(self, token: Token) -> Token:
        """Map a native asset to its wrapped form; other tokens pass through."""
        if not token.is_native:
            return token
        wrapped = self.wrapped_native(token.chain_id)
        if wrapped is None:
            raise InvalidRequest(f"No wrapped native token registered for chain {token.chain_id}")
        return wrapped

    def bridgeable_symbols(self, from_chain: int, to_chain: int) -> list[str]:
        """Bridgeable symbols valid on both chains, in source-catalog order."""
        dest_symbols = {entry.symbol for entry in self.for_chain(to_chain) if entry.bridgeable}
        return [
            entry.symbol
            for entry in self.for_chain(from_chain)
            if entry.bridgeable and entry.symbol in dest_symbols
        ]


class ExchangeRegistry:
    """Per-chain list of known exchange venues."""

    def __init__(self, venues: Optional[dict[int, Iterable[Venue]]] = None, version: str = "1"):
        source = DEFAULT_VENUES if venues is None else venues
        self._venues: dict[int, tuple[Venue, ...]] = {
            chain_id: tuple(items) for chain_id, items in source.items()
        }
        self.version = version

    def venues(self, chain_id: int) -> tuple[Venue, ...]:
        return self._venues.get(chain_id, ())

    def get(self, chain_id: int, venue_id: str) -> Optional[Venue]:
        for venue in self.venues(chain_id):
            if venue.venue_id == venue_id:
                return venue
        return None

    def ordered_for(self, chain_id: int, preferred: Iterable[str] = ()) -> list[Venue]:
        """Venues matching any preferred id first, then the rest in registry order."""
        preferred = [p for p in preferred if p]
        venues = list(self.venues(chain_id))
        first = [v for v in venues if any(v.matches(p) for p in preferred)]
        return first + [v for v in venues if v not in first]


def get_chain(chain_id: int) -> Optional[ChainConfig]:
    """Get chain configuration by chain id."""
    return CHAINS.get(chain_id)


def get_supported_chain_ids() -> list[int]:
    """List of supported chain ids."""
    return list(CHAINS.keys())
