"""Factory for wiring the routing engine from settings.

Registries are built once and injected; every provider that talks to the
network is created here so tests can assemble the same graph with fakes.
"""

import logging
from functools import lru_cache
from typing import Optional

from routeguard.bridges.base import BridgeProvider
from routeguard.bridges.lifi import LiFiBridge
from routeguard.bridges.selector import BridgeSelector, BridgeSource
from routeguard.bridges.thorchain import THORChainBridge
from routeguard.chains import ExchangeRegistry, IntermediaryCatalog
from routeguard.config import Settings, get_settings
from routeguard.engine import SwapEngine
from routeguard.liquidity.dexscreener import DexScreenerPairProvider
from routeguard.liquidity.oracle import LiquidityOracle
from routeguard.onchain.web3_client import Web3ChainClient
from routeguard.routing.aggregator import QuoteAggregator
from routeguard.routing.base import RouteSource
from routeguard.routing.finder import FinderSource, RouteFinder
from routeguard.routing.oneinch import OneInchAdapter
from routeguard.simulation import SimulationValidator
from routeguard.slippage import AutoSlippageController, SlippagePolicy

logger = logging.getLogger(__name__)


@lru_cache
def get_registries() -> tuple[IntermediaryCatalog, ExchangeRegistry]:
    """Process-wide registries shared by the engine and the chain endpoints."""
    return IntermediaryCatalog(), ExchangeRegistry()


def create_oracle(settings: Settings) -> LiquidityOracle:
    """Create the liquidity oracle backed by DexScreener."""
    provider = DexScreenerPairProvider(
        base_url=settings.dexscreener_api_url,
        timeout=settings.read_timeout_seconds,
    )
    return LiquidityOracle(
        provider,
        cache_ttl_seconds=settings.liquidity_cache_ttl_seconds,
        cache_max_entries=settings.liquidity_cache_max_entries,
        min_liquidity_usd=settings.min_liquidity_usd,
        timeout=settings.read_timeout_seconds,
    )


def create_bridge_providers(settings: Settings) -> list[BridgeProvider]:
    """Create bridge providers. Neither requires an API key."""
    return [
        THORChainBridge(
            thornode_url=settings.thorchain_api_url,
            timeout=settings.bridge_timeout_seconds,
            quote_ttl_seconds=settings.route_ttl_seconds,
        ),
        LiFiBridge(
            base_url=settings.lifi_api_url,
            timeout=settings.bridge_timeout_seconds,
            from_address=settings.lifi_quote_address,
            quote_ttl_seconds=settings.route_ttl_seconds,
        ),
    ]


def create_engine(
    settings: Optional[Settings] = None,
    catalog: Optional[IntermediaryCatalog] = None,
    registry: Optional[ExchangeRegistry] = None,
) -> SwapEngine:
    """Create a fully wired swap engine.

    Args:
        settings: Settings to use (process settings if None)
        catalog: Intermediary catalog (built-in tables if None)
        registry: Exchange registry (built-in tables if None)

    Returns:
        SwapEngine ready to resolve requests
    """
    settings = settings or get_settings()
    default_catalog, default_registry = get_registries()
    catalog = catalog or default_catalog
    registry = registry or default_registry

    chain_client = Web3ChainClient(settings.get_rpc_url, timeout=settings.read_timeout_seconds)
    oracle = create_oracle(settings)

    finder = RouteFinder(
        oracle,
        chain_client,
        catalog,
        registry,
        chain_reader=chain_client,
        worker_limit=settings.routing_worker_limit,
        quote_timeout=settings.read_timeout_seconds,
        route_ttl_seconds=settings.route_ttl_seconds,
        gas_per_hop=settings.gas_per_hop,
    )

    sources: list[RouteSource] = [FinderSource(finder, timeout=settings.request_deadline_seconds)]

    if settings.oneinch_api_key:
        sources.append(
            OneInchAdapter(
                api_key=settings.oneinch_api_key,
                timeout=settings.read_timeout_seconds,
                route_ttl_seconds=settings.route_ttl_seconds,
                gas_cost_usd=finder.gas_cost_usd,
            )
        )
        logger.info("Added 1inch source")
    else:
        logger.warning("ONEINCH_API_KEY not set - 1inch source disabled")

    selector = BridgeSelector(
        create_bridge_providers(settings),
        finder,
        catalog,
        timeout=settings.bridge_timeout_seconds,
        max_hops=settings.default_max_hops,
    )
    sources.append(BridgeSource(selector, timeout=settings.request_deadline_seconds))

    aggregator = QuoteAggregator(
        sources,
        oracle=oracle,
        catalog=catalog,
        hop_penalty_usd=settings.hop_penalty_usd,
        request_deadline_seconds=settings.request_deadline_seconds,
    )
    controller = AutoSlippageController(
        aggregator,
        oracle=oracle,
        policy=SlippagePolicy.from_settings(settings),
        catalog=catalog,
    )
    validator = SimulationValidator(
        chain_client,
        chain_client,
        transient_signature=settings.transient_revert_signature,
        retries=settings.simulation_retries,
        backoff_seconds=settings.simulation_backoff_seconds,
        deadline_minutes=settings.swap_deadline_minutes,
        timeout=settings.read_timeout_seconds,
        fee_on_transfer_tokens=settings.known_fee_on_transfer_tokens,
        untaxed_tokens=[
            token.key for chain_id in catalog.chain_ids for token in catalog.tokens(chain_id)
        ],
    )

    logger.info(
        f"Engine ready: {len(sources)} source(s), "
        f"catalog v{catalog.version}, registry v{registry.version}"
    )
    return SwapEngine(
        controller,
        validator,
        request_deadline_seconds=settings.request_deadline_seconds,
        default_max_hops=settings.default_max_hops,
        catalog=catalog,
        resources=[chain_client],
    )
