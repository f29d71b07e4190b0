"""Routing module: path finding, candidate sources and quote aggregation.

Sources:
- Route finder: direct / 2-hop / 3-hop paths over UniswapV2-style venues
- 1inch: aggregator adapter (requires API key)
- Bridge selector: cross-chain plans flattened into routes
"""

from routeguard.routing.aggregator import QuoteAggregator
from routeguard.routing.base import RouteContext, RouteSource, SourceResult, SourceStatus
from routeguard.routing.finder import FinderSource, RouteFinder
from routeguard.routing.oneinch import OneInchAdapter
from routeguard.routing.scoring import rank_routes

__all__ = [
    # Base classes
    "RouteContext",
    "RouteSource",
    "SourceResult",
    "SourceStatus",
    # Components
    "RouteFinder",
    "QuoteAggregator",
    "rank_routes",
    # Sources
    "FinderSource",
    "OneInchAdapter",
]
