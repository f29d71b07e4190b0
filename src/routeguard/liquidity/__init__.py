"""Liquidity oracle and pair-data providers."""

from routeguard.liquidity.base import PairDataProvider
from routeguard.liquidity.dexscreener import DexScreenerPairProvider
from routeguard.liquidity.oracle import LiquidityOracle

__all__ = ["DexScreenerPairProvider", "LiquidityOracle", "PairDataProvider"]
