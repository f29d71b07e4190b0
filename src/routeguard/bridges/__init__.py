"""Cross-chain bridge providers and the bridge selector."""

from routeguard.bridges.base import BridgeProvider
from routeguard.bridges.lifi import LiFiBridge
from routeguard.bridges.selector import BridgeSelector, BridgeSource
from routeguard.bridges.thorchain import THORChainBridge

__all__ = ["BridgeProvider", "BridgeSelector", "BridgeSource", "LiFiBridge", "THORChainBridge"]
