"""On-chain quote, read and simulation providers."""

from routeguard.onchain.base import (
    CallOutcome,
    CallReverted,
    ChainReader,
    QuoteProvider,
    SimulationProvider,
)
from routeguard.onchain.web3_client import Web3ChainClient

__all__ = [
    "CallOutcome",
    "CallReverted",
    "ChainReader",
    "QuoteProvider",
    "SimulationProvider",
    "Web3ChainClient",
]
