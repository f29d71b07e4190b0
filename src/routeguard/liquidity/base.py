"""Pair-data provider interface."""

from abc import ABC, abstractmethod

from routeguard.models import Edge


class PairDataProvider(ABC):
    """Source of pool data for the liquidity oracle."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        pass

    @abstractmethod
    async def get_pairs_for_token(self, chain_id: int, token_address: str) -> list[Edge]:
        """
        Get every known pool the token participates in on one chain.

        Args:
            chain_id: EVM chain id
            token_address: Token contract address (wrapped form for native assets)

        Returns:
            Edges with USD liquidity and reserves. An empty list means
            "unknown, assume illiquid" and is not an error.
        """
        pass
