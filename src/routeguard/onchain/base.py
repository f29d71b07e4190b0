"""On-chain provider interfaces used by the finder and the simulation validator."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from routeguard.chains import Venue


class CallReverted(Exception):
    """An eth_call reverted. The path or call is invalid and must not be retried."""

    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__(reason or "execution reverted")


@dataclass(frozen=True)
class CallOutcome:
    """Result of a dry-run call."""

    success: bool
    revert_reason: str = ""
    return_data: str = ""


class QuoteProvider(ABC):
    """Authoritative on-chain price query."""

    @abstractmethod
    async def get_amounts_out(
        self,
        chain_id: int,
        venue: Venue,
        path: list[str],
        amount_in: int,
    ) -> list[int]:
        """
        Query the venue router for per-hop output amounts.

        Args:
            chain_id: EVM chain id
            venue: Venue whose router is queried
            path: Token addresses, wrapped form for native assets
            amount_in: Input amount in base units

        Returns:
            Amounts for each path position (first item is amount_in)

        Raises:
            CallReverted: the pair does not exist or the call reverted
        """
        pass


class ChainReader(ABC):
    """Read-only account state used for pre-flight checks and gas pricing."""

    @abstractmethod
    async def get_native_balance(self, chain_id: int, owner: str) -> int:
        pass

    @abstractmethod
    async def get_token_balance(self, chain_id: int, token_address: str, owner: str) -> int:
        pass

    @abstractmethod
    async def get_allowance(
        self,
        chain_id: int,
        token_address: str,
        owner: str,
        spender: str,
    ) -> int:
        pass

    async def get_gas_price(self, chain_id: int) -> Optional[int]:
        """Current gas price in wei, None when unknown."""
        return None


class SimulationProvider(ABC):
    """Dry-run execution of a prepared call."""

    @abstractmethod
    async def simulate_call(
        self,
        chain_id: int,
        to: str,
        data: str,
        from_address: str,
        value: int = 0,
    ) -> CallOutcome:
        """
        Execute the call against current state without broadcasting.

        Returns:
            CallOutcome with success flag and revert reason when it failed
        """
        pass
