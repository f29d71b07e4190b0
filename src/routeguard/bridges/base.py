"""Bridge provider interface."""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from routeguard.models import BridgeQuote, Token

# Symbols whose fees can be read as USD one-to-one
USD_STABLES = {"USDC", "USDT", "DAI", "BUSD"}


class BridgeProvider(ABC):
    """A provider able to move a token from one chain to another."""

    reliability_score: Decimal = Decimal("0.9")

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        pass

    def supports(self, from_chain: int, to_chain: int) -> bool:
        """Check if this provider serves the chain pair."""
        return True

    @abstractmethod
    async def quote(
        self,
        from_chain: int,
        to_chain: int,
        token: Token,
        amount: int,
        dest_token: Token,
    ) -> Optional[BridgeQuote]:
        """
        Quote a transfer of `amount` of `token` into `dest_token`.

        Args:
            from_chain: Source chain id
            to_chain: Destination chain id
            token: Token sent on the source chain
            amount: Amount in source-token base units
            dest_token: Token expected on the destination chain

        Returns:
            BridgeQuote, or None when the provider cannot serve the transfer
        """
        pass
