"""web3.py implementation of the on-chain quote, read and simulation providers."""

import logging
from typing import Callable, Optional

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError

from routeguard.chains import Venue
from routeguard.onchain.base import (
    CallOutcome,
    CallReverted,
    ChainReader,
    QuoteProvider,
    SimulationProvider,
)

logger = logging.getLogger(__name__)

ERC20_ABI: list[dict] = [
    {"constant": True, "inputs": [{"name": "", "type": "address"}], "name": "balanceOf", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"constant": True, "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}], "name": "allowance", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
]

# Minimal UniswapV2 router ABI subset
V2_ROUTER_ABI: list[dict] = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "address[]", "name": "path", "type": "address[]"},
        ],
        "name": "getAmountsOut",
        "outputs": [{"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function",
    },
]


def revert_reason(error: Exception) -> str:
    """Best-effort human readable revert reason from a web3 exception."""
    message = getattr(error, "message", None) or str(error)
    return message.replace("execution reverted: ", "").strip()


class Web3ChainClient(QuoteProvider, ChainReader, SimulationProvider):
    """One AsyncWeb3 instance per chain, created lazily from RPC URLs."""

    def __init__(self, rpc_url_for: Callable[[int], str], timeout: float = 4.0):
        """Initialize the client.

        Args:
            rpc_url_for: Maps a chain id to its RPC URL (Settings.get_rpc_url)
            timeout: HTTP request timeout in seconds
        """
        self._rpc_url_for = rpc_url_for
        self.timeout = timeout
        self._clients: dict[int, AsyncWeb3] = {}

    def web3(self, chain_id: int) -> AsyncWeb3:
        """Lazy load the web3 instance for a chain."""
        if chain_id not in self._clients:
            rpc_url = self._rpc_url_for(chain_id)
            if not rpc_url:
                raise ValueError(f"No RPC URL configured for chain {chain_id}")
            self._clients[chain_id] = AsyncWeb3(
                AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": self.timeout})
            )
        return self._clients[chain_id]

    async def get_amounts_out(
        self,
        chain_id: int,
        venue: Venue,
        path: list[str],
        amount_in: int,
    ) -> list[int]:
        w3 = self.web3(chain_id)
        router = w3.eth.contract(
            address=Web3.to_checksum_address(venue.router_address), abi=V2_ROUTER_ABI
        )
        checksum_path = [Web3.to_checksum_address(address) for address in path]
        try:
            amounts = await router.functions.getAmountsOut(amount_in, checksum_path).call()
        except ContractLogicError as e:
            raise CallReverted(revert_reason(e)) from e
        return [int(amount) for amount in amounts]

    async def get_native_balance(self, chain_id: int, owner: str) -> int:
        return int(await self.web3(chain_id).eth.get_balance(Web3.to_checksum_address(owner)))

    async def get_token_balance(self, chain_id: int, token_address: str, owner: str) -> int:
        token = self.web3(chain_id).eth.contract(
            address=Web3.to_checksum_address(token_address), abi=ERC20_ABI
        )
        return int(await token.functions.balanceOf(Web3.to_checksum_address(owner)).call())

    async def get_allowance(
        self,
        chain_id: int,
        token_address: str,
        owner: str,
        spender: str,
    ) -> int:
        token = self.web3(chain_id).eth.contract(
            address=Web3.to_checksum_address(token_address), abi=ERC20_ABI
        )
        return int(
            await token.functions.allowance(
                Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
            ).call()
        )

    async def get_gas_price(self, chain_id: int) -> Optional[int]:
        return int(await self.web3(chain_id).eth.gas_price)

    async def simulate_call(
        self,
        chain_id: int,
        to: str,
        data: str,
        from_address: str,
        value: int = 0,
    ) -> CallOutcome:
        tx = {
            "from": Web3.to_checksum_address(from_address),
            "to": Web3.to_checksum_address(to),
            "data": data,
            "value": value,
        }
        try:
            result = await self.web3(chain_id).eth.call(tx)
        except ContractLogicError as e:
            reason = revert_reason(e)
            logger.debug(f"eth_call reverted on chain {chain_id}: {reason}")
            return CallOutcome(success=False, revert_reason=reason)
        return CallOutcome(success=True, return_data="0x" + bytes(result).hex())

    async def close(self) -> None:
        """Disconnect every provider session opened so far."""
        clients, self._clients = self._clients, {}
        for chain_id, w3 in clients.items():
            try:
                await w3.provider.disconnect()
            except Exception as e:
                logger.warning(f"Failed to close RPC session for chain {chain_id}: {e}")
