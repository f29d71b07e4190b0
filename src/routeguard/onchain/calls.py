"""UniswapV2 router call selection and calldata encoding."""

import time
from typing import Optional

from eth_abi import encode
from web3 import Web3

from routeguard.models import CallVariant, Route, TransactionRequest

ROUTER_SIGNATURES = {
    CallVariant.EXACT_ETH_FOR_TOKENS: "swapExactETHForTokens(uint256,address[],address,uint256)",
    CallVariant.EXACT_ETH_FOR_TOKENS_FOT: (
        "swapExactETHForTokensSupportingFeeOnTransferTokens(uint256,address[],address,uint256)"
    ),
    CallVariant.EXACT_TOKENS_FOR_ETH: (
        "swapExactTokensForETH(uint256,uint256,address[],address,uint256)"
    ),
    CallVariant.EXACT_TOKENS_FOR_ETH_FOT: (
        "swapExactTokensForETHSupportingFeeOnTransferTokens(uint256,uint256,address[],address,uint256)"
    ),
    CallVariant.EXACT_TOKENS_FOR_TOKENS: (
        "swapExactTokensForTokens(uint256,uint256,address[],address,uint256)"
    ),
    CallVariant.EXACT_TOKENS_FOR_TOKENS_FOT: (
        "swapExactTokensForTokensSupportingFeeOnTransferTokens(uint256,uint256,address[],address,uint256)"
    ),
}

ETH_IN_VARIANTS = (CallVariant.EXACT_ETH_FOR_TOKENS, CallVariant.EXACT_ETH_FOR_TOKENS_FOT)


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak256(signature)."""
    return bytes(Web3.keccak(text=signature)[:4])


def select_call_variant(route: Route) -> CallVariant:
    """Classify a swap as native-in, native-out or token-to-token."""
    if route.transaction is not None:
        return CallVariant.ADAPTER
    if route.input_token.is_native:
        return CallVariant.EXACT_ETH_FOR_TOKENS
    if route.needs_unwrap:
        return CallVariant.EXACT_TOKENS_FOR_ETH
    return CallVariant.EXACT_TOKENS_FOR_TOKENS


def swap_deadline(minutes: int, now: Optional[float] = None) -> int:
    return int((now if now is not None else time.time()) + minutes * 60)


def build_swap_call(
    route: Route,
    variant: CallVariant,
    recipient: str,
    deadline: int,
) -> TransactionRequest:
    """Encode the router call that executes `route` with `variant`.

    Adapter routes already carry their transaction and are returned as-is.
    """
    if variant == CallVariant.ADAPTER:
        if route.transaction is None:
            raise ValueError("Adapter variant requires a pre-built transaction")
        return route.transaction
    if not route.router_address:
        raise ValueError(f"Route from {route.source_label} has no router to call")

    path = [Web3.to_checksum_address(token.address) for token in route.path]
    to = Web3.to_checksum_address(recipient)
    amount_out_min = route.min_output_amount

    if variant in ETH_IN_VARIANTS:
        args = encode(
            ["uint256", "address[]", "address", "uint256"],
            [amount_out_min, path, to, deadline],
        )
        value = route.amount_in
    else:
        args = encode(
            ["uint256", "uint256", "address[]", "address", "uint256"],
            [route.amount_in, amount_out_min, path, to, deadline],
        )
        value = 0

    data = function_selector(ROUTER_SIGNATURES[variant]) + args
    return TransactionRequest(
        to=Web3.to_checksum_address(route.router_address),
        data="0x" + data.hex(),
        value=value,
    )
