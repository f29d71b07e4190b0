"""Route resolution request and response contracts.

Amounts are base-unit integers serialized as strings so they survive JSON
clients that only have double-precision numbers.
"""

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class TokenRef(BaseModel):
    """A token identified by chain and contract address."""

    chain_id: int = Field(..., description="EVM chain id")
    address: str = Field(..., description="Contract address, zero address for the native asset")
    decimals: int = Field(default=18, ge=0, le=36, description="Token decimals")
    symbol: str = Field(default="", description="Display symbol")


class ResolveRouteRequest(BaseModel):
    """Request to resolve and validate a swap route."""

    from_token: TokenRef
    to_token: TokenRef
    amount_in: str = Field(..., pattern=r"^[0-9]+$", description="Input amount in base units")
    recipient_address: str = Field(..., description="Wallet receiving the output")
    sender_address: Optional[str] = Field(None, description="Signing wallet (defaults to recipient)")
    slippage_mode: Literal["auto", "fixed"] = Field(default="auto", description="Slippage mode")
    slippage_bps: Optional[int] = Field(
        None, ge=0, lt=10_000, description="Tolerance in basis points (required for fixed mode)"
    )
    max_hops: Optional[int] = Field(None, ge=1, le=3, description="Hop limit per swap leg")
    liquidity_usd: Optional[Decimal] = Field(
        None, ge=0, description="Known pool liquidity, skips the oracle lookup"
    )
    client_id: Optional[str] = Field(
        None, description="Caller identity; a newer request with the same id supersedes this one"
    )


class HopInfo(BaseModel):
    """A single step in a route."""

    venue: str
    from_token: str
    to_token: str
    from_amount: str
    to_amount: str


class TransactionInfo(BaseModel):
    """Unsigned transaction prepared by an adapter."""

    to: str
    data: str
    value: str = "0"


class RouteInfo(BaseModel):
    """A resolved route."""

    source: str = Field(..., description="Subsystem that produced the route")
    path: list[str] = Field(default_factory=list, description="Token addresses per path position")
    steps: list[HopInfo] = Field(default_factory=list)
    amount_in: str
    output_amount: str
    min_output_amount: str
    price_impact_bps: int = 0
    estimated_gas_usd: Decimal = Decimal("0")
    protocol_fee_usd: Decimal = Decimal("0")
    score: Decimal = Decimal("0")
    needs_unwrap: bool = False
    router_address: Optional[str] = None
    transaction: Optional[TransactionInfo] = None
    expires_at: float

    class Config:
        json_encoders = {Decimal: str}


class BridgeInfo(BaseModel):
    """The bridge leg of a cross-chain plan."""

    provider: str
    from_chain: int
    to_chain: int
    input_token: str
    output_token: str
    amount_in: str
    output_amount: str
    fee_usd: Decimal = Decimal("0")
    eta_seconds: int = 0

    class Config:
        json_encoders = {Decimal: str}


class CrossChainPlanInfo(BaseModel):
    """Source swap, bridge transfer and destination swap."""

    source_leg: Optional[RouteInfo] = None
    bridge: BridgeInfo
    dest_leg: Optional[RouteInfo] = None


class SimulationInfo(BaseModel):
    """Result of pre-flight checks and the dry run."""

    ok: bool
    proceedable: bool
    call_variant: Optional[str] = None
    error_kind: Optional[str] = None
    error_message: str = ""
    fatal: bool = False
    warnings: list[str] = Field(default_factory=list)


class AttemptInfo(BaseModel):
    """One auto-slippage attempt."""

    attempt: int
    slippage_bps: int
    failed: bool
    output_amount: str = "0"
    failure_reason: str = ""


class ResolveRouteResponse(BaseModel):
    """Route, applied slippage and simulation, or a classified error."""

    success: bool
    route: Optional[RouteInfo] = None
    cross_chain_plan: Optional[CrossChainPlanInfo] = None
    applied_slippage_bps: Optional[int] = None
    simulation: Optional[SimulationInfo] = None
    expires_at: Optional[float] = None
    attempts: list[AttemptInfo] = Field(default_factory=list)
    alternatives: list[RouteInfo] = Field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None
    hint: Optional[str] = Field(None, description="Fixed mode: raise_slippage, try_auto or no_liquidity")
    required_slippage_bps: Optional[int] = None
    max_slippage_tried_bps: Optional[int] = None
