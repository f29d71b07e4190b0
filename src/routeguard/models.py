"""Value objects shared by every routing component.

All of these are created fresh per request. Routes and quotes are immutable:
re-quoting produces a new object, never mutates an old one.
"""

import time
from dataclasses import dataclass, field, replace
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Optional

from routeguard.errors import QuoteExpired

BPS = 10_000

NATIVE_ADDRESS = "0x0000000000000000000000000000000000000000"
# Aggregator APIs (1inch, LI.FI) use this alias for the native asset
NATIVE_ALIAS = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"

UNWRAP_VENUE = "unwrap"
BRIDGE_VENUE_PREFIX = "bridge:"


@dataclass(frozen=True)
class Token:
    """Token identity: (chain_id, address). Symbol is descriptive only."""

    chain_id: int
    address: str
    decimals: int = 18
    symbol: str = field(default="", compare=False)

    def __post_init__(self):
        address = self.address.lower()
        if address == NATIVE_ALIAS:
            address = NATIVE_ADDRESS
        object.__setattr__(self, "address", address)

    @classmethod
    def native(cls, chain_id: int, symbol: str = "", decimals: int = 18) -> "Token":
        return cls(chain_id=chain_id, address=NATIVE_ADDRESS, decimals=decimals, symbol=symbol)

    @property
    def is_native(self) -> bool:
        return self.address == NATIVE_ADDRESS

    @property
    def key(self) -> tuple[int, str]:
        return (self.chain_id, self.address)

    def to_units(self, amount: Decimal) -> int:
        """Convert a human-readable amount to base units."""
        return int((Decimal(amount) * (Decimal(10) ** self.decimals)).to_integral_value(ROUND_DOWN))

    def from_units(self, amount: int) -> Decimal:
        """Convert base units to a human-readable amount."""
        return Decimal(amount) / (Decimal(10) ** self.decimals)

    def __str__(self) -> str:
        label = self.symbol or self.address[:10]
        return f"{label}@{self.chain_id}"


@dataclass(frozen=True)
class Edge:
    """A tradable pool between two tokens as reported by the pair-data provider.

    Reserves are human-readable (decimal-adjusted) amounts.
    """

    token_a: Token
    token_b: Token
    venue_id: str
    liquidity_usd: Decimal
    reserve_a: Decimal = Decimal("0")
    reserve_b: Decimal = Decimal("0")
    last_verified_at: float = field(default_factory=time.time)
    pair_address: str = ""
    price_usd_a: Optional[Decimal] = None
    price_usd_b: Optional[Decimal] = None

    def involves(self, token: Token) -> bool:
        return token.key in (self.token_a.key, self.token_b.key)

    def other(self, token: Token) -> Token:
        """Return the counterpart of `token` in this pair."""
        if token.key == self.token_a.key:
            return self.token_b
        if token.key == self.token_b.key:
            return self.token_a
        raise ValueError(f"{token} is not part of pair {self.pair_address or self.venue_id}")

    def reserve_of(self, token: Token) -> Decimal:
        return self.reserve_a if token.key == self.token_a.key else self.reserve_b

    def price_of(self, token: Token) -> Optional[Decimal]:
        return self.price_usd_a if token.key == self.token_a.key else self.price_usd_b

    def usable(self, min_liquidity_usd: Decimal) -> bool:
        return self.liquidity_usd >= min_liquidity_usd


@dataclass(frozen=True)
class Hop:
    """One token-to-token leg on a single venue (amounts in base units)."""

    venue_id: str
    from_token: Token
    to_token: Token
    from_amount: int
    to_amount: int

    @property
    def is_unwrap(self) -> bool:
        return self.venue_id == UNWRAP_VENUE

    @property
    def is_bridge(self) -> bool:
        return self.venue_id.startswith(BRIDGE_VENUE_PREFIX)


@dataclass(frozen=True)
class TransactionRequest:
    """A ready-to-sign call produced by an adapter."""

    to: str
    data: str
    value: int = 0


@dataclass(frozen=True)
class Route:
    """A verified, executable swap route.

    `path` is the venue path (native assets mapped to their wrapped form);
    `steps[-1].to_token` is what the user actually receives.
    """

    input_token: Token
    output_token: Token
    path: tuple[Token, ...]
    steps: tuple[Hop, ...]
    source_label: str
    amount_in: int
    output_amount: int
    price_impact_bps: int = 0
    estimated_gas_usd: Decimal = Decimal("0")
    protocol_fee_usd: Decimal = Decimal("0")
    score: Decimal = Decimal("0")
    expires_at: float = 0.0
    needs_unwrap: bool = False
    venue_id: str = ""
    router_address: str = ""
    slippage_bps: int = 0
    transaction: Optional[TransactionRequest] = None
    plan: Optional["CrossChainPlan"] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if len(self.path) < 2:
            raise ValueError("Route path needs at least two tokens")
        if not self.steps:
            raise ValueError("Route needs at least one hop")
        for current, following in zip(self.steps, self.steps[1:]):
            if current.to_token.key != following.from_token.key:
                raise ValueError(
                    f"Broken route: hop ends at {current.to_token} "
                    f"but next hop starts at {following.from_token}"
                )

    @property
    def hop_count(self) -> int:
        return sum(1 for step in self.steps if not step.is_unwrap)

    @property
    def final_token(self) -> Token:
        return self.steps[-1].to_token

    @property
    def path_key(self) -> tuple:
        return tuple(token.key for token in self.path) + (self.needs_unwrap,)

    @property
    def min_output_amount(self) -> int:
        return self.output_amount * (BPS - self.slippage_bps) // BPS

    @property
    def is_cross_chain(self) -> bool:
        return self.plan is not None

    @property
    def is_executable(self) -> bool:
        """A router call, an adapter transaction or a bridge plan can carry it out."""
        return bool(self.router_address) or self.transaction is not None or self.plan is not None

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) > self.expires_at

    def ensure_fresh(self, now: Optional[float] = None) -> None:
        """Raise QuoteExpired if this route must not be submitted any more."""
        if self.is_expired(now):
            raise QuoteExpired(self.expires_at)

    def with_score(self, score: Decimal) -> "Route":
        return replace(self, score=score)

    def with_slippage(self, slippage_bps: int) -> "Route":
        return replace(self, slippage_bps=slippage_bps)


@dataclass(frozen=True)
class BridgeQuote:
    """A bridge provider's quote for moving one token between chains."""

    provider_id: str
    from_chain: int
    to_chain: int
    input_token: Token
    output_token: Token
    amount_in: int
    output_amount: int
    fee_usd: Decimal = Decimal("0")
    eta_seconds: int = 0
    reliability_score: Decimal = Decimal("1")
    expires_at: float = 0.0


@dataclass(frozen=True)
class CrossChainPlan:
    """Source-chain swap -> bridge transfer -> destination-chain swap."""

    source_leg: Optional[Route]
    bridge: BridgeQuote
    dest_leg: Optional[Route]

    def __post_init__(self):
        if self.source_leg is not None and self.source_leg.final_token.key != self.bridge.input_token.key:
            raise ValueError(
                f"Source leg ends at {self.source_leg.final_token}, "
                f"bridge expects {self.bridge.input_token}"
            )
        if self.dest_leg is not None and self.dest_leg.steps[0].from_token.key != self.bridge.output_token.key:
            raise ValueError(
                f"Destination leg starts at {self.dest_leg.steps[0].from_token}, "
                f"bridge delivers {self.bridge.output_token}"
            )

    @property
    def input_token(self) -> Token:
        return self.source_leg.input_token if self.source_leg else self.bridge.input_token

    @property
    def output_token(self) -> Token:
        return self.dest_leg.output_token if self.dest_leg else self.bridge.output_token

    @property
    def output_amount(self) -> int:
        return self.dest_leg.output_amount if self.dest_leg else self.bridge.output_amount

    @property
    def legs(self) -> list[Route]:
        return [leg for leg in (self.source_leg, self.dest_leg) if leg is not None]

    def to_route(self) -> Route:
        """Flatten the plan into one Route so it can be ranked with the rest."""
        bridge_hop = Hop(
            venue_id=f"{BRIDGE_VENUE_PREFIX}{self.bridge.provider_id}",
            from_token=self.bridge.input_token,
            to_token=self.bridge.output_token,
            from_amount=self.bridge.amount_in,
            to_amount=self.bridge.output_amount,
        )
        source_steps = self.source_leg.steps if self.source_leg else ()
        dest_steps = self.dest_leg.steps if self.dest_leg else ()
        source_path = self.source_leg.path if self.source_leg else (self.bridge.input_token,)
        dest_path = self.dest_leg.path if self.dest_leg else (self.bridge.output_token,)

        legs = self.legs
        expiries = [leg.expires_at for leg in legs]
        if self.bridge.expires_at:
            expiries.append(self.bridge.expires_at)

        return Route(
            input_token=self.input_token,
            output_token=self.output_token,
            path=tuple(source_path) + tuple(dest_path),
            steps=tuple(source_steps) + (bridge_hop,) + tuple(dest_steps),
            source_label=bridge_hop.venue_id,
            amount_in=self.source_leg.amount_in if self.source_leg else self.bridge.amount_in,
            output_amount=self.output_amount,
            price_impact_bps=sum(leg.price_impact_bps for leg in legs),
            estimated_gas_usd=sum((leg.estimated_gas_usd for leg in legs), Decimal("0")),
            protocol_fee_usd=self.bridge.fee_usd
            + sum((leg.protocol_fee_usd for leg in legs), Decimal("0")),
            expires_at=min(expiries) if expiries else 0.0,
            needs_unwrap=bool(self.dest_leg and self.dest_leg.needs_unwrap),
            venue_id=self.source_leg.venue_id if self.source_leg else bridge_hop.venue_id,
            router_address=self.source_leg.router_address if self.source_leg else "",
            plan=self,
        )


@dataclass(frozen=True)
class SlippageAttempt:
    """One iteration of the auto-slippage loop."""

    attempt_number: int
    slippage_bps: int
    route: Optional[Route] = None
    failed: bool = False
    failure_reason: str = ""

    @property
    def output_amount(self) -> int:
        return self.route.output_amount if self.route else 0


class CallVariant(str, Enum):
    """Router functions a validated swap can be submitted through."""

    EXACT_ETH_FOR_TOKENS = "swapExactETHForTokens"
    EXACT_TOKENS_FOR_ETH = "swapExactTokensForETH"
    EXACT_TOKENS_FOR_TOKENS = "swapExactTokensForTokens"
    EXACT_ETH_FOR_TOKENS_FOT = "swapExactETHForTokensSupportingFeeOnTransferTokens"
    EXACT_TOKENS_FOR_ETH_FOT = "swapExactTokensForETHSupportingFeeOnTransferTokens"
    EXACT_TOKENS_FOR_TOKENS_FOT = "swapExactTokensForTokensSupportingFeeOnTransferTokens"
    ADAPTER = "adapter"

    @property
    def is_fee_on_transfer(self) -> bool:
        return self.value.endswith("SupportingFeeOnTransferTokens")

    @property
    def fee_on_transfer_variant(self) -> "CallVariant":
        return {
            CallVariant.EXACT_ETH_FOR_TOKENS: CallVariant.EXACT_ETH_FOR_TOKENS_FOT,
            CallVariant.EXACT_TOKENS_FOR_ETH: CallVariant.EXACT_TOKENS_FOR_ETH_FOT,
            CallVariant.EXACT_TOKENS_FOR_TOKENS: CallVariant.EXACT_TOKENS_FOR_TOKENS_FOT,
        }.get(self, self)


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of pre-flight checks plus the on-chain dry run."""

    ok: bool
    selected_call_variant: Optional[CallVariant] = None
    error_kind: Optional[str] = None
    error_message: str = ""
    fatal: bool = False
    warnings: tuple[str, ...] = ()
    attempts: int = 0

    @property
    def proceedable(self) -> bool:
        """True when the caller may still submit, accepting any warnings."""
        return self.ok or not self.fatal


class SlippageMode(str, Enum):
    AUTO = "auto"
    FIXED = "fixed"


@dataclass(frozen=True)
class SwapRequest:
    """What the UI collaborator asks for."""

    from_token: Token
    to_token: Token
    amount_in: int
    recipient_address: str
    slippage_mode: SlippageMode = SlippageMode.AUTO
    slippage_bps: Optional[int] = None
    max_hops: Optional[int] = None
    sender_address: Optional[str] = None
    liquidity_usd: Optional[Decimal] = None
    external_routes: tuple[Route, ...] = ()

    @property
    def signer_address(self) -> str:
        return self.sender_address or self.recipient_address

    @property
    def is_cross_chain(self) -> bool:
        return self.from_token.chain_id != self.to_token.chain_id

    def with_slippage(self, slippage_bps: int) -> "SwapRequest":
        return replace(self, slippage_bps=slippage_bps)


@dataclass(frozen=True)
class SwapResponse:
    """What the UI collaborator gets back."""

    route: Route
    applied_slippage_bps: int
    simulation: SimulationResult
    expires_at: float
    attempts: tuple[SlippageAttempt, ...] = ()
    alternatives: tuple[Route, ...] = ()

    @property
    def cross_chain_plan(self) -> Optional[CrossChainPlan]:
        return self.route.plan
