"""Error taxonomy for route resolution and execution safety.

Component-local failures (one rejected candidate, one slow adapter) are
absorbed where they happen. These exceptions are raised only when every
alternative of a stage is exhausted, and carry enough context for the caller
to build a specific, actionable message.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Kinds of failures surfaced to callers."""

    NO_LIQUIDITY_FOUND = "no_liquidity_found"
    NO_ROUTE_FOUND = "no_route_found"
    QUOTE_EXPIRED = "quote_expired"
    SLIPPAGE_EXCEEDED_MAX = "slippage_exceeded_max"
    SLIPPAGE_TOO_LOW = "slippage_too_low"
    FIXED_SLIPPAGE_FAILED = "fixed_slippage_failed"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    SIMULATION_FAILED = "simulation_failed"
    BRIDGE_UNAVAILABLE = "bridge_unavailable"
    UPSTREAM_TIMEOUT = "upstream_timeout"
    UPSTREAM_ERROR = "upstream_error"
    REQUEST_SUPERSEDED = "request_superseded"
    INVALID_REQUEST = "invalid_request"


class RouteGuardError(Exception):
    """Base class for all taxonomy errors."""

    kind: ErrorKind = ErrorKind.NO_ROUTE_FOUND

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error_kind": self.kind.value, "error": self.message}


class NoLiquidityFound(RouteGuardError):
    """The liquidity oracle has no usable edge for the requested tokens."""

    kind = ErrorKind.NO_LIQUIDITY_FOUND


class NoRouteFound(RouteGuardError):
    """Direct, multi-hop and fallback candidates were all exhausted."""

    kind = ErrorKind.NO_ROUTE_FOUND


class QuoteExpired(RouteGuardError):
    """A route passed its expires_at before execution."""

    kind = ErrorKind.QUOTE_EXPIRED

    def __init__(self, expires_at: float):
        self.expires_at = expires_at
        super().__init__(
            f"Quote expired at {expires_at:.0f}; re-resolve the route before submitting"
        )


class UpstreamTimeout(RouteGuardError):
    """Every upstream source ran out of budget without contributing."""

    kind = ErrorKind.UPSTREAM_TIMEOUT


class SlippageTooLow(RouteGuardError):
    """Candidates exist, but none executes within the requested tolerance."""

    kind = ErrorKind.SLIPPAGE_TOO_LOW

    def __init__(self, slippage_bps: int, required_bps: int):
        self.slippage_bps = slippage_bps
        self.required_bps = required_bps
        super().__init__(
            f"Routes exist but need at least {required_bps} bps of slippage "
            f"(requested {slippage_bps} bps)"
        )


class SlippageExceededMax(RouteGuardError):
    """Auto mode tried every tolerance up to the cap without a route."""

    kind = ErrorKind.SLIPPAGE_EXCEEDED_MAX

    def __init__(self, max_tried_bps: int, attempts: Optional[list] = None):
        self.max_tried_bps = max_tried_bps
        self.attempts = attempts or []
        tried = ", ".join(f"{a.slippage_bps} bps" for a in self.attempts)
        reason = ""
        if self.attempts and self.attempts[-1].failure_reason:
            reason = f" Last failure: {self.attempts[-1].failure_reason}."
        super().__init__(
            f"No route found with auto slippage up to {max_tried_bps} bps "
            f"({max_tried_bps / 100:.2f}%). Tried: {tried or 'none'}.{reason}"
        )


class FixedSlippageFailed(RouteGuardError):
    """A fixed-slippage request failed; `hint` says what the user should do."""

    kind = ErrorKind.FIXED_SLIPPAGE_FAILED

    RAISE_SLIPPAGE = "raise_slippage"
    TRY_AUTO = "try_auto"
    NO_LIQUIDITY = "no_liquidity"

    def __init__(self, hint: str, slippage_bps: int, detail: str = "", required_bps: Optional[int] = None):
        self.hint = hint
        self.slippage_bps = slippage_bps
        self.required_bps = required_bps
        if hint == self.RAISE_SLIPPAGE:
            target = f" to at least {required_bps} bps" if required_bps else ""
            message = (
                f"Swap cannot execute within {slippage_bps} bps slippage. "
                f"Raise your slippage{target} or switch to auto mode."
            )
        elif hint == self.NO_LIQUIDITY:
            message = "No liquidity exists for this token pair; no slippage setting will help."
        else:
            message = (
                f"No route found at {slippage_bps} bps slippage. "
                f"Try auto slippage mode."
            )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class InsufficientBalance(RouteGuardError):
    """Signer does not hold the input amount. Never retried."""

    kind = ErrorKind.INSUFFICIENT_BALANCE


class InsufficientAllowance(RouteGuardError):
    """Spending allowance below input amount. Warning level only."""

    kind = ErrorKind.INSUFFICIENT_ALLOWANCE


class SimulationFailed(RouteGuardError):
    """On-chain dry run reverted; `fatal` separates blocking from risky reasons."""

    kind = ErrorKind.SIMULATION_FAILED

    def __init__(self, reason: str, fatal: bool = False):
        self.reason = reason
        self.fatal = fatal
        super().__init__(f"Simulation failed: {reason}")


class BridgeUnavailable(RouteGuardError):
    """No bridge provider quoted the requested chain pair/token."""

    kind = ErrorKind.BRIDGE_UNAVAILABLE


class RequestSuperseded(RouteGuardError):
    """A newer request from the same client replaced this one."""

    kind = ErrorKind.REQUEST_SUPERSEDED


class InvalidRequest(RouteGuardError):
    """The swap request is malformed."""

    kind = ErrorKind.INVALID_REQUEST
