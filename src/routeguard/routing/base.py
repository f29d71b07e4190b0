"""Candidate-producing route sources and their structured results."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from routeguard.models import Route, Token
from routeguard.utils.deadline import Deadline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteContext:
    """Everything a source needs to produce candidates for one aggregation."""

    from_token: Token
    to_token: Token
    amount_in: int
    slippage_bps: int
    sender: Optional[str] = None
    max_hops: int = 3
    deadline: Optional[Deadline] = None

    @property
    def chain_id(self) -> int:
        return self.from_token.chain_id

    @property
    def is_cross_chain(self) -> bool:
        return self.from_token.chain_id != self.to_token.chain_id


class SourceStatus(str, Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class SourceResult:
    """Outcome of one source for one aggregation: success, timeout or error."""

    source: str
    status: SourceStatus
    routes: tuple[Route, ...] = ()
    error_kind: Optional[str] = None
    error_message: str = ""
    elapsed: float = 0.0
    error: Optional[Exception] = field(default=None, compare=False, repr=False)

    @classmethod
    def ok(cls, source: str, routes, elapsed: float = 0.0) -> "SourceResult":
        return cls(source=source, status=SourceStatus.OK, routes=tuple(routes), elapsed=elapsed)

    @classmethod
    def timed_out(cls, source: str, elapsed: float = 0.0) -> "SourceResult":
        return cls(
            source=source,
            status=SourceStatus.TIMEOUT,
            error_kind="upstream_timeout",
            error_message=f"{source} exceeded its time budget",
            elapsed=elapsed,
        )

    @classmethod
    def failed(cls, source: str, error: Exception, elapsed: float = 0.0) -> "SourceResult":
        kind = getattr(error, "kind", None)
        return cls(
            source=source,
            status=SourceStatus.ERROR,
            error_kind=kind.value if kind is not None else "upstream_error",
            error_message=str(error) or type(error).__name__,
            elapsed=elapsed,
            error=error,
        )

    @property
    def succeeded(self) -> bool:
        return self.status == SourceStatus.OK


class RouteSource(ABC):
    """A strategy that turns a request into zero or more Route candidates.

    Adding a liquidity source or bridge means adding one implementation.
    """

    timeout: float = 4.0

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name, used as the route's source label."""
        pass

    def applies_to(self, context: RouteContext) -> bool:
        """Whether this source can serve the request at all."""
        return not context.is_cross_chain

    @abstractmethod
    async def produce_candidates(self, context: RouteContext) -> list[Route]:
        """
        Produce candidate routes.

        Returns:
            Candidates (possibly empty). Raise a RouteGuardError to report
            why nothing could be produced.
        """
        pass
