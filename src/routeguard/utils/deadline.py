"""Request deadline and injectable sleep."""

import asyncio
from typing import Awaitable, Callable, Optional

# Retry loops take one of these so tests can skip real delays
Sleep = Callable[[float], Awaitable[None]]


class Deadline:
    """A point in loop time after which a request stops waiting."""

    def __init__(self, seconds: float, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or asyncio.get_running_loop().time
        self.seconds = seconds
        self.expires_at = self._clock() + seconds

    @property
    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining <= 0

    def bound(self, timeout: float) -> float:
        """Clamp a per-call timeout to what is left of the request budget."""
        return min(timeout, self.remaining)
