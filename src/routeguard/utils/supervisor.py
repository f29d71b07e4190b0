"""Per-client request supervision.

Keeps at most one in-flight resolution per client. A newer request from the
same client cancels the older one, so a stale result is never returned.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from routeguard.errors import RequestSuperseded

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestSupervisor:
    """Registry of client_id -> in-flight asyncio.Task.

    Example:
        supervisor = RequestSupervisor()
        response = await supervisor.run("wallet-0xabc", engine.resolve(request))
    """

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def is_active(self, client_id: str) -> bool:
        task = self._tasks.get(client_id)
        return task is not None and not task.done()

    async def run(self, client_id: str, work: Awaitable[T]) -> T:
        """Run `work` as the current request for `client_id`.

        Args:
            client_id: Identifies the caller (wallet address, session id)
            work: Coroutine performing the resolution

        Returns:
            The coroutine's result

        Raises:
            RequestSuperseded: a newer request for the same client replaced this one
        """
        task = asyncio.ensure_future(work)
        previous = self._tasks.get(client_id)
        self._tasks[client_id] = task

        if previous is not None and not previous.done():
            logger.info(f"Superseding in-flight request for client {client_id}")
            previous.cancel()

        try:
            return await task
        except asyncio.CancelledError:
            current = self._tasks.get(client_id)
            if task.cancelled() and current is not None and current is not task:
                raise RequestSuperseded(
                    f"Request for client {client_id} was superseded by a newer request"
                )
            raise
        finally:
            if self._tasks.get(client_id) is task:
                del self._tasks[client_id]

    def cancel(self, client_id: str) -> bool:
        """Cancel the in-flight request of one client."""
        task = self._tasks.pop(client_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def cancel_all(self) -> None:
        """Cancel every in-flight request (used on shutdown and in tests)."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
