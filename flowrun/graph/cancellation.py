"""Cancellation token threaded through every node execution."""

import asyncio

from flowrun.errors import NodeCancelledError


class CancellationToken:
    """
    Cooperative cancellation signal for one workflow run.

    The executor races each node body against :meth:`wait`; node bodies and
    collaborators may also poll :attr:`cancelled` or call
    :meth:`raise_if_cancelled` between their own suspension points.

    Example:
        token = CancellationToken()
        task = asyncio.create_task(executor.run(graph, "seed", cancel_token=token))
        ...
        token.cancel("user pressed stop")
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = ""

    def cancel(self, reason: str = "") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise NodeCancelledError(self._reason)
