"""
Optional request/response correlation for stream commands.

Kraken echoes a command's ``req_id`` in its acknowledgement. When tracking
is enabled, each outbound command that carries a ``req_id`` gets a pending
future that resolves with the first inbound message echoing the same id.
"""

import asyncio
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from kraken_clients.errors import InvalidUsageError, KrakenError

from .models import InboundMessage

ResolutionCallback = Callable[[InboundMessage], Optional[Awaitable[None]]]

DEFAULT_MAX_UNREAD = 256


class RequestCorrelator:
    """
    Table of outstanding requests keyed by ``req_id``.

    An entry leaves the table when it resolves. If nobody has claimed it yet
    (no waiter via ``get()``, no callback), the finished future is parked in a
    bounded unread buffer so an acknowledgement that beats the caller's
    ``get()`` is not lost. The oldest unread entries are evicted first.
    """

    def __init__(self, logger: Optional[Any] = None, max_unread: int = DEFAULT_MAX_UNREAD):
        self.logger = logger
        self.max_unread = max_unread
        self._pending: Dict[int, asyncio.Future] = {}
        self._callbacks: Dict[int, List[ResolutionCallback]] = {}
        self._claimed: Set[int] = set()
        self._unread: "OrderedDict[int, asyncio.Future]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, req_id: int) -> bool:
        return req_id in self._pending

    @property
    def unread_count(self) -> int:
        return len(self._unread)

    def register(self, req_id: int) -> asyncio.Future:
        """
        Start tracking ``req_id``.

        Raises:
            InvalidUsageError: If the same id is still awaiting its response
        """
        if req_id in self._pending:
            raise InvalidUsageError(f"req_id {req_id} is already awaiting a response")
        self._unread.pop(req_id, None)
        future = asyncio.get_running_loop().create_future()
        self._pending[req_id] = future
        return future

    def add_callback(self, req_id: int, callback: ResolutionCallback) -> None:
        """Run ``callback`` with the acknowledgement once ``req_id`` resolves."""
        if req_id in self._pending:
            self._callbacks.setdefault(req_id, []).append(callback)
            return

        # Acknowledgement arrived before the callback was attached
        future = self._unread.pop(req_id, None)
        if future is None:
            raise InvalidUsageError(f"req_id {req_id} is not pending")
        if not future.cancelled() and future.exception() is None:
            asyncio.get_running_loop().create_task(self._run_callbacks(req_id, future.result(), [callback]))

    def get(self, req_id: int) -> Optional[asyncio.Future]:
        """
        Claim the future for ``req_id``: pending, or finished but not yet read.

        Returns None when the id is unknown.
        """
        future = self._pending.get(req_id)
        if future is not None:
            self._claimed.add(req_id)
            return future
        return self._unread.pop(req_id, None)

    def discard(self, req_id: int) -> None:
        """Forget ``req_id`` without resolving it (send failed, caller gave up)."""
        future = self._pending.pop(req_id, None)
        self._callbacks.pop(req_id, None)
        self._claimed.discard(req_id)
        self._unread.pop(req_id, None)
        if future is not None and not future.done():
            future.cancel()

    def _finish(self, req_id: int) -> asyncio.Future:
        """Remove ``req_id`` from the pending table, parking it if nobody claimed it."""
        future = self._pending.pop(req_id)
        claimed = req_id in self._claimed
        self._claimed.discard(req_id)
        if not claimed and req_id not in self._callbacks:
            self._unread[req_id] = future
            while len(self._unread) > self.max_unread:
                self._unread.popitem(last=False)
        return future

    async def _run_callbacks(
        self,
        req_id: int,
        message: InboundMessage,
        callbacks: List[ResolutionCallback],
    ) -> None:
        for callback in callbacks:
            try:
                result = callback(message)
                if isinstance(result, Awaitable):
                    await result
            except Exception as exc:
                if self.logger:
                    self.logger.error(f"[KRAKEN] Resolution callback for req_id {req_id} failed: {exc}")

    async def resolve(self, message: InboundMessage) -> bool:
        """
        Resolve the request echoed by ``message``. Only the first echo counts.

        Returns:
            True if a pending request matched
        """
        req_id = getattr(message, "req_id", None)
        # Feed frames keep unknown fields verbatim, so req_id may be anything
        if not isinstance(req_id, int) or isinstance(req_id, bool) or req_id not in self._pending:
            return False

        future = self._finish(req_id)
        future.set_result(message)
        await self._run_callbacks(req_id, message, self._callbacks.pop(req_id, []))
        return True

    def fail_all(self, error: KrakenError) -> None:
        """Fail every outstanding request, e.g. when the session terminates."""
        for req_id in list(self._pending):
            future = self._finish(req_id)
            self._callbacks.pop(req_id, None)
            future.set_exception(error)
            # Nobody may be waiting; mark the exception as retrieved
            future.exception()
        self._callbacks = {}
