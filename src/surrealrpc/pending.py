"""Pending queries and the ledger that correlates them with responses."""

from __future__ import annotations

import asyncio
import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, Final, TypeVar

from surrealrpc.envelope import QueryEnvelope, decode_items, decoder_for
from surrealrpc.error import RpcError

if TYPE_CHECKING:
    from collections.abc import Callable

    from surrealrpc.envelope import Decoder
    from surrealrpc.ids import RequestId

T = TypeVar("T")

logger = logging.getLogger(__name__)


class PendingState(Enum):
    """Lifecycle of a pending query. PENDING moves once to a settled state."""

    PENDING = "pending"
    FULFILLED = "fulfilled"
    FAILED = "failed"


class PendingQuery:
    """An in-flight query awaiting its response frame.

    Holds a single-assignment slot for the raw response text. The first call
    to :meth:`fulfill` or :meth:`fail` wins; later calls are ignored.
    """

    def __init__(self, request_id: RequestId, timeout: float | None = None) -> None:
        self.request_id = request_id
        self.timeout = timeout
        self._future: asyncio.Future[str] = asyncio.get_running_loop().create_future()

    @property
    def state(self) -> PendingState:
        if not self._future.done():
            return PendingState.PENDING
        if self._future.cancelled() or self._future.exception() is not None:
            return PendingState.FAILED
        return PendingState.FULFILLED

    def done(self) -> bool:
        return self._future.done()

    def add_done_callback(self, callback: Callable[[PendingQuery], None]) -> None:
        self._future.add_done_callback(lambda _: callback(self))

    def fulfill(self, text: str) -> bool:
        """Settle with the raw response text. Returns False if already settled."""
        if self._future.done():
            return False
        self._future.set_result(text)
        return True

    def fail(self, error: RpcError) -> bool:
        """Settle with an error. Returns False if already settled."""
        if self._future.done():
            return False
        self._future.set_exception(error)
        return True

    async def raw(self) -> str:
        """Wait for the raw response text.

        Cancelling the waiting task abandons the query: it settles as FAILED
        and leaves the ledger.

        Raises:
            RpcError: If the query failed, or timed out waiting for a response
        """
        try:
            return await asyncio.wait_for(asyncio.shield(self._future), self.timeout)
        except asyncio.CancelledError:
            self._future.cancel()
            raise
        except TimeoutError:
            msg = f"No response for {self.request_id} within {self.timeout}s"
            self.fail(RpcError.timeout(msg))
            # A response may have landed between the timeout and fail()
            return self._future.result()

    async def resolve_all(self, shape: type[T] | Decoder[T]) -> list[T] | None:
        """Decode every payload item as ``shape``.

        Returns:
            The decoded items, an empty list if the envelope holds no items,
            or None if any single item fails to decode
        """
        decoder = decoder_for(shape)
        envelope = QueryEnvelope.from_text(await self.raw())
        decoded = decode_items(decoder, envelope.items)
        if decoded is None:
            logger.debug("Discarding result of %s: item failed to decode", self.request_id)
        return decoded

    async def resolve_first(self, shape: type[T] | Decoder[T]) -> T | None:
        """Decode only the first payload item as ``shape``.

        Returns:
            The decoded item, or None if there are no items or it fails to decode
        """
        decoder = decoder_for(shape)
        items = QueryEnvelope.from_text(await self.raw()).items
        if not items:
            return None
        decoded = decode_items(decoder, items[:1])
        return decoded[0] if decoded else None

    def __repr__(self) -> str:
        return f"PendingQuery({self.request_id}, {self.state.value})"


class PendingLedger:
    """Thread-safe mapping from request ID value to pending query.

    Entries are evicted as soon as their query settles.
    """

    def __init__(self) -> None:
        self._entries: dict[int, PendingQuery] = {}
        self._lock: Final = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._entries

    def register(self, pending: PendingQuery) -> None:
        """Record a pending query under its request ID."""
        key = pending.request_id.value
        with self._lock:
            if key in self._entries:
                msg = f"{pending.request_id} is already pending"
                raise ValueError(msg)
            self._entries[key] = pending
        # Covers settlement from outside the ledger, e.g. a timeout
        pending.add_done_callback(self._evict)

    def _evict(self, pending: PendingQuery) -> None:
        key = pending.request_id.value
        with self._lock:
            if self._entries.get(key) is pending:
                del self._entries[key]

    def discard(self, request_id: int) -> PendingQuery | None:
        """Remove a pending query without settling it."""
        with self._lock:
            return self._entries.pop(request_id, None)

    def fulfill(self, request_id: int, text: str) -> bool:
        """Fulfill the query registered under ``request_id``.

        Returns:
            True if a pending query was found and fulfilled
        """
        pending = self.discard(request_id)
        if pending is None:
            return False
        return pending.fulfill(text)

    def fail(self, request_id: int, error: RpcError) -> bool:
        """Fail the query registered under ``request_id``."""
        pending = self.discard(request_id)
        if pending is None:
            return False
        return pending.fail(error)

    def fail_all(self, error: RpcError) -> int:
        """Fail every outstanding query. Returns how many were failed."""
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        count = 0
        for pending in entries:
            if pending.fail(error):
                count += 1
        return count
