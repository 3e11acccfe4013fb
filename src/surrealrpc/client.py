"""Client connection for the database RPC endpoint."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING, Self, TypeVar

import aiohttp

from surrealrpc.error import RpcError
from surrealrpc.ids import RequestId, RequestIdAllocator
from surrealrpc.pending import PendingLedger, PendingQuery
from surrealrpc.transports import WebSocketTransport, create_transport
from surrealrpc.wire import (
    WireQuery,
    WireUse,
    parse_frame_error,
    parse_frame_id,
    serialize_frame,
)

if TYPE_CHECKING:
    from surrealrpc.envelope import Decoder

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class ClientConfig:
    """Configuration for a database RPC connection."""

    url: str = "ws://localhost:8000/rpc"
    namespace: str = "test"
    database: str = "test"
    timeout: float | None = None
    heartbeat: float | None = None


class Connection:
    """A single WebSocket connection to the database RPC endpoint.

    Owns the transport and the ledger of pending queries. A background task
    reads every inbound frame and hands it to :meth:`on_frame`, which settles
    the pending query with the matching request ID. Responses may arrive in
    any order.

    Example:
        >>> async with Connection(ClientConfig()) as conn:
        ...     people = await conn.query(Person, "select * from person")
    """

    def __init__(self, config: ClientConfig | None = None) -> None:
        self.config = config or ClientConfig()
        self._transport: WebSocketTransport | None = None
        self._ids = RequestIdAllocator()
        self._pending = PendingLedger()
        self._listener_task: asyncio.Task | None = None
        self._ready = asyncio.Event()
        self._connecting = False
        self._closed = False

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def ready(self) -> bool:
        """True once the handshake is sent and frames are being received."""
        return self._ready.is_set() and not self._closed

    async def connect(self) -> None:
        """Open the WebSocket, send the handshake and start receiving frames.

        Raises:
            RpcError: If the connection cannot be established
        """
        if self._closed:
            msg = "Connection is closed"
            raise RpcError.connection(msg)
        if self._connecting or self._ready.is_set():
            msg = "Connection already started"
            raise RpcError.connection(msg)

        self._connecting = True
        transport: WebSocketTransport | None = None
        try:
            transport = create_transport(self.config.url, heartbeat=self.config.heartbeat)
            await transport.open()
            handshake = WireUse(self.config.namespace, self.config.database)
            await transport.send(serialize_frame(handshake))
        except (ValueError, aiohttp.ClientError, OSError, TimeoutError) as e:
            msg = f"Could not connect to {self.config.url}: {e}"
            raise RpcError.connection(msg) from e
        else:
            self._transport = transport
            self._listener_task = asyncio.create_task(self._listen_loop())
        finally:
            self._connecting = False
            if self._transport is None:
                if transport is not None:
                    await transport.close()
                self._closed = True
            # Wake queries waiting for readiness, whether or not connect succeeded
            self._ready.set()

        logger.debug(
            "Connected to %s (namespace=%s, database=%s)",
            self.config.url,
            self.config.namespace,
            self.config.database,
        )

    async def _wait_ready(self) -> WebSocketTransport:
        if not self._ready.is_set() and not self._connecting:
            msg = "Not connected - call connect() first"
            raise RpcError.connection(msg)
        await self._ready.wait()
        if self._closed or self._transport is None or not self._transport.connected:
            msg = "Connection is closed"
            raise RpcError.connection(msg)
        return self._transport

    async def issue_query(self, query: str) -> PendingQuery:
        """Send a query and return its pending result.

        The pending query is registered before the frame is sent, so a fast
        response cannot be missed.

        Args:
            query: The query text

        Returns:
            The PendingQuery that will receive the response

        Raises:
            RpcError: If the connection is not usable or the send fails
        """
        transport = await self._wait_ready()

        request_id = self._ids.allocate()
        pending = PendingQuery(request_id, timeout=self.config.timeout)
        self._pending.register(pending)

        frame = serialize_frame(WireQuery(request_id, query))
        logger.debug("Sending %s: %s", request_id, frame[:200])
        try:
            await transport.send(frame)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            self._pending.discard(request_id.value)
            msg = f"Failed to send {request_id}: {e}"
            raise RpcError.connection(msg) from e

        return pending

    async def query(self, shape: type[T] | Decoder[T], query: str) -> list[T] | None:
        """Run a query and decode every result item as ``shape``.

        Returns:
            The decoded items, or None if any item fails to decode
        """
        pending = await self.issue_query(query)
        return await pending.resolve_all(shape)

    async def query_first(self, shape: type[T] | Decoder[T], query: str) -> T | None:
        """Run a query and decode only its first result item as ``shape``.

        Returns:
            The decoded item, or None if there is none or it fails to decode
        """
        pending = await self.issue_query(query)
        return await pending.resolve_first(shape)

    def on_frame(self, text: str) -> None:
        """Route one inbound frame to the pending query with the same id.

        Frames without a usable id are logged and dropped. The handshake
        acknowledgement (id 0) and frames for unknown ids are dropped.
        """
        try:
            frame_id = parse_frame_id(text)
        except ValueError as e:
            logger.warning("Dropping frame without a usable id (%s): %s", e, text[:200])
            return

        request_id = RequestId(frame_id)
        if request_id.is_handshake():
            error = parse_frame_error(text)
            if error is not None:
                logger.warning("Handshake rejected: %s", error.message)
            return

        error = parse_frame_error(text)
        if error is not None:
            found = self._pending.fail(frame_id, RpcError.server(error.message, error.code))
        else:
            found = self._pending.fulfill(frame_id, text)

        if not found:
            logger.debug("Dropping frame for unknown %s", request_id)

    async def _listen_loop(self) -> None:
        """Background task reading inbound frames until the socket closes."""
        transport = self._transport
        if transport is None:
            return

        logger.debug("WebSocket listener started")
        while True:
            try:
                text = await transport.receive()
                logger.debug("Received frame: %s", text[:200])
                self.on_frame(text)
            except asyncio.CancelledError:
                raise
            except (ConnectionError, RuntimeError) as e:
                logger.debug("WebSocket listener stopped: %s", e)
                failed = self._pending.fail_all(RpcError.canceled(f"Connection lost: {e}"))
                if failed:
                    logger.warning("Connection lost with %s queries pending", failed)
                return
            except Exception:
                # Log and continue - don't break the listener on a bad frame
                logger.exception("Error in WebSocket listener")
                await asyncio.sleep(0.1)

    async def close(self) -> None:
        """Close the connection and fail every outstanding query."""
        if self._closed:
            return
        self._closed = True

        if self._listener_task and not self._listener_task.done():
            self._listener_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._listener_task
        self._listener_task = None

        if self._transport:
            await self._transport.close()
            self._transport = None

        failed = self._pending.fail_all(RpcError.canceled("Connection closed"))
        if failed:
            logger.debug("Canceled %s pending queries on close", failed)
        self._ready.set()
