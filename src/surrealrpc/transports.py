"""WebSocket transport for the database RPC endpoint.

Frames are JSON text, so the transport sends and receives ``str``.
"""

from __future__ import annotations

from typing import Any, Self

import aiohttp


class WebSocketTransport:
    """WebSocket transport implementation.

    Wraps a single aiohttp client WebSocket connection.
    """

    def __init__(self, url: str, heartbeat: float | None = None) -> None:
        """Initialize the WebSocket transport.

        Args:
            url: The WebSocket URL (e.g., "ws://localhost:8000/rpc")
            heartbeat: Ping interval in seconds (None disables pings)
        """
        self.url = url
        self.heartbeat = heartbeat
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    async def open(self) -> None:
        """Open the WebSocket connection.

        Raises:
            aiohttp.ClientError: If the connection cannot be established
        """
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self.url, heartbeat=self.heartbeat)
        except BaseException:
            await self._session.close()
            self._session = None
            raise

    async def send(self, data: str) -> None:
        """Send a text frame.

        Raises:
            RuntimeError: If transport is not connected
        """
        if not self._ws:
            msg = "WebSocket not connected"
            raise RuntimeError(msg)

        await self._ws.send_str(data)

    async def receive(self) -> str:
        """Receive the next frame as text.

        Returns:
            Received frame text

        Raises:
            RuntimeError: If transport is not connected
            ConnectionError: If WebSocket is closed
        """
        if not self._ws:
            msg = "WebSocket not connected"
            raise RuntimeError(msg)

        msg = await self._ws.receive()

        if msg.type == aiohttp.WSMsgType.TEXT:
            return msg.data
        if msg.type == aiohttp.WSMsgType.BINARY:
            return msg.data.decode("utf-8")
        if msg.type in (
            aiohttp.WSMsgType.CLOSE,
            aiohttp.WSMsgType.CLOSING,
            aiohttp.WSMsgType.CLOSED,
        ):
            msg = "WebSocket closed"
            raise ConnectionError(msg)
        if msg.type == aiohttp.WSMsgType.ERROR:
            msg = f"WebSocket error: {self._ws.exception()}"
            raise ConnectionError(msg)
        msg = f"Unexpected message type: {msg.type}"
        raise ValueError(msg)

    async def close(self) -> None:
        """Close the WebSocket connection."""
        if self._ws:
            await self._ws.close()
            self._ws = None
        if self._session:
            await self._session.close()
            self._session = None


def create_transport(url: str, **kwargs: Any) -> WebSocketTransport:
    """Factory function to create a transport for an RPC endpoint URL.

    Args:
        url: The endpoint URL
        **kwargs: Additional transport options (``heartbeat``)

    Returns:
        A WebSocketTransport

    Examples:
        >>> transport = create_transport("ws://localhost:8000/rpc")
        >>> transport = create_transport("wss://db.example.com/rpc", heartbeat=30.0)
    """
    if url.startswith(("ws://", "wss://")):
        return WebSocketTransport(url, heartbeat=kwargs.get("heartbeat"))
    msg = f"Unsupported URL scheme: {url}"
    raise ValueError(msg)
