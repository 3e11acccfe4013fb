"""Shared fixtures: an in-process database RPC endpoint."""

from __future__ import annotations

import json
from typing import Any

import aiohttp
import pytest
from aiohttp import web

from surrealrpc import ClientConfig, Connection


class FakeDatabase:
    """Minimal WebSocket RPC endpoint answering ``use`` and ``query`` frames.

    - ``rows[query]`` is returned as the payload of the first statement
    - ``errors[query]`` is returned as an error frame
    - queries in ``silent`` are never answered
    - with ``hold = n`` responses are held until n are queued, then sent
      in reverse order
    """

    def __init__(self) -> None:
        self.rows: dict[str, list[Any]] = {}
        self.errors: dict[str, str] = {}
        self.silent: set[str] = set()
        self.hold = 0
        self.frames: list[dict[str, Any]] = []
        self.url = ""
        self._held: list[dict[str, Any]] = []
        self._sockets: list[web.WebSocketResponse] = []
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/rpc", self._handle_websocket)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "127.0.0.1", 0)
        await site.start()
        host, port = self._runner.addresses[0][:2]
        self.url = f"ws://{host}:{port}/rpc"

    async def stop(self) -> None:
        await self.drop_connections()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def drop_connections(self) -> None:
        for ws in self._sockets:
            await ws.close()
        self._sockets.clear()

    async def send_raw(self, data: str) -> None:
        """Push an unsolicited text frame to every connected client."""
        for ws in self._sockets:
            await ws.send_str(data)

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self._sockets.append(ws)

        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                frame = json.loads(msg.data)
                self.frames.append(frame)
                await self._answer(ws, frame)

        return ws

    async def _answer(self, ws: web.WebSocketResponse, frame: dict[str, Any]) -> None:
        if frame["method"] == "use":
            await ws.send_json({"id": frame["id"], "result": None})
            return

        query = frame["params"][0]
        if query in self.silent:
            return
        if query in self.errors:
            response = {
                "id": frame["id"],
                "error": {"code": -32000, "message": self.errors[query]},
            }
        else:
            response = {
                "id": frame["id"],
                "result": [
                    {"status": "OK", "time": "1ms", "result": self.rows.get(query, [])}
                ],
            }

        if self.hold:
            self._held.append(response)
            if len(self._held) < self.hold:
                return
            for held in reversed(self._held):
                await ws.send_json(held)
            self._held.clear()
            return

        await ws.send_json(response)


@pytest.fixture
async def fake_db():
    """Start an in-process database endpoint."""
    db = FakeDatabase()
    await db.start()

    yield db

    await db.stop()


@pytest.fixture
async def conn(fake_db: FakeDatabase):
    """Create a connection to the fake database."""
    connection = Connection(ClientConfig(url=fake_db.url, timeout=5.0))
    await connection.connect()

    yield connection

    await connection.close()
