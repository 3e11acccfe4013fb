"""Integration tests against an in-process WebSocket RPC endpoint."""

import asyncio
from dataclasses import dataclass

import pytest

from surrealrpc import ClientConfig, Connection, ErrorCode, RpcError


@dataclass
class Person:
    name: str
    id: str


PEOPLE = [
    {"name": "Tobie", "id": "person:99t3gb863y5t2s82l28w"},
    {"name": "Jaime", "id": "person:99o1ox467x1o3k84c06p"},
]


@pytest.mark.asyncio
class TestConnectionIntegration:
    """End-to-end behaviour of Connection over a real socket."""

    async def test_handshake_then_query(self, fake_db, conn: Connection) -> None:
        """Test the use frame is sent first with id 0."""
        fake_db.rows["select * from person"] = PEOPLE

        result = await conn.query(Person, "select * from person")

        assert result == [Person(**p) for p in PEOPLE]
        assert fake_db.frames[0] == {"id": 0, "method": "use", "params": ["test", "test"]}
        assert fake_db.frames[1] == {
            "id": 1,
            "method": "query",
            "params": ["select * from person"],
        }

    async def test_query_first(self, fake_db, conn: Connection) -> None:
        fake_db.rows["select * from person"] = PEOPLE

        assert await conn.query_first(Person, "select * from person") == Person(**PEOPLE[0])

    async def test_empty_result(self, fake_db, conn: Connection) -> None:
        assert await conn.query(Person, "select * from nobody") == []
        assert await conn.query_first(Person, "select * from nobody") is None

    async def test_bad_row_discards_result(self, fake_db, conn: Connection) -> None:
        fake_db.rows["select * from person"] = [*PEOPLE, {"name": "no id"}]

        assert await conn.query(Person, "select * from person") is None

    async def test_sequential_ids(self, fake_db, conn: Connection) -> None:
        for i in range(3):
            await conn.query(Person, f"select * from person limit {i}")

        assert [frame["id"] for frame in fake_db.frames] == [0, 1, 2, 3]

    async def test_query_text_is_escaped(self, fake_db, conn: Connection) -> None:
        query = 'select * from person where name = "Tobie"'
        fake_db.rows[query] = PEOPLE[:1]

        assert await conn.query(Person, query) == [Person(**PEOPLE[0])]
        assert fake_db.frames[-1]["params"] == [query]

    async def test_responses_in_reverse_order(self, fake_db, conn: Connection) -> None:
        """Test two queries answered newest-first both resolve correctly."""
        fake_db.hold = 2
        fake_db.rows["select * from person:a"] = PEOPLE[:1]
        fake_db.rows["select * from person:b"] = PEOPLE[1:]

        first = await conn.issue_query("select * from person:a")
        second = await conn.issue_query("select * from person:b")

        results = await asyncio.gather(first.resolve_first(Person), second.resolve_first(Person))
        assert results == [Person(**PEOPLE[0]), Person(**PEOPLE[1])]

    async def test_concurrent_queries(self, fake_db, conn: Connection) -> None:
        for i in range(10):
            fake_db.rows[f"q{i}"] = [{"name": f"n{i}", "id": f"person:{i}"}]

        results = await asyncio.gather(*(conn.query_first(Person, f"q{i}") for i in range(10)))

        assert results == [Person(f"n{i}", f"person:{i}") for i in range(10)]
        assert len(conn._pending) == 0

    async def test_unsolicited_frame_is_ignored(self, fake_db, conn: Connection) -> None:
        fake_db.rows["select * from person"] = PEOPLE

        await conn.query(Person, "select * from person")
        await fake_db.send_raw('{"id": 42, "result": [{"result": []}]}')
        await fake_db.send_raw("not even json")

        assert await conn.query(Person, "select * from person") == [Person(**p) for p in PEOPLE]

    async def test_server_error(self, fake_db, conn: Connection) -> None:
        fake_db.errors["selec * from person"] = "Parse error"

        with pytest.raises(RpcError) as exc_info:
            await conn.query(Person, "selec * from person")

        assert exc_info.value.code == ErrorCode.SERVER
        assert exc_info.value.message == "Parse error"

    async def test_close_releases_waiting_query(self, fake_db, conn: Connection) -> None:
        fake_db.silent.add("sleep 1h")
        pending = await conn.issue_query("sleep 1h")

        await conn.close()

        with pytest.raises(RpcError) as exc_info:
            await pending.raw()
        assert exc_info.value.code == ErrorCode.CANCELED

    async def test_server_disconnect_releases_waiting_query(
        self, fake_db, conn: Connection
    ) -> None:
        fake_db.silent.add("sleep 1h")
        pending = await conn.issue_query("sleep 1h")

        await fake_db.drop_connections()

        with pytest.raises(RpcError) as exc_info:
            await pending.raw()
        assert exc_info.value.code == ErrorCode.CANCELED

    async def test_query_after_close(self, conn: Connection) -> None:
        await conn.close()

        with pytest.raises(RpcError) as exc_info:
            await conn.query(Person, "select * from person")
        assert exc_info.value.code == ErrorCode.CONNECTION


@pytest.mark.asyncio
class TestConfigIntegration:
    """Configuration options against the endpoint."""

    async def test_namespace_and_database(self, fake_db) -> None:
        config = ClientConfig(url=fake_db.url, namespace="shop", database="orders")
        async with Connection(config) as conn:
            await conn.query(Person, "select * from person")

        assert fake_db.frames[0]["params"] == ["shop", "orders"]

    async def test_timeout(self, fake_db) -> None:
        fake_db.silent.add("sleep 1h")
        config = ClientConfig(url=fake_db.url, timeout=0.1)

        async with Connection(config) as conn:
            with pytest.raises(RpcError) as exc_info:
                await conn.query(Person, "sleep 1h")
            await asyncio.sleep(0)

            assert exc_info.value.code == ErrorCode.TIMEOUT
            assert len(conn._pending) == 0

    async def test_connect_refused(self, fake_db) -> None:
        url = fake_db.url
        await fake_db.stop()

        conn = Connection(ClientConfig(url=url))
        with pytest.raises(RpcError) as exc_info:
            await conn.connect()

        assert exc_info.value.code == ErrorCode.CONNECTION
        assert url in exc_info.value.message
