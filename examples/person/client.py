"""Fetch a person record and print it.

Expects a database RPC endpoint on ws://localhost:8000/rpc with a
``person`` table in namespace ``test`` / database ``test``.
"""

import asyncio
import logging
from dataclasses import dataclass

from surrealrpc import ClientConfig, Connection


@dataclass
class Person:
    name: str
    id: str


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    conn = Connection(ClientConfig())
    await conn.connect()

    try:
        person = await conn.query_first(
            Person,
            "select * from person:99t3gb863y5t2s82l28w, person:99o1ox467x1o3k84c06p",
        )
        print(person)
    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(main())
