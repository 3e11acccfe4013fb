"""surrealrpc - asyncio WebSocket client for a database RPC endpoint

Opens one WebSocket connection, selects a namespace/database, sends query
requests and decodes the enveloped JSON responses into typed results.
Responses are matched to requests by id, so they may arrive in any order.
"""

from surrealrpc.client import ClientConfig, Connection
from surrealrpc.envelope import DecodeError, QueryEnvelope
from surrealrpc.error import ErrorCode, RpcError
from surrealrpc.ids import RequestId, RequestIdAllocator
from surrealrpc.pending import PendingLedger, PendingQuery, PendingState

__version__ = "0.1.0"

__all__ = [
    # Client
    "Connection",
    "ClientConfig",
    # Queries
    "PendingQuery",
    "PendingState",
    "PendingLedger",
    "QueryEnvelope",
    # Core types
    "RequestId",
    "RequestIdAllocator",
    # Errors
    "RpcError",
    "ErrorCode",
    "DecodeError",
]
