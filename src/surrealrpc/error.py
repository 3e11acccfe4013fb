"""Error types for the database RPC client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Client error codes."""

    CONNECTION = "connection"
    SERVER = "server"
    TIMEOUT = "timeout"
    CANCELED = "canceled"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RpcError(Exception):
    """RPC error with code, message, and optional data."""

    code: ErrorCode
    message: str
    data: Any | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    @staticmethod
    def connection(message: str, data: Any | None = None) -> RpcError:
        """Create a CONNECTION error."""
        return RpcError(ErrorCode.CONNECTION, message, data)

    @staticmethod
    def server(message: str, data: Any | None = None) -> RpcError:
        """Create a SERVER error."""
        return RpcError(ErrorCode.SERVER, message, data)

    @staticmethod
    def timeout(message: str, data: Any | None = None) -> RpcError:
        """Create a TIMEOUT error."""
        return RpcError(ErrorCode.TIMEOUT, message, data)

    @staticmethod
    def canceled(message: str, data: Any | None = None) -> RpcError:
        """Create a CANCELED error."""
        return RpcError(ErrorCode.CANCELED, message, data)
