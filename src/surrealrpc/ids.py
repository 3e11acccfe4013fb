"""Request ID management.

Request IDs correlate an outbound request frame with its response frame:
- Query IDs are positive and increase by one per request (1, 2, 3...)
- ID 0 is reserved for the "use" handshake sent when the connection opens
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True, order=True)
class RequestId:
    """Request ID - the ``id`` field of a request or response frame.

    ID 0 is reserved for the handshake and never matches a pending query.
    """

    value: int

    @staticmethod
    def handshake() -> RequestId:
        """Create the handshake request ID (0)."""
        return RequestId(0)

    def is_handshake(self) -> bool:
        """Check if this is the handshake request ID."""
        return self.value == 0

    def __str__(self) -> str:
        return f"Request#{self.value}"


class RequestIdAllocator:
    """Thread-safe allocator for request IDs.

    Pre-increments a counter that starts at 0, so the first query gets ID 1.
    """

    def __init__(self) -> None:
        self._last: int = 0
        self._lock: Final = threading.Lock()

    @property
    def last(self) -> int:
        """The most recently allocated value (0 before the first query)."""
        return self._last

    def allocate(self) -> RequestId:
        """Allocate the next request ID."""
        with self._lock:
            self._last += 1
            return RequestId(self._last)
