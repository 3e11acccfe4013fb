"""Wire format for the database RPC endpoint.

Every frame is a single JSON object sent as a WebSocket text frame:

    request:   {"id": 1, "method": "query", "params": ["select * from person"]}
    handshake: {"id": 0, "method": "use", "params": ["ns", "db"]}
    response:  {"id": 1, "result": [{"result": [...]}]}
    error:     {"id": 1, "error": {"code": -32000, "message": "..."}}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from surrealrpc.ids import RequestId


@dataclass(frozen=True)
class WireQuery:
    """Query request: {"id": id, "method": "query", "params": [query]}"""

    request_id: RequestId
    query: str

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON object."""
        return {
            "id": self.request_id.value,
            "method": "query",
            "params": [self.query],
        }


@dataclass(frozen=True)
class WireUse:
    """Handshake request: {"id": 0, "method": "use", "params": [ns, db]}"""

    namespace: str
    database: str

    @property
    def request_id(self) -> RequestId:
        return RequestId.handshake()

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON object."""
        return {
            "id": self.request_id.value,
            "method": "use",
            "params": [self.namespace, self.database],
        }


@dataclass(frozen=True)
class WireError:
    """Error object carried by a response frame: {"code": int, "message": str}"""

    code: int | None
    message: str

    @staticmethod
    def from_json(obj: Any) -> WireError:
        """Parse from JSON object."""
        if not isinstance(obj, dict):
            return WireError(None, str(obj))
        code = obj.get("code")
        message = obj.get("message", "")
        return WireError(
            code if isinstance(code, int) and not isinstance(code, bool) else None,
            message if isinstance(message, str) else json.dumps(message),
        )


WireFrame = WireQuery | WireUse


def serialize_frame(frame: WireFrame) -> str:
    """Serialize a request frame to JSON text."""
    return json.dumps(frame.to_json())


def _load_object(text: str) -> dict[str, Any]:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Frame is not valid JSON: {e}"
        raise ValueError(msg) from e
    if not isinstance(obj, dict):
        msg = f"Frame must be a JSON object, got {type(obj).__name__}"
        raise ValueError(msg)
    return obj


def parse_frame_id(text: str) -> int:
    """Extract the top-level ``id`` of a response frame.

    Raises:
        ValueError: If the frame is not a JSON object with an integer id
    """
    obj = _load_object(text)
    if "id" not in obj:
        msg = "Frame has no id"
        raise ValueError(msg)
    frame_id = obj["id"]
    if isinstance(frame_id, bool) or not isinstance(frame_id, int):
        msg = f"Frame id must be an integer, got {frame_id!r}"
        raise ValueError(msg)
    return frame_id


def parse_frame_error(text: str) -> WireError | None:
    """Return the error carried by a response frame, if any."""
    try:
        obj = _load_object(text)
    except ValueError:
        return None
    error = obj.get("error")
    if error is None:
        return None
    return WireError.from_json(error)
