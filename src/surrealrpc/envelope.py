"""Response envelope and typed item decoding.

Every query response wraps its rows in two levels of ``result``:

    {"result": [{"result": [<item>, <item>, ...]}]}

The envelope is decoded once into :class:`QueryEnvelope`; the payload items
are then mapped to the caller's shape by a decoder from :func:`decoder_for`;
dataclass and pydantic model shapes are validated with pydantic.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, PydanticUserError, TypeAdapter, ValidationError

T = TypeVar("T")

Decoder = Callable[[Any], T]


class DecodeError(ValueError):
    """A payload item does not match the requested shape."""


@dataclass(frozen=True)
class StatementResult:
    """One statement's result: {"result": [<item>, ...]}"""

    result: list[Any]

    @staticmethod
    def from_json(obj: Any) -> StatementResult | None:
        """Parse from JSON object, or None if the shape does not match."""
        if not isinstance(obj, dict):
            return None
        items = obj.get("result")
        if not isinstance(items, list):
            return None
        return StatementResult(items)


@dataclass(frozen=True)
class QueryEnvelope:
    """Response envelope: {"result": [StatementResult, ...]}

    Only the first statement is consulted. A response that does not match the
    nesting decodes to an envelope with no statements.
    """

    statements: tuple[StatementResult, ...] = ()

    @property
    def items(self) -> list[Any]:
        """The payload list of the first statement (empty if there is none)."""
        if not self.statements:
            return []
        return self.statements[0].result

    @staticmethod
    def from_json(obj: Any) -> QueryEnvelope:
        """Parse from a decoded JSON value. Never raises."""
        if not isinstance(obj, dict):
            return QueryEnvelope()
        outer = obj.get("result")
        if not isinstance(outer, list) or not outer:
            return QueryEnvelope()
        first = StatementResult.from_json(outer[0])
        if first is None:
            return QueryEnvelope()
        return QueryEnvelope((first,))

    @staticmethod
    def from_text(text: str) -> QueryEnvelope:
        """Parse from raw frame text. Invalid JSON gives an empty envelope."""
        try:
            obj = json.loads(text)
        except json.JSONDecodeError:
            return QueryEnvelope()
        return QueryEnvelope.from_json(obj)


def _validated_decoder(shape: type[T]) -> Decoder[T]:
    """Decoder validating items against a dataclass or pydantic model."""
    try:
        adapter: TypeAdapter[T] | None = TypeAdapter(shape)
        unusable = ""
    except (PydanticUserError, NameError) as e:
        adapter = None
        unusable = f"Cannot build a validator for {shape.__name__}: {e}"

    def decode(item: Any) -> T:
        if adapter is None:
            raise DecodeError(unusable)
        try:
            return adapter.validate_python(item)
        except ValidationError as e:
            raise DecodeError(str(e)) from e
        except (PydanticUserError, NameError) as e:
            # Forward references that never resolve surface on first use
            msg = f"Cannot validate {shape.__name__}: {e}"
            raise DecodeError(msg) from e

    return decode


def decoder_for(shape: type[T] | Decoder[T]) -> Decoder[T]:
    """Build a decoder for a caller-supplied shape.

    Args:
        shape: A dataclass or pydantic model type (validated field by field,
            nested shapes included), a class with a ``from_json`` method, or
            any callable taking the raw JSON item

    Returns:
        A callable mapping one raw item to the shape, raising DecodeError
    """
    if isinstance(shape, type) and (
        dataclasses.is_dataclass(shape) or issubclass(shape, BaseModel)
    ):
        return _validated_decoder(shape)

    convert = getattr(shape, "from_json", shape)
    if not callable(convert):
        msg = f"Cannot decode into {shape!r}"
        raise TypeError(msg)

    def decode(item: Any) -> T:
        try:
            return convert(item)
        except DecodeError:
            raise
        except (TypeError, ValueError, KeyError) as e:
            raise DecodeError(str(e)) from e

    return decode


def decode_items(decoder: Decoder[T], items: Iterable[Any]) -> list[T] | None:
    """Decode every item, or return None if any single item fails."""
    decoded: list[T] = []
    for item in items:
        try:
            decoded.append(decoder(item))
        except DecodeError:
            return None
    return decoded
