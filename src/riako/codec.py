"""Value serialization for stored records.

A :class:`Codec` turns caller values into the bytes stored in the backend
and back. Callers choose the decoded shape by passing a codec, e.g.::

    users = JSONCodec(lambda raw: User(**raw))
    user = db.get("users", key, codec=users)
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Callable, Generic, Protocol, TypeVar, runtime_checkable

from riako.models import SerializationError

T = TypeVar("T")


@runtime_checkable
class Codec(Protocol[T]):
    """Encode values of type ``T`` to bytes and decode them back."""

    def encode(self, value: T) -> bytes: ...

    def decode(self, data: bytes) -> T: ...


def _default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JSONCodec(Generic[T]):
    """JSON codec with an optional factory building ``T`` from decoded JSON.

    Dataclass instances are encoded through :func:`dataclasses.asdict`.
    NaN and infinities are rejected since they have no JSON form.
    Without a factory, ``decode`` returns plain JSON values.
    """

    def __init__(self, factory: Callable[[Any], T] | None = None) -> None:
        self._factory = factory

    def encode(self, value: T) -> bytes:
        try:
            return json.dumps(
                value, default=_default, separators=(",", ":"), allow_nan=False
            ).encode("utf-8")
        except (TypeError, ValueError, RecursionError) as exc:
            name = type(value).__name__
            raise SerializationError(f"Cannot encode {name} as JSON: {exc}") from exc

    def decode(self, data: bytes) -> T:
        try:
            raw = json.loads(data)
        except (ValueError, RecursionError) as exc:
            raise SerializationError(f"Stored value is not valid JSON: {exc}") from exc
        if self._factory is None:
            return raw  # type: ignore[no-any-return]
        try:
            return self._factory(raw)
        except (TypeError, ValueError, KeyError) as exc:
            raise SerializationError(f"Cannot build value from stored JSON: {exc}") from exc
