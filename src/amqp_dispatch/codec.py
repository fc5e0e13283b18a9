"""BodyCodec — convert message bodies between raw bytes and typed values."""

from __future__ import annotations

import functools
import typing
from typing import Any, Protocol, runtime_checkable

from pydantic import TypeAdapter

from .exceptions import MessagingSerializationError


@runtime_checkable
class IStructuredSerializer(Protocol):
    """Text serializer used for bodies that are neither bytes nor text."""

    def serialize(self, value: Any) -> str: ...

    def deserialize(self, text: str, target_type: Any) -> Any: ...


@functools.lru_cache(maxsize=256)
def _adapter_for(target_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target_type)


def _adapter(target_type: Any) -> TypeAdapter[Any]:
    try:
        return _adapter_for(target_type)
    except TypeError:  # unhashable Annotated metadata
        return TypeAdapter(target_type)


def _base_type(target_type: Any) -> Any:
    if typing.get_origin(target_type) is typing.Annotated:
        return typing.get_args(target_type)[0]
    return target_type


class PydanticJsonSerializer:
    """JSON serializer backed by pydantic ``TypeAdapter``.

    Handles pydantic models, dataclasses, TypedDicts, builtins and generic
    containers. Adapters are cached per target type.
    """

    def serialize(self, value: Any) -> str:
        return _adapter(type(value)).dump_json(value).decode("utf-8")

    def deserialize(self, text: str, target_type: Any) -> Any:
        return _adapter(target_type).validate_json(text)


class BodyCodec:
    """Encode handler results and decode delivery bodies.

    ``bytes`` pass through untouched, ``str`` is UTF-8, everything else goes
    through the structured serializer (JSON by default).
    """

    def __init__(self, serializer: IStructuredSerializer | None = None) -> None:
        self._serializer = serializer or PydanticJsonSerializer()

    def decode(self, body: bytes | None, target_type: Any) -> Any:
        """Decode *body* into an instance of *target_type*.

        An absent body decodes to ``None``; an empty body does too unless raw
        bytes were asked for. Constraints in ``Annotated`` metadata (e.g.
        ``Annotated[str, Field(max_length=64)]``) are validated by pydantic.
        """
        if body is None:
            return None
        base = _base_type(target_type)
        constrained = base is not target_type
        try:
            if base is bytes:
                value: Any = body
            elif not body:
                return None
            else:
                value = bytes(body).decode("utf-8")
                if base is not str:
                    return self._serializer.deserialize(value, target_type)
            if constrained:
                return _adapter(target_type).validate_python(value)
            return value
        except (TypeError, ValueError) as e:
            name = getattr(target_type, "__name__", repr(target_type))
            raise MessagingSerializationError(
                f"Cannot decode body as {name}: {e}"
            ) from e

    def encode(self, value: Any) -> bytes:
        """Encode *value* into a message body; ``None`` becomes ``b""``."""
        if value is None:
            return b""
        if isinstance(value, bytes):
            return value
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        if isinstance(value, str):
            return value.encode("utf-8")
        try:
            return self._serializer.serialize(value).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise MessagingSerializationError(
                f"Cannot encode {type(value).__name__}: {e}"
            ) from e
