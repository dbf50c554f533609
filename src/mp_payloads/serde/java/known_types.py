"""Java serialization – post-processing of well-known JDK classes.

``ObjectOutputStream`` writes most JDK containers through a custom
``writeObject``: the interesting content lives in the trailing block data
and object stream rather than in declared fields. The table below maps a
class signature (``name@serialVersionUID``) to the strategy that turns
that raw stream back into a usable value.
"""
from __future__ import annotations

import enum
import struct
from datetime import UTC, datetime, timedelta
from types import MappingProxyType
from typing import Any, Callable, Mapping

from mp_payloads.serde.errors import JavaStreamError
from mp_payloads.serde.java.plain import map_key

TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"

_INT32 = struct.Struct(">i")
_INT64 = struct.Struct(">q")
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class PostProc(enum.Enum):
    """Closed set of post-processing strategies."""

    BOXED_PRIMITIVE = "boxed_primitive"
    LIST = "list"
    MAP = "map"
    ENUM_MAP = "enum_map"
    HASH_SET = "hash_set"
    DATE = "date"
    CALENDAR = "calendar"
    ARRAYS_AS_LIST = "arrays_as_list"


KNOWN_TYPES: Mapping[str, PostProc] = MappingProxyType({
    "java.lang.Byte@9c4e6084ee50f51c": PostProc.BOXED_PRIMITIVE,
    "java.lang.Character@348b47d96b1a2678": PostProc.BOXED_PRIMITIVE,
    "java.lang.Double@80b3c24a296bfb04": PostProc.BOXED_PRIMITIVE,
    "java.lang.Float@daedc9a2db3cf0ec": PostProc.BOXED_PRIMITIVE,
    "java.lang.Integer@12e2a0a4f7818738": PostProc.BOXED_PRIMITIVE,
    "java.lang.Long@3b8be490cc8f23df": PostProc.BOXED_PRIMITIVE,
    "java.lang.Short@684d37133460da52": PostProc.BOXED_PRIMITIVE,
    "java.lang.Boolean@cd207280d59cfaee": PostProc.BOXED_PRIMITIVE,
    "java.util.ArrayList@7881d21d99c7619d": PostProc.LIST,
    "java.util.ArrayDeque@207cda2e240da08b": PostProc.LIST,
    "java.util.concurrent.CopyOnWriteArrayList@785d9fd546ab90c3": PostProc.LIST,
    "java.util.Hashtable@13bb0f25214ae4b8": PostProc.MAP,
    "java.util.HashMap@0507dac1c31660d1": PostProc.MAP,
    "java.util.EnumMap@065d7df7be907ca1": PostProc.ENUM_MAP,
    "java.util.HashSet@ba44859596b8b734": PostProc.HASH_SET,
    "java.util.Date@686a81014b597419": PostProc.DATE,
    "java.util.Calendar@e6ea4d1ec8dc5b8e": PostProc.CALENDAR,
    "java.util.Arrays$ArrayList@d9a43cbecd8806d2": PostProc.ARRAYS_AS_LIST,
})


def format_timestamp(millis: int) -> str:
    """Format epoch milliseconds as ``dd/MM/yyyy HH:mm:ss.SSS`` (UTC)."""
    try:
        moment = _EPOCH + timedelta(milliseconds=millis)
    except OverflowError as exc:
        raise JavaStreamError(f"timestamp {millis} out of range") from exc
    return f"{moment.strftime(TIMESTAMP_FORMAT)}.{moment.microsecond // 1000:03d}"


def _leading_block(data: list[Any]) -> bytes:
    if not data:
        raise JavaStreamError("invalid data: at least one element required")
    block = data[0]
    if not isinstance(block, bytes):
        raise JavaStreamError("unexpected data at position 0")
    return block


def _size(data: list[Any], offset: int) -> int:
    block = _leading_block(data)
    if len(block) < offset + _INT32.size:
        raise JavaStreamError(
            f"incorrect data at position 0: wanted at least {offset + _INT32.size} bytes, got {len(block)}"
        )
    (size,) = _INT32.unpack_from(block, offset)
    if size < 0:
        raise JavaStreamError(f"negative element count {size}")
    return size


def _field(fields: dict[str, Any], name: str) -> Any:
    try:
        return fields[name]
    except KeyError:
        raise JavaStreamError(f"missing field '{name}'") from None


def _boxed_primitive(fields: dict[str, Any], data: list[Any]) -> Any:  # noqa: ARG001
    return _field(fields, "value")


def _arrays_as_list(fields: dict[str, Any], data: list[Any]) -> Any:  # noqa: ARG001
    return _field(fields, "a")


def _sequence(data: list[Any], offset: int) -> list[Any]:
    size = _size(data, offset)
    if len(data) != size + 1:
        raise JavaStreamError(f"incorrect number of elements: want {size} got {len(data) - 1}")
    return list(data[1:])


def _pairs(data: list[Any], offset: int) -> dict[str, Any]:
    size = _size(data, offset)
    if size * 2 + 1 > len(data):
        raise JavaStreamError(f"incorrect number of elements: want {size} got {(len(data) - 1) // 2}")
    return {map_key(data[2 * i + 1]): data[2 * i + 2] for i in range(size)}


def _list(fields: dict[str, Any], data: list[Any]) -> Any:  # noqa: ARG001
    return _sequence(data, 0)


def _hash_set(fields: dict[str, Any], data: list[Any]) -> Any:  # noqa: ARG001
    # capacity (int) and load factor (float) precede the size
    return _sequence(data, 8)


def _map(fields: dict[str, Any], data: list[Any]) -> Any:  # noqa: ARG001
    # bucket count precedes the size
    return _pairs(data, 4)


def _enum_map(fields: dict[str, Any], data: list[Any]) -> Any:  # noqa: ARG001
    return _pairs(data, 0)


def _date(fields: dict[str, Any], data: list[Any]) -> Any:  # noqa: ARG001
    block = _leading_block(data)
    if len(block) < _INT64.size:
        raise JavaStreamError(f"incorrect data at position 0: wanted 8 bytes, got {len(block)}")
    (millis,) = _INT64.unpack_from(block)
    return format_timestamp(millis)


def _calendar(fields: dict[str, Any], data: list[Any]) -> Any:  # noqa: ARG001
    millis = _field(fields, "time")
    if not isinstance(millis, int) or isinstance(millis, bool):
        raise JavaStreamError("calendar field 'time' is not a long")
    return format_timestamp(millis)


_HANDLERS: Mapping[PostProc, Callable[[dict[str, Any], list[Any]], Any]] = MappingProxyType({
    PostProc.BOXED_PRIMITIVE: _boxed_primitive,
    PostProc.LIST: _list,
    PostProc.MAP: _map,
    PostProc.ENUM_MAP: _enum_map,
    PostProc.HASH_SET: _hash_set,
    PostProc.DATE: _date,
    PostProc.CALENDAR: _calendar,
    PostProc.ARRAYS_AS_LIST: _arrays_as_list,
})


def post_process(kind: PostProc, fields: dict[str, Any], data: list[Any]) -> Any:
    """Apply strategy *kind* to one class level's fields and annotation data."""
    return _HANDLERS[kind](fields, data)


__all__ = ["KNOWN_TYPES", "PostProc", "format_timestamp", "post_process"]
