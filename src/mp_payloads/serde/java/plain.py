"""Java serialization – conversion of parsed graphs to JSON-shaped data."""
from __future__ import annotations

import base64
import math
from typing import Any, Iterable, Mapping

from mp_payloads.serde.errors import GraphTooLargeError
from mp_payloads.serde.java.model import (
    ClassDesc,
    CycleRef,
    JavaArray,
    JavaClass,
    JavaEnum,
    JavaObject,
)

CYCLE_MARKER = "[CYCLE]"

DEFAULT_MAX_NODES = 100_000
_MAP_KEY_MAX_NODES = 1_000


class _PlainConverter:
    """Walks a parsed graph once per path, within depth and node budgets.

    A limit of zero or less disables it.
    """

    def __init__(self, max_depth: int, max_string_length: int, max_nodes: int) -> None:
        self._max_depth = max_depth
        self._max_string_length = max_string_length
        self._max_nodes = max_nodes
        self._emitted = 0

    def _emit(self) -> None:
        self._emitted += 1
        if 0 < self._max_nodes < self._emitted:
            raise GraphTooLargeError(self._max_nodes)

    def _too_deep(self, depth: int) -> bool:
        return 0 < self._max_depth <= depth

    def convert(self, value: Any, depth: int = 0) -> Any:
        if isinstance(value, JavaObject):
            if value.has_value:
                return self.convert(value.value, depth)
            return self._mapping(value.fields, depth)
        if isinstance(value, JavaArray):
            return self._sequence(value.items, depth)
        if isinstance(value, list):
            return self._sequence(value, depth)
        if isinstance(value, dict):
            return self._mapping(value, depth)

        self._emit()
        if isinstance(value, str):
            if 0 < self._max_string_length < len(value):
                return value[: self._max_string_length]
            return value
        if isinstance(value, JavaEnum):
            return value.constant
        if isinstance(value, CycleRef):
            return CYCLE_MARKER
        if isinstance(value, JavaClass):
            return value.class_desc.name if value.class_desc is not None else None
        if isinstance(value, ClassDesc):
            return value.name
        if isinstance(value, (bytes, bytearray)):
            return base64.b64encode(value).decode("ascii")
        if isinstance(value, float) and not math.isfinite(value):
            if math.isnan(value):
                return "NaN"
            return "Infinity" if value > 0 else "-Infinity"
        return value

    def _sequence(self, items: Iterable[Any], depth: int) -> list[Any]:
        self._emit()
        if self._too_deep(depth):
            return []
        return [self.convert(item, depth + 1) for item in items]

    def _mapping(self, items: Mapping[Any, Any], depth: int) -> dict[str, Any]:
        self._emit()
        if self._too_deep(depth):
            return {}
        return {str(key): self.convert(item, depth + 1) for key, item in items.items()}


def to_plain(
    value: Any,
    *,
    max_depth: int = 0,
    max_string_length: int = 0,
    max_nodes: int = DEFAULT_MAX_NODES,
) -> Any:
    """Convert a parsed value into ``dict``/``list``/scalar data.

    * objects of a known JDK type collapse to their value (a list, a map,
      the boxed primitive, a formatted date);
    * other objects become their flattened field map;
    * enum constants become their name, class objects their class name;
    * block data becomes base64 text;
    * the cycle sentinel becomes ``"[CYCLE]"``.

    Back-references make the graph a DAG whose tree form can be
    exponentially larger than the stream. Containers ``max_depth`` levels
    below the root are emptied without being walked, strings are cut to
    ``max_string_length`` and :class:`GraphTooLargeError` is raised once
    more than ``max_nodes`` values would be produced.
    """
    return _PlainConverter(max_depth, max_string_length, max_nodes).convert(value)


def map_key(value: Any) -> str:
    """Render a Java map key as a JSON object key."""
    plain = to_plain(value, max_nodes=_MAP_KEY_MAX_NODES)
    if isinstance(plain, str):
        return plain
    if plain is None:
        return "null"
    if isinstance(plain, bool):
        return "true" if plain else "false"
    return str(plain)


def truncate(value: Any, max_depth: int, max_string_length: int) -> Any:
    """Bound the size of plain data for transport.

    Containers nested ``max_depth`` levels below the root are emptied and
    strings longer than ``max_string_length`` characters are cut. A limit
    of zero or less disables that bound. Returns new containers; the input
    is not modified.
    """
    return _PlainConverter(max_depth, max_string_length, 0).convert(value)


__all__ = ["CYCLE_MARKER", "DEFAULT_MAX_NODES", "map_key", "to_plain", "truncate"]
