"""Java Object Serialization Stream Protocol support.

Import path convention::

    from mp_payloads.serde.java import parse_serialized_object, to_plain
"""
from mp_payloads.serde.java.known_types import KNOWN_TYPES, PostProc, format_timestamp
from mp_payloads.serde.java.model import (
    CYCLE,
    HANDLE_BASE,
    ClassDesc,
    CycleRef,
    FieldDesc,
    JavaArray,
    JavaClass,
    JavaEnum,
    JavaObject,
    TypeCode,
)
from mp_payloads.serde.java.plain import CYCLE_MARKER, to_plain, truncate
from mp_payloads.serde.java.stream import JavaObjectStreamParser, parse_serialized_object

__all__ = [
    "CYCLE",
    "CYCLE_MARKER",
    "ClassDesc",
    "CycleRef",
    "FieldDesc",
    "HANDLE_BASE",
    "JavaArray",
    "JavaClass",
    "JavaEnum",
    "JavaObject",
    "JavaObjectStreamParser",
    "KNOWN_TYPES",
    "PostProc",
    "TypeCode",
    "format_timestamp",
    "parse_serialized_object",
    "to_plain",
    "truncate",
]
