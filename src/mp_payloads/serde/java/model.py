"""Java serialization – protocol constants and the parsed object graph.

The parser produces a closed set of value shapes:

* ``None``, ``bool``, ``int``, ``float``, ``str`` (a Java ``char`` is a
  one-character string) and ``bytes`` (block data);
* :class:`JavaArray`, :class:`JavaObject`, :class:`JavaEnum`,
  :class:`JavaClass` and :class:`ClassDesc`;
* :data:`CYCLE`, substituted for a back-reference to an object that is
  still being read.
"""
from __future__ import annotations

import dataclasses
import enum
from typing import Any, Final

STREAM_MAGIC: Final = 0xACED
STREAM_VERSION: Final = 5
HANDLE_BASE: Final = 0x7E0000

SC_WRITE_METHOD: Final = 0x01
SC_SERIALIZABLE: Final = 0x02
SC_EXTERNALIZABLE: Final = 0x04
SC_BLOCK_DATA: Final = 0x08
SC_ENUM: Final = 0x10
FLAGS_MASK: Final = 0x0F

PRIMITIVE_TYPE_CODES: Final = frozenset("BCDFIJSZ")
OBJECT_TYPE_CODES: Final = frozenset("L[")

PROXY_CLASS_NAME: Final = "$Proxy"


class TypeCode(enum.IntEnum):
    """``TC_*`` tag bytes, in wire order starting at ``0x70``."""

    NULL = 0x70
    REFERENCE = 0x71
    CLASS_DESC = 0x72
    OBJECT = 0x73
    STRING = 0x74
    ARRAY = 0x75
    CLASS = 0x76
    BLOCK_DATA = 0x77
    END_BLOCK_DATA = 0x78
    RESET = 0x79
    BLOCK_DATA_LONG = 0x7A
    EXCEPTION = 0x7B
    LONG_STRING = 0x7C
    PROXY_CLASS_DESC = 0x7D
    ENUM = 0x7E

    @property
    def label(self) -> str:
        """CamelCase name, e.g. ``BlockDataLong``."""
        return "".join(part.capitalize() for part in self.name.split("_"))


class _EndBlock:
    __slots__ = ()

    def __repr__(self) -> str:
        return "END_BLOCK"


END_BLOCK: Final = _EndBlock()


class CycleRef:
    """Sentinel for a reference to an object whose fields are still being read."""

    __slots__ = ()
    _instance: CycleRef | None = None

    def __new__(cls) -> CycleRef:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CYCLE"


CYCLE: Final = CycleRef()


@dataclasses.dataclass(eq=False)
class FieldDesc:
    """One serializable field declared by a class descriptor."""

    type_code: str
    name: str
    class_name: str | None = None

    @property
    def is_primitive(self) -> bool:
        return self.type_code in PRIMITIVE_TYPE_CODES


@dataclasses.dataclass(eq=False)
class ClassDesc:
    """A class descriptor as written by ``ObjectOutputStream``.

    ``superclass`` links to the nearest serializable ancestor; the chain
    ends with ``None``. Descriptors are registered in the handle table
    before their fields are read, so a descriptor seen through a
    back-reference may still be incomplete.
    """

    name: str
    serial_version_uid: str
    flags: int = 0
    fields: list[FieldDesc] = dataclasses.field(default_factory=list)
    annotations: list[Any] = dataclasses.field(default_factory=list)
    superclass: ClassDesc | None = None
    interfaces: list[str] = dataclasses.field(default_factory=list)

    @property
    def signature(self) -> str:
        """``name@serialVersionUID`` – identity key for well-known types."""
        return f"{self.name}@{self.serial_version_uid}"

    @property
    def is_enum(self) -> bool:
        return bool(self.flags & SC_ENUM)

    @property
    def is_proxy(self) -> bool:
        return self.name == PROXY_CLASS_NAME

    @property
    def mechanism(self) -> int:
        """Serialization mechanism bits (``flags & 0x0F``)."""
        return self.flags & FLAGS_MASK

    def lineage(self) -> list[ClassDesc]:
        """Return the class chain, oldest ancestor first."""
        chain: list[ClassDesc] = []
        seen: set[int] = set()
        current: ClassDesc | None = self
        while current is not None and id(current) not in seen:
            seen.add(id(current))
            chain.append(current)
            current = current.superclass
        chain.reverse()
        return chain

    def __repr__(self) -> str:
        return f"ClassDesc({self.signature!r}, flags={self.flags:#04x})"


_UNSET: Final = object()


@dataclasses.dataclass(eq=False)
class JavaObject:
    """A deserialized object instance.

    ``fields`` is the flattened view over the whole class chain: ancestors
    are applied first, so a subclass field overwrites a same-named field of
    a base class. ``class_fields`` keeps each level's values separately.
    ``value`` is set when a class in the chain is a known JDK type (lists,
    maps, boxed primitives, dates…).
    """

    class_desc: ClassDesc
    fields: dict[str, Any] = dataclasses.field(default_factory=dict)
    class_fields: dict[str, dict[str, Any]] = dataclasses.field(default_factory=dict)
    annotations: dict[str, list[Any]] = dataclasses.field(default_factory=dict)
    value: Any = _UNSET

    @property
    def has_value(self) -> bool:
        return self.value is not _UNSET

    @property
    def class_chain(self) -> list[str]:
        """Class names from the object's own class up to the oldest ancestor."""
        return [cls.name for cls in reversed(self.class_desc.lineage())]

    def __repr__(self) -> str:
        return f"JavaObject({self.class_desc.name!r}, fields={list(self.fields)!r})"


@dataclasses.dataclass(eq=False)
class JavaEnum:
    """An enum constant, identified by its declaring class and constant name."""

    class_desc: ClassDesc
    constant: str

    def __repr__(self) -> str:
        return f"JavaEnum({self.class_desc.name}.{self.constant})"


@dataclasses.dataclass(eq=False)
class JavaArray:
    """An array; ``items`` holds exactly ``length`` elements."""

    class_desc: ClassDesc
    items: list[Any] = dataclasses.field(default_factory=list)

    @property
    def element_type(self) -> str:
        return self.class_desc.name[1]

    def __len__(self) -> int:
        return len(self.items)


@dataclasses.dataclass(eq=False)
class JavaClass:
    """A ``java.lang.Class`` instance (``TC_CLASS``)."""

    class_desc: ClassDesc | None


__all__ = [
    "CYCLE",
    "ClassDesc",
    "CycleRef",
    "END_BLOCK",
    "FLAGS_MASK",
    "FieldDesc",
    "HANDLE_BASE",
    "JavaArray",
    "JavaClass",
    "JavaEnum",
    "JavaObject",
    "OBJECT_TYPE_CODES",
    "PRIMITIVE_TYPE_CODES",
    "PROXY_CLASS_NAME",
    "SC_BLOCK_DATA",
    "SC_ENUM",
    "SC_EXTERNALIZABLE",
    "SC_SERIALIZABLE",
    "SC_WRITE_METHOD",
    "STREAM_MAGIC",
    "STREAM_VERSION",
    "TypeCode",
]
