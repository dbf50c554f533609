"""Java serialization – recursive-descent parser for ``ObjectOutputStream`` data.

Implements the grammar of the Java Object Serialization Stream Protocol
(stream magic ``0xACED``, version ``5``). The parser reads a single
forward-only cursor, keeps an append-only handle table for
back-references and never allocates more than ``max_block_size`` bytes in
response to a length read from the stream.

Usage::

    from mp_payloads.serde.java import parse_serialized_object, to_plain

    value = parse_serialized_object(raw_bytes)
    print(to_plain(value))
"""
from __future__ import annotations

import logging
import struct
from types import MappingProxyType
from typing import Any, Callable, Final, Mapping

from mp_payloads.serde.errors import (
    BlockSizeExceededError,
    JavaStreamError,
    UnknownTypeCodeError,
    UnsupportedClassFlagsError,
)
from mp_payloads.serde.java.known_types import KNOWN_TYPES, post_process
from mp_payloads.serde.java.model import (
    CYCLE,
    END_BLOCK,
    HANDLE_BASE,
    OBJECT_TYPE_CODES,
    PRIMITIVE_TYPE_CODES,
    PROXY_CLASS_NAME,
    SC_BLOCK_DATA,
    SC_EXTERNALIZABLE,
    SC_SERIALIZABLE,
    SC_WRITE_METHOD,
    STREAM_MAGIC,
    STREAM_VERSION,
    ClassDesc,
    FieldDesc,
    JavaArray,
    JavaClass,
    JavaEnum,
    JavaObject,
    TypeCode,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_NESTING: Final = 100

_U8 = struct.Struct(">B")
_I8 = struct.Struct(">b")
_U16 = struct.Struct(">H")
_I16 = struct.Struct(">h")
_I32 = struct.Struct(">i")
_U32 = struct.Struct(">I")
_I64 = struct.Struct(">q")
_U64 = struct.Struct(">Q")
_F32 = struct.Struct(">f")
_F64 = struct.Struct(">d")

_CLASS_DESC_CODES: Final = frozenset({
    TypeCode.CLASS_DESC,
    TypeCode.PROXY_CLASS_DESC,
    TypeCode.NULL,
    TypeCode.REFERENCE,
})

_PENDING: Final = object()


def decode_modified_utf8(raw: bytes) -> str:
    """Decode Java's modified UTF-8 (``C0 80`` nulls, CESU-8 surrogate pairs)."""
    try:
        text = raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
    except UnicodeDecodeError as exc:
        raise JavaStreamError("invalid modified UTF-8 string", cause=exc) from exc
    if any("\ud800" <= ch <= "\udfff" for ch in text):
        # recombine surrogate pairs written as two 3-byte sequences
        text = text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")
    return text


def _shortest_float32(raw: bytes, value: float) -> float:
    """Return the shortest decimal that still round-trips to the same float32."""
    if value != value or value in (float("inf"), float("-inf")):
        return value
    for digits in range(1, 10):
        candidate = float(f"{value:.{digits}g}")
        if _F32.pack(candidate) == raw:
            return candidate
    return value


class ByteReader:
    """Forward-only cursor over an in-memory byte string."""

    __slots__ = ("_data", "_pos", "max_block_size")

    def __init__(self, data: bytes, max_block_size: int) -> None:
        self._data = bytes(data)
        self._pos = 0
        self.max_block_size = max_block_size

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def unread_byte(self) -> None:
        if self._pos == 0:
            raise JavaStreamError("nothing to unread", position=0)
        self._pos -= 1

    def check_block_size(self, size: int) -> None:
        if size > self.max_block_size:
            raise BlockSizeExceededError(size, self.max_block_size, position=self._pos)

    def read(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise JavaStreamError("premature end of input", position=self._pos)
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def read_block(self, size: int) -> bytes:
        """Read a length-prefixed block, enforcing ``max_block_size`` first."""
        if size < 0:
            raise JavaStreamError(f"negative block length {size}", position=self._pos)
        self.check_block_size(size)
        return self.read(size)

    def _unpack(self, fmt: struct.Struct) -> Any:
        (value,) = fmt.unpack(self.read(fmt.size))
        return value

    def u8(self) -> int:
        return self._unpack(_U8)

    def i8(self) -> int:
        return self._unpack(_I8)

    def u16(self) -> int:
        return self._unpack(_U16)

    def i16(self) -> int:
        return self._unpack(_I16)

    def i32(self) -> int:
        return self._unpack(_I32)

    def u32(self) -> int:
        return self._unpack(_U32)

    def i64(self) -> int:
        return self._unpack(_I64)

    def u64(self) -> int:
        return self._unpack(_U64)

    def f32(self) -> float:
        raw = self.read(_F32.size)
        (value,) = _F32.unpack(raw)
        return _shortest_float32(raw, value)

    def f64(self) -> float:
        return self._unpack(_F64)


class JavaObjectStreamParser:
    """Reads one serialized Java object graph.

    Args:
        data: The complete stream, starting with the magic bytes.
        max_block_size: Upper bound for any length read from the stream
            (strings, block data, array lengths). Defaults to ``len(data)``.
        max_nesting: Maximum depth of nested ``content`` reads.
    """

    def __init__(
        self,
        data: bytes,
        *,
        max_block_size: int | None = None,
        max_nesting: int = DEFAULT_MAX_NESTING,
    ) -> None:
        if not max_block_size or max_block_size < 0:
            max_block_size = len(data)
        self._reader = ByteReader(data, max_block_size)
        self._handles: list[Any] = []
        self._depth = 0
        self._max_nesting = max_nesting

    @property
    def handles(self) -> tuple[Any, ...]:
        """Snapshot of the handle table (index ``i`` is wire id ``0x7E0000 + i``)."""
        return tuple(CYCLE if slot is _PENDING else slot for slot in self._handles)

    @property
    def position(self) -> int:
        return self._reader.position

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def parse(self) -> Any:
        """Validate the stream header and read exactly one top-level value."""
        magic = self._reader.u16()
        if magic != STREAM_MAGIC:
            raise JavaStreamError("magic value STREAM_MAGIC not found", position=0)
        version = self._reader.u16()
        if version != STREAM_VERSION:
            raise JavaStreamError(
                f"protocol version not recognized: wanted {STREAM_VERSION} got {version}", position=2
            )
        value = self.content()
        if value is END_BLOCK:
            raise JavaStreamError("unexpected end of block data", position=self._reader.position)
        if not self._reader.at_end():
            raise JavaStreamError(
                "object already parsed but there is more data",
                position=self._reader.position,
                detail={"remaining": self._reader.remaining},
            )
        return value

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------

    def _new_handle(self, obj: Any) -> Any:
        self._handles.append(obj)
        return obj

    def _reserve_handle(self) -> int:
        self._handles.append(_PENDING)
        return len(self._handles) - 1

    def _fill_handle(self, index: int, obj: Any) -> Any:
        self._handles[index] = obj
        return obj

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def content(self, allowed: frozenset[TypeCode] | None = None) -> Any:
        """Read the next tagged value from the stream."""
        position = self._reader.position
        raw = self._reader.u8()
        try:
            code = TypeCode(raw)
        except ValueError:
            # leave the foreign byte unread
            self._reader.unread_byte()
            raise UnknownTypeCodeError(raw, position=position) from None
        if allowed is not None and code not in allowed:
            raise JavaStreamError(f"{code.label} not allowed here", position=position)
        parser = self._PARSERS.get(code)
        if parser is None:
            raise JavaStreamError(f"parsing {code.label} is currently not supported", position=position)
        if self._depth >= self._max_nesting:
            raise JavaStreamError(f"nesting deeper than {self._max_nesting} levels", position=position)
        self._depth += 1
        try:
            return parser(self)
        finally:
            self._depth -= 1

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    def _utf(self) -> str:
        length = self._reader.u16()
        return decode_modified_utf8(self._reader.read_block(length))

    def _utf_long(self) -> str:
        length = self._reader.u64()
        if length > 0xFFFFFFFF:
            raise JavaStreamError("unable to read string larger than 2^32 bytes", position=self._reader.position)
        return decode_modified_utf8(self._reader.read_block(length))

    # ------------------------------------------------------------------
    # Class descriptors
    # ------------------------------------------------------------------

    def _class_desc(self) -> ClassDesc | None:
        desc = self.content(_CLASS_DESC_CODES)
        if desc is not None and not isinstance(desc, ClassDesc):
            raise JavaStreamError(
                f"unexpected {type(desc).__name__} where a class descriptor was expected",
                position=self._reader.position,
            )
        return desc

    def _field_desc(self) -> FieldDesc:
        type_code = chr(self._reader.u8())
        name = self._utf()
        if type_code in PRIMITIVE_TYPE_CODES:
            return FieldDesc(type_code, name)
        if type_code not in OBJECT_TYPE_CODES:
            raise JavaStreamError(f"unknown field type '{type_code}'", position=self._reader.position)
        class_name = self.content()
        if not isinstance(class_name, str):
            raise JavaStreamError("unexpected field class name type", position=self._reader.position)
        return FieldDesc(type_code, name, class_name)

    def _annotations(self) -> list[Any]:
        items: list[Any] = []
        while True:
            item = self.content()
            if item is END_BLOCK:
                return items
            items.append(item)

    def _parse_class_desc(self) -> ClassDesc:
        name = self._utf()
        uid = self._reader.read(8).hex()
        desc = self._new_handle(ClassDesc(name=name, serial_version_uid=uid))
        desc.flags = self._reader.u8()
        field_count = self._reader.u16()
        desc.fields = [self._field_desc() for _ in range(field_count)]
        desc.annotations = self._annotations()
        desc.superclass = self._class_desc()
        return desc

    def _parse_proxy_class_desc(self) -> ClassDesc:
        desc = self._new_handle(
            ClassDesc(name=PROXY_CLASS_NAME, serial_version_uid="0" * 16, flags=SC_SERIALIZABLE)
        )
        count = self._reader.i32()
        if count < 0:
            raise JavaStreamError(f"negative proxy interface count {count}", position=self._reader.position)
        self._reader.check_block_size(count)
        desc.interfaces = [self._utf() for _ in range(count)]
        desc.annotations = self._annotations()
        desc.superclass = self._class_desc()
        return desc

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def _read_value(self, type_code: str) -> Any:
        reader = self._reader
        if type_code == "B":
            return reader.i8()
        if type_code == "C":
            return chr(reader.u16())
        if type_code == "D":
            return reader.f64()
        if type_code == "F":
            return reader.f32()
        if type_code == "I":
            return reader.i32()
        if type_code == "J":
            return reader.i64()
        if type_code == "S":
            return reader.i16()
        if type_code == "Z":
            return reader.u8() != 0
        if type_code in OBJECT_TYPE_CODES:
            return self.content()
        raise JavaStreamError(f"unknown field type '{type_code}'", position=reader.position)

    def _field_values(self, desc: ClassDesc) -> dict[str, Any]:
        return {field.name: self._read_value(field.type_code) for field in desc.fields}

    def _class_data(self, desc: ClassDesc) -> tuple[dict[str, Any], list[Any] | None]:
        mechanism = desc.mechanism
        if mechanism == SC_SERIALIZABLE:
            return self._field_values(desc), None
        if mechanism == SC_SERIALIZABLE | SC_WRITE_METHOD:
            fields = self._field_values(desc)
            return fields, self._annotations()
        if mechanism == SC_EXTERNALIZABLE | SC_BLOCK_DATA:
            return {}, self._annotations()
        if mechanism == SC_EXTERNALIZABLE:
            raise UnsupportedClassFlagsError(
                desc.name,
                desc.flags,
                "unable to parse externalizable content written without block data (protocol version 1)",
            )
        raise UnsupportedClassFlagsError(desc.name, desc.flags)

    def _parse_object(self) -> JavaObject:
        desc = self._class_desc()
        if desc is None:
            raise JavaStreamError("object without class descriptor", position=self._reader.position)
        slot = self._reserve_handle()
        obj = JavaObject(desc)
        for level in desc.lineage():
            fields, data = self._class_data(level)
            obj.class_fields[level.name] = fields
            obj.fields.update(fields)
            if data is not None:
                obj.annotations[level.name] = data
            kind = KNOWN_TYPES.get(level.signature)
            if kind is not None:
                obj.value = post_process(kind, fields, data or [])
        return self._fill_handle(slot, obj)

    def _parse_array(self) -> JavaArray:
        desc = self._class_desc()
        if desc is None:
            raise JavaStreamError("array without class descriptor", position=self._reader.position)
        slot = self._reserve_handle()
        length = self._reader.i32()
        if length < 0:
            raise JavaStreamError(f"negative array length {length}", position=self._reader.position)
        self._reader.check_block_size(length)
        if len(desc.name) < 2 or desc.name[0] != "[":
            raise JavaStreamError(f"invalid array class name '{desc.name}'", position=self._reader.position)
        element_type = desc.name[1]
        if element_type not in PRIMITIVE_TYPE_CODES and element_type not in OBJECT_TYPE_CODES:
            raise JavaStreamError(f"unknown field type '{element_type}'", position=self._reader.position)
        items = [self._read_value(element_type) for _ in range(length)]
        return self._fill_handle(slot, JavaArray(desc, items))

    def _parse_enum(self) -> JavaEnum:
        desc = self._class_desc()
        if desc is None:
            raise JavaStreamError("enum without class descriptor", position=self._reader.position)
        slot = self._reserve_handle()
        constant = self.content()
        if not isinstance(constant, str):
            raise JavaStreamError("enum constant name is not a string", position=self._reader.position)
        return self._fill_handle(slot, JavaEnum(desc, constant))

    def _parse_class(self) -> JavaClass:
        return self._new_handle(JavaClass(self._class_desc()))

    def _parse_reference(self) -> Any:
        ref = self._reader.i32()
        index = ref - HANDLE_BASE
        if not 0 <= index < len(self._handles):
            raise JavaStreamError(
                f"invalid reference {ref:#x}",
                position=self._reader.position,
                detail={"handles": len(self._handles)},
            )
        slot = self._handles[index]
        if slot is _PENDING:
            logger.debug("java.cycle_reference handle=%#x", ref)
            return CYCLE
        return slot

    def _parse_string(self) -> str:
        return self._new_handle(self._utf())

    def _parse_long_string(self) -> str:
        return self._new_handle(self._utf_long())

    def _parse_block_data(self) -> bytes:
        size = self._reader.u8()
        return self._reader.read_block(size)

    def _parse_block_data_long(self) -> bytes:
        size = self._reader.u32()
        return self._reader.read_block(size)

    def _parse_null(self) -> None:
        return None

    def _parse_end_block_data(self) -> Any:
        return END_BLOCK

    _PARSERS: Mapping[TypeCode, Callable[[JavaObjectStreamParser], Any]] = MappingProxyType({
        TypeCode.NULL: _parse_null,
        TypeCode.REFERENCE: _parse_reference,
        TypeCode.CLASS_DESC: _parse_class_desc,
        TypeCode.OBJECT: _parse_object,
        TypeCode.STRING: _parse_string,
        TypeCode.ARRAY: _parse_array,
        TypeCode.CLASS: _parse_class,
        TypeCode.BLOCK_DATA: _parse_block_data,
        TypeCode.END_BLOCK_DATA: _parse_end_block_data,
        TypeCode.BLOCK_DATA_LONG: _parse_block_data_long,
        TypeCode.LONG_STRING: _parse_long_string,
        TypeCode.PROXY_CLASS_DESC: _parse_proxy_class_desc,
        TypeCode.ENUM: _parse_enum,
    })


def parse_serialized_object(
    data: bytes,
    *,
    max_block_size: int | None = None,
    max_nesting: int = DEFAULT_MAX_NESTING,
) -> Any:
    """Parse a complete Java serialization stream into a value graph."""
    return JavaObjectStreamParser(data, max_block_size=max_block_size, max_nesting=max_nesting).parse()


__all__ = [
    "ByteReader",
    "DEFAULT_MAX_NESTING",
    "JavaObjectStreamParser",
    "decode_modified_utf8",
    "parse_serialized_object",
]
