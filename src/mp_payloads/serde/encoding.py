"""Serde – encodings, deserialized payload envelopes and JSON helpers."""
from __future__ import annotations

import base64
import dataclasses
import datetime
import enum
import json
from types import MappingProxyType
from typing import Any, Mapping

CONSUMER_OFFSETS_TOPIC = "__consumer_offsets"


class PayloadEncoding(enum.StrEnum):
    """Encoding recognised for a payload."""

    NONE = "none"
    AVRO = "avro"
    PROTOBUF = "protobuf"
    JSON = "json"
    XML = "xml"
    TEXT = "text"
    UTF8_WITH_CONTROL_CHARS = "utf8WithControlChars"
    CONSUMER_OFFSETS = "consumerOffsets"
    BINARY = "binary"
    MSGPACK = "msgpack"
    SMILE = "smile"


class RecordRole(enum.StrEnum):
    """Which part of a record a payload came from."""

    KEY = "key"
    VALUE = "value"


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, (datetime.datetime, datetime.date, datetime.time)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


def dumps_json(obj: Any, *, sort_keys: bool = False) -> bytes:
    """Serialise decoded data to compact JSON bytes.

    Binary values become base64 text; other non-JSON types their ``str``.
    """
    return json.dumps(
        obj,
        default=_json_default,
        sort_keys=sort_keys,
        separators=(",", ":"),
    ).encode("utf-8")


def canonical_json(obj: Any) -> bytes:
    """Deterministic JSON bytes (sorted keys, compact separators)."""
    return dumps_json(obj, sort_keys=True)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name!r}")


def loads_json(data: bytes | str) -> Any:
    """Strict JSON parse: ``NaN`` / ``Infinity`` are rejected."""
    return json.loads(data, parse_constant=_reject_constant)


@dataclasses.dataclass(frozen=True)
class DeserializedPayload:
    """Result of deserializing one key, value or header payload.

    ``payload`` holds the normalized bytes: the JSON document for every
    JSON-shaped encoding, the original bytes for ``text``, ``binary`` and
    ``utf8WithControlChars``. ``native`` is the decoded Python value.
    """

    payload: bytes
    encoding: PayloadEncoding
    is_payload_null: bool
    size: int
    schema_id: int = 0
    native: Any = dataclasses.field(default=None, compare=False, repr=False)

    def normalized(self) -> Any:
        """The payload as it appears in the JSON envelope."""
        if self.encoding is PayloadEncoding.NONE:
            return {}
        if self.encoding is PayloadEncoding.TEXT:
            return self.payload.decode("utf-8")
        if self.encoding in (PayloadEncoding.BINARY, PayloadEncoding.UTF8_WITH_CONTROL_CHARS):
            return base64.b64encode(self.payload).decode("ascii")
        return json.loads(self.payload)

    def to_dict(self) -> dict[str, Any]:
        return {
            "payload": self.normalized(),
            "encoding": str(self.encoding),
            "isPayloadNull": self.is_payload_null,
            "schemaId": self.schema_id,
            "size": self.size,
        }

    def to_json(self) -> bytes:
        return dumps_json(self.to_dict())


@dataclasses.dataclass(frozen=True)
class KafkaRecord:
    """The parts of a consumed record the deserializer looks at."""

    topic: str
    key: bytes | None = None
    value: bytes | None = None
    headers: tuple[tuple[str, bytes | None], ...] = ()

    @classmethod
    def from_consumer_record(cls, record: Any) -> KafkaRecord:
        """Build from a client record exposing ``topic``, ``key``, ``value``, ``headers``."""
        headers = tuple((str(k), v) for k, v in (getattr(record, "headers", None) or ()))
        return cls(topic=record.topic, key=record.key, value=record.value, headers=headers)


@dataclasses.dataclass(frozen=True)
class DeserializedRecord:
    """Deserialized key, value and headers of one record."""

    key: DeserializedPayload
    value: DeserializedPayload
    headers: Mapping[str, DeserializedPayload] = dataclasses.field(
        default_factory=lambda: MappingProxyType({})
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key.to_dict(),
            "value": self.value.to_dict(),
            "headers": {name: header.to_dict() for name, header in self.headers.items()},
        }


__all__ = [
    "CONSUMER_OFFSETS_TOPIC",
    "DeserializedPayload",
    "DeserializedRecord",
    "KafkaRecord",
    "PayloadEncoding",
    "RecordRole",
    "canonical_json",
    "dumps_json",
    "loads_json",
]
