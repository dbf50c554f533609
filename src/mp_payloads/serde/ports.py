"""Serde ports – collaborators the deserializer consults but does not own."""
from __future__ import annotations

import abc
from typing import Any

from mp_payloads.serde.encoding import RecordRole


class SchemaRegistry(abc.ABC):
    """Port: resolve schema-registry ids to Avro schema definitions."""

    @abc.abstractmethod
    def get_avro_schema_by_id(self, schema_id: int) -> str:
        """Return the schema JSON; raise ``SchemaNotFoundError`` when unknown."""


class ProtoRegistry(abc.ABC):
    """Port: decode Protobuf payloads using registered descriptors."""

    @abc.abstractmethod
    def unmarshal(self, payload: bytes, topic: str, role: RecordRole) -> tuple[bytes, int]:
        """Return ``(json_bytes, schema_id)``; raise when no descriptor matches."""


class MessagePackAllowlist(abc.ABC):
    """Port: topics whose payloads may be decoded as MessagePack."""

    @abc.abstractmethod
    def is_topic_allowed(self, topic: str) -> bool: ...


class XmlToJson(abc.ABC):
    """Port: convert an XML document into JSON bytes."""

    @abc.abstractmethod
    def convert(self, payload: bytes) -> bytes: ...


class SmileDecoder(abc.ABC):
    """Port: decode a Smile (binary JSON) document."""

    @abc.abstractmethod
    def decode(self, payload: bytes) -> Any: ...


__all__ = ["MessagePackAllowlist", "ProtoRegistry", "SchemaRegistry", "SmileDecoder", "XmlToJson"]
