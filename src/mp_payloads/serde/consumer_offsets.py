"""Serde – ConsumerOffsetsCodec for the ``__consumer_offsets`` internal topic.

Keys carry a version prefix: versions 0 and 1 are offset commits, version
2 is group metadata. Values carry their own version prefix selecting one
of the layouts below. Layouts are described with kafka-python's protocol
types so the wire reading matches the broker's own framing.
"""
from __future__ import annotations

import io
import logging
import struct
from types import MappingProxyType
from typing import Any, Mapping

from kafka.protocol.types import Array, Bytes, Int16, Int32, Int64, Schema, String

from mp_payloads.serde.encoding import DeserializedPayload, PayloadEncoding, dumps_json
from mp_payloads.serde.errors import ConsumerOffsetsError

logger = logging.getLogger(__name__)

_VERSION = struct.Struct(">h")

# ----------------------------------------------------------------------
# Keys
# ----------------------------------------------------------------------

OFFSET_COMMIT_KEY = Schema(
    ("version", Int16),
    ("group", String("utf-8")),
    ("topic", String("utf-8")),
    ("partition", Int32),
)

GROUP_METADATA_KEY = Schema(
    ("version", Int16),
    ("group", String("utf-8")),
)

# ----------------------------------------------------------------------
# Offset commit values
# ----------------------------------------------------------------------

OFFSET_COMMIT_VALUES: Mapping[int, Schema] = MappingProxyType({
    0: Schema(
        ("version", Int16),
        ("offset", Int64),
        ("metadata", String("utf-8")),
        ("commitTimestamp", Int64),
    ),
    1: Schema(
        ("version", Int16),
        ("offset", Int64),
        ("metadata", String("utf-8")),
        ("commitTimestamp", Int64),
        ("expireTimestamp", Int64),
    ),
    2: Schema(
        ("version", Int16),
        ("offset", Int64),
        ("metadata", String("utf-8")),
        ("commitTimestamp", Int64),
    ),
    3: Schema(
        ("version", Int16),
        ("offset", Int64),
        ("leaderEpoch", Int32),
        ("metadata", String("utf-8")),
        ("commitTimestamp", Int64),
    ),
})

# ----------------------------------------------------------------------
# Group metadata values
# ----------------------------------------------------------------------

_MEMBER_V0 = Array(
    ("memberId", String("utf-8")),
    ("clientId", String("utf-8")),
    ("clientHost", String("utf-8")),
    ("sessionTimeout", Int32),
    ("subscription", Bytes),
    ("assignment", Bytes),
)

_MEMBER_V1 = Array(
    ("memberId", String("utf-8")),
    ("clientId", String("utf-8")),
    ("clientHost", String("utf-8")),
    ("rebalanceTimeout", Int32),
    ("sessionTimeout", Int32),
    ("subscription", Bytes),
    ("assignment", Bytes),
)

_MEMBER_V3 = Array(
    ("memberId", String("utf-8")),
    ("groupInstanceId", String("utf-8")),
    ("clientId", String("utf-8")),
    ("clientHost", String("utf-8")),
    ("rebalanceTimeout", Int32),
    ("sessionTimeout", Int32),
    ("subscription", Bytes),
    ("assignment", Bytes),
)

GROUP_METADATA_VALUES: Mapping[int, Schema] = MappingProxyType({
    0: Schema(
        ("version", Int16),
        ("protocolType", String("utf-8")),
        ("generation", Int32),
        ("protocol", String("utf-8")),
        ("leader", String("utf-8")),
        ("members", _MEMBER_V0),
    ),
    1: Schema(
        ("version", Int16),
        ("protocolType", String("utf-8")),
        ("generation", Int32),
        ("protocol", String("utf-8")),
        ("leader", String("utf-8")),
        ("members", _MEMBER_V1),
    ),
    2: Schema(
        ("version", Int16),
        ("protocolType", String("utf-8")),
        ("generation", Int32),
        ("protocol", String("utf-8")),
        ("leader", String("utf-8")),
        ("currentStateTimestamp", Int64),
        ("members", _MEMBER_V1),
    ),
    3: Schema(
        ("version", Int16),
        ("protocolType", String("utf-8")),
        ("generation", Int32),
        ("protocol", String("utf-8")),
        ("leader", String("utf-8")),
        ("currentStateTimestamp", Int64),
        ("members", _MEMBER_V3),
    ),
})

OFFSET_COMMIT_KEY_VERSIONS = frozenset({0, 1})
GROUP_METADATA_KEY_VERSION = 2


def _as_dict(schema: Schema, values: tuple[Any, ...]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for name, field, value in zip(schema.names, schema.fields, values):
        if isinstance(field, Array) and isinstance(field.array_of, Schema) and value is not None:
            value = [_as_dict(field.array_of, item) for item in value]
        result[name] = value
    return result


def read_version(data: bytes, what: str) -> int:
    if len(data) < _VERSION.size:
        raise ConsumerOffsetsError(f"{what} too short to carry a version", payload_type="consumerOffsets")
    return _VERSION.unpack_from(data)[0]


def _decode(schema: Schema, data: bytes, what: str) -> dict[str, Any]:
    try:
        values = schema.decode(io.BytesIO(data))
    except (ValueError, TypeError, UnicodeDecodeError) as exc:
        raise ConsumerOffsetsError(
            f"malformed {what}: {exc}", payload_type="consumerOffsets", cause=exc
        ) from exc
    return _as_dict(schema, values)


def _payload(document: dict[str, Any], raw: bytes) -> DeserializedPayload:
    return DeserializedPayload(
        payload=dumps_json(document),
        encoding=PayloadEncoding.CONSUMER_OFFSETS,
        is_payload_null=False,
        size=len(raw),
        native=document,
    )


def _tombstone() -> DeserializedPayload:
    return DeserializedPayload(payload=b"", encoding=PayloadEncoding.NONE, is_payload_null=True, size=0)


class ConsumerOffsetsCodec:
    """Decode key and value of a ``__consumer_offsets`` record."""

    def decode_key(self, key: bytes | None) -> tuple[int, DeserializedPayload]:
        if key is None:
            raise ConsumerOffsetsError("consumer offsets record without key", payload_type="consumerOffsets")
        version = read_version(key, "key")
        if version in OFFSET_COMMIT_KEY_VERSIONS:
            return version, _payload(_decode(OFFSET_COMMIT_KEY, key, "offset commit key"), key)
        if version == GROUP_METADATA_KEY_VERSION:
            return version, _payload(_decode(GROUP_METADATA_KEY, key, "group metadata key"), key)
        raise ConsumerOffsetsError(
            f"unknown consumer offsets key version {version}",
            payload_type="consumerOffsets",
            detail={"version": version},
        )

    def decode_value(self, key_version: int, value: bytes | None) -> DeserializedPayload:
        if value is None:
            return _tombstone()
        if key_version == GROUP_METADATA_KEY_VERSION:
            layouts, what = GROUP_METADATA_VALUES, "group metadata value"
        else:
            layouts, what = OFFSET_COMMIT_VALUES, "offset commit value"
        version = read_version(value, what)
        schema = layouts.get(version)
        if schema is None:
            raise ConsumerOffsetsError(
                f"unknown {what} version {version}",
                payload_type="consumerOffsets",
                detail={"version": version},
            )
        return _payload(_decode(schema, value, what), value)

    def decode(
        self, key: bytes | None, value: bytes | None
    ) -> tuple[DeserializedPayload, DeserializedPayload]:
        """Return ``(key, value)``; raise :class:`ConsumerOffsetsError` on any unknown layout."""
        key_version, key_payload = self.decode_key(key)
        value_payload = self.decode_value(key_version, value)
        logger.debug("consumer_offsets.decoded key_version=%d tombstone=%s", key_version, value is None)
        return key_payload, value_payload


__all__ = [
    "ConsumerOffsetsCodec",
    "GROUP_METADATA_KEY",
    "GROUP_METADATA_VALUES",
    "OFFSET_COMMIT_KEY",
    "OFFSET_COMMIT_VALUES",
]
