"""Serde – payload encoding detection, decoding and the Java stream parser.

Import path convention::

    from mp_payloads.serde import PayloadDeserializer, RecordRole
"""
from mp_payloads.serde.base64_java import (
    Base64JavaCodec,
    JavaPayload,
    parse_base64_to_json,
    parse_base64_to_object,
)
from mp_payloads.serde.codecs import AvroDecoder, PySmileDecoder, XmlToDictConverter, decode_msgpack
from mp_payloads.serde.consumer_offsets import ConsumerOffsetsCodec
from mp_payloads.serde.deserializer import PayloadDeserializer
from mp_payloads.serde.encoding import (
    CONSUMER_OFFSETS_TOPIC,
    DeserializedPayload,
    DeserializedRecord,
    KafkaRecord,
    PayloadEncoding,
    RecordRole,
    canonical_json,
)
from mp_payloads.serde.errors import (
    BlockSizeExceededError,
    ConsumerOffsetsError,
    GraphTooLargeError,
    JavaDecodeError,
    JavaStreamError,
    PayloadDecodeError,
    SchemaNotFoundError,
    UnknownTypeCodeError,
    UnsupportedClassFlagsError,
)
from mp_payloads.serde.ports import MessagePackAllowlist, ProtoRegistry, SchemaRegistry, SmileDecoder, XmlToJson
from mp_payloads.serde.probes import EncodingProbe, ProbeInput, ProbeMatch, build_probe_chain, framed_schema_id
from mp_payloads.serde.registry import CachedSchemaRegistry, SnapshotCache, TopicAllowlist
from mp_payloads.serde.settings import DeserializerSettings

__all__ = [
    "AvroDecoder",
    "Base64JavaCodec",
    "BlockSizeExceededError",
    "CONSUMER_OFFSETS_TOPIC",
    "CachedSchemaRegistry",
    "ConsumerOffsetsCodec",
    "ConsumerOffsetsError",
    "DeserializedPayload",
    "DeserializedRecord",
    "DeserializerSettings",
    "EncodingProbe",
    "GraphTooLargeError",
    "JavaDecodeError",
    "JavaPayload",
    "JavaStreamError",
    "KafkaRecord",
    "MessagePackAllowlist",
    "PayloadDecodeError",
    "PayloadDeserializer",
    "PayloadEncoding",
    "ProbeInput",
    "ProbeMatch",
    "ProtoRegistry",
    "PySmileDecoder",
    "RecordRole",
    "SchemaNotFoundError",
    "SchemaRegistry",
    "SmileDecoder",
    "SnapshotCache",
    "TopicAllowlist",
    "UnknownTypeCodeError",
    "UnsupportedClassFlagsError",
    "XmlToDictConverter",
    "XmlToJson",
    "build_probe_chain",
    "canonical_json",
    "decode_msgpack",
    "framed_schema_id",
    "parse_base64_to_json",
    "parse_base64_to_object",
]
