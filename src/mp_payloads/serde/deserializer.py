"""Serde – PayloadDeserializer: best-effort decoding of Kafka record payloads.

Usage::

    from mp_payloads.serde import PayloadDeserializer, RecordRole

    deserializer = PayloadDeserializer()
    result = deserializer.deserialize(b'{"a": 1}', "orders", RecordRole.VALUE)
    assert result.encoding == "json"
"""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any

from mp_payloads.config import EnvSettingsLoader, SettingsLoader
from mp_payloads.serde.base64_java import Base64JavaCodec
from mp_payloads.serde.codecs import AvroDecoder, PySmileDecoder, XmlToDictConverter
from mp_payloads.serde.consumer_offsets import ConsumerOffsetsCodec
from mp_payloads.serde.encoding import (
    CONSUMER_OFFSETS_TOPIC,
    DeserializedPayload,
    DeserializedRecord,
    KafkaRecord,
    PayloadEncoding,
    RecordRole,
)
from mp_payloads.serde.errors import ConsumerOffsetsError, JavaDecodeError
from mp_payloads.serde.ports import MessagePackAllowlist, ProtoRegistry, SchemaRegistry, SmileDecoder, XmlToJson
from mp_payloads.serde.probes import EncodingProbe, ProbeInput, ProbeMatch, build_probe_chain
from mp_payloads.serde.registry import CachedSchemaRegistry, TopicAllowlist
from mp_payloads.serde.settings import DeserializerSettings

logger = logging.getLogger(__name__)


class PayloadDeserializer:
    """Detects the encoding of raw payloads and decodes them.

    ``deserialize`` never raises: every payload yields a
    :class:`DeserializedPayload`, ``binary`` in the worst case.

    Args:
        settings: Tunables; defaults to ``DeserializerSettings()``.
        schema_registry: Avro schema lookup. Wrapped in a
            :class:`CachedSchemaRegistry` unless it already is one. Without
            it, framed Avro payloads are not recognised.
        proto_registry: Protobuf descriptor registry; optional.
        msgpack_allowlist: Topics whose payloads may be MessagePack;
            defaults to ``settings.msgpack_allowed_topics``.
        xml_converter: XML → JSON conversion; defaults to xmltodict.
        smile_decoder: Smile decoding; defaults to pysmile.
        java_codec: Base64 Java codec used by :meth:`deserialize_record`.
        offsets_codec: ``__consumer_offsets`` codec.
    """

    def __init__(
        self,
        settings: DeserializerSettings | None = None,
        *,
        schema_registry: SchemaRegistry | None = None,
        proto_registry: ProtoRegistry | None = None,
        msgpack_allowlist: MessagePackAllowlist | None = None,
        xml_converter: XmlToJson | None = None,
        smile_decoder: SmileDecoder | None = None,
        java_codec: Base64JavaCodec | None = None,
        offsets_codec: ConsumerOffsetsCodec | None = None,
    ) -> None:
        self._settings = settings or DeserializerSettings()
        if schema_registry is not None and not isinstance(schema_registry, CachedSchemaRegistry):
            schema_registry = CachedSchemaRegistry(schema_registry, miss_ttl=self._settings.schema_cache_miss_ttl)
        self._schema_registry = schema_registry
        self._java_codec = java_codec or Base64JavaCodec.from_settings(self._settings)
        self._offsets_codec = offsets_codec or ConsumerOffsetsCodec()
        self._java_excluded = frozenset(self._settings.java_excluded_topics)
        self._probes = build_probe_chain(
            xml_converter=xml_converter or XmlToDictConverter(),
            avro=AvroDecoder(schema_registry) if schema_registry is not None else None,
            proto_registry=proto_registry,
            msgpack_allowlist=msgpack_allowlist or TopicAllowlist(self._settings.msgpack_allowed_topics),
            smile_decoder=smile_decoder or PySmileDecoder(),
        )

    @classmethod
    def from_env(cls, loader: SettingsLoader | None = None, **collaborators: Any) -> PayloadDeserializer:
        """Build with settings read from ``PAYLOADS_*`` variables."""
        settings = (loader or EnvSettingsLoader()).load(DeserializerSettings)
        return cls(settings, **collaborators)

    @property
    def settings(self) -> DeserializerSettings:
        return self._settings

    @property
    def probes(self) -> tuple[EncodingProbe, ...]:
        return self._probes

    # ------------------------------------------------------------------
    # Single payload
    # ------------------------------------------------------------------

    def deserialize(
        self,
        payload: bytes | None,
        topic: str,
        role: RecordRole = RecordRole.VALUE,
    ) -> DeserializedPayload:
        """Decode *payload* with the first probe that accepts it."""
        if payload is None:
            return DeserializedPayload(payload=b"", encoding=PayloadEncoding.NONE, is_payload_null=True, size=0)
        payload = bytes(payload)
        if not payload:
            return DeserializedPayload(payload=b"", encoding=PayloadEncoding.NONE, is_payload_null=False, size=0)

        probe_input = ProbeInput.of(payload, topic, role)
        if not probe_input.trimmed:
            return self._result(ProbeMatch(PayloadEncoding.TEXT, payload, payload.decode("ascii")), payload)

        for probe in self._probes:
            if not self._accepts(probe, probe_input):
                continue
            outcome = probe.decode(probe_input)
            if outcome.is_ok():
                return self._result(outcome.unwrap(), payload)
            logger.debug(
                "payload.probe_failed probe=%s topic=%s role=%s size=%d exc=%r",
                probe.name,
                topic,
                role,
                len(payload),
                outcome.error,
                extra={"payload": payload},
            )
        # unreachable while the binary probe closes the chain
        return self._result(ProbeMatch(PayloadEncoding.BINARY, payload, payload), payload)

    @staticmethod
    def _accepts(probe: EncodingProbe, probe_input: ProbeInput) -> bool:
        try:
            return bool(probe.precondition(probe_input))
        except Exception as exc:  # noqa: BLE001
            logger.debug("payload.precondition_failed probe=%s exc=%r", probe.name, exc)
            return False

    @staticmethod
    def _result(match: ProbeMatch, payload: bytes) -> DeserializedPayload:
        return DeserializedPayload(
            payload=match.normalized,
            encoding=match.encoding,
            is_payload_null=False,
            size=len(payload),
            schema_id=match.schema_id,
            native=match.native,
        )

    # ------------------------------------------------------------------
    # Whole record
    # ------------------------------------------------------------------

    def deserialize_record(
        self,
        record: KafkaRecord,
        parse_java_to_json: bool | None = None,
    ) -> DeserializedRecord:
        """Decode key, value and headers of *record*.

        ``__consumer_offsets`` records go through the consumer-offsets
        codec first. When Java parsing is enabled and the topic is not
        excluded, a value holding base64 Java serialization is replaced by
        the canonical JSON of the decoded object before probing.
        """
        if not isinstance(record, KafkaRecord):
            record = KafkaRecord.from_consumer_record(record)
        headers = MappingProxyType(
            {name: self.deserialize(raw, record.topic, RecordRole.VALUE) for name, raw in record.headers}
        )

        if record.topic == CONSUMER_OFFSETS_TOPIC:
            try:
                key, value = self._offsets_codec.decode(record.key, record.value)
                return DeserializedRecord(key=key, value=value, headers=headers)
            except ConsumerOffsetsError as exc:
                logger.debug("consumer_offsets.fallback topic=%s exc=%r", record.topic, exc)

        if parse_java_to_json is None:
            parse_java_to_json = self._settings.parse_java_to_json
        value = record.value
        if parse_java_to_json and value and record.topic not in self._java_excluded:
            value = self._java_to_json(value, record.topic)

        return DeserializedRecord(
            key=self.deserialize(record.key, record.topic, RecordRole.KEY),
            value=self.deserialize(value, record.topic, RecordRole.VALUE),
            headers=headers,
        )

    def _java_to_json(self, value: bytes, topic: str) -> bytes:
        try:
            return self._java_codec.decode(value).normalized
        except JavaDecodeError as exc:
            logger.debug("payload.java_decode_failed topic=%s exc=%r", topic, exc, extra={"payload": value})
            return value


__all__ = ["PayloadDeserializer"]
