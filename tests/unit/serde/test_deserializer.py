"""Unit tests for PayloadDeserializer."""

from __future__ import annotations

import base64
import io
import json
import logging
import struct
import types

import fastavro
import msgpack
import pytest

from mp_payloads.serde import (
    DeserializedPayload,
    DeserializerSettings,
    KafkaRecord,
    MessagePackAllowlist,
    PayloadDeserializer,
    PayloadEncoding,
    RecordRole,
    TopicAllowlist,
)
from mp_payloads.testing import (
    FakeProtoRegistry,
    FakeSmileDecoder,
    InMemorySchemaRegistry,
    JavaStreamWriter,
    smile_payload,
)
from mp_payloads.testing.java_stream import write_hash_map

ORDER_SCHEMA = {
    "type": "record",
    "name": "Order",
    "fields": [{"name": "id", "type": "long"}, {"name": "item", "type": "string"}],
}


def _framed(schema_id: int, body: bytes) -> bytes:
    return b"\x00" + struct.pack(">I", schema_id) + body


def _avro(record: dict) -> bytes:
    buffer = io.BytesIO()
    fastavro.schemaless_writer(buffer, fastavro.parse_schema(ORDER_SCHEMA), record)
    return buffer.getvalue()


class _BrokenAllowlist(MessagePackAllowlist):
    def is_topic_allowed(self, topic: str) -> bool:
        raise RuntimeError("allow-list unavailable")


@pytest.fixture()
def schema_registry() -> InMemorySchemaRegistry:
    return InMemorySchemaRegistry({7: ORDER_SCHEMA})


@pytest.fixture()
def proto_registry() -> FakeProtoRegistry:
    registry = FakeProtoRegistry()
    registry.register(b"\x08\x96\x01", {"a": 150}, 12)
    return registry


@pytest.fixture()
def deserializer(schema_registry: InMemorySchemaRegistry, proto_registry: FakeProtoRegistry) -> PayloadDeserializer:
    return PayloadDeserializer(
        DeserializerSettings(msgpack_allowed_topics=["packed"]),
        schema_registry=schema_registry,
        proto_registry=proto_registry,
        smile_decoder=FakeSmileDecoder(),
    )


# ---------------------------------------------------------------------------
# Null, empty and whitespace
# ---------------------------------------------------------------------------


class TestEmptyPayloads:
    def test_none(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(None, "t")
        assert result.encoding is PayloadEncoding.NONE
        assert result.is_payload_null is True
        assert result.to_dict() == {
            "payload": {},
            "encoding": "none",
            "isPayloadNull": True,
            "schemaId": 0,
            "size": 0,
        }

    def test_empty_is_not_null(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(b"", "t")
        assert result.encoding is PayloadEncoding.NONE
        assert result.is_payload_null is False
        assert result.size == 0

    def test_whitespace_only_is_text(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(b" \r\n\t", "t")
        assert result.encoding is PayloadEncoding.TEXT
        assert result.size == 4


# ---------------------------------------------------------------------------
# Probe order and detection
# ---------------------------------------------------------------------------


class TestDetection:
    def test_json(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(b'{"a":1}', "t")
        assert result.encoding is PayloadEncoding.JSON
        assert result.to_dict() == {
            "payload": {"a": 1},
            "encoding": "json",
            "isPayloadNull": False,
            "schemaId": 0,
            "size": 7,
        }

    def test_json_with_leading_whitespace(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(b'\n  [1, 2]', "t")
        assert result.encoding is PayloadEncoding.JSON
        assert result.payload == b"[1, 2]"
        assert result.size == 9

    def test_invalid_json_falls_through_to_text(self, deserializer: PayloadDeserializer) -> None:
        assert deserializer.deserialize(b'{"a": NaN}', "t").encoding is PayloadEncoding.TEXT
        assert deserializer.deserialize(b"{not json", "t").encoding is PayloadEncoding.TEXT

    def test_framed_json(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(_framed(42, b'{"a":1}'), "t")
        assert result.encoding is PayloadEncoding.JSON
        assert result.schema_id == 42
        assert result.native == {"a": 1}

    def test_framed_json_without_schema_registry(self) -> None:
        result = PayloadDeserializer().deserialize(_framed(3, b"[true]"), "t")
        assert result.encoding is PayloadEncoding.JSON
        assert result.schema_id == 3

    def test_xml(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(b'<order id="7"><item>book</item></order>', "t")
        assert result.encoding is PayloadEncoding.XML
        assert result.to_dict()["payload"] == {"order": {"@id": "7", "item": "book"}}

    def test_framed_avro(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(_framed(7, _avro({"id": 1, "item": "book"})), "t")
        assert result.encoding is PayloadEncoding.AVRO
        assert result.schema_id == 7
        assert result.to_dict()["payload"] == {"id": 1, "item": "book"}

    def test_framed_avro_unknown_schema(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(_framed(8, _avro({"id": 1, "item": "book"})), "t")
        assert result.encoding is not PayloadEncoding.AVRO
        assert result.schema_id == 0

    def test_schema_lookups_are_cached(
        self, deserializer: PayloadDeserializer, schema_registry: InMemorySchemaRegistry
    ) -> None:
        payload = _framed(7, _avro({"id": 1, "item": "book"}))
        deserializer.deserialize(payload, "t")
        deserializer.deserialize(payload, "t")
        assert schema_registry.lookups[7] == 1

    def test_protobuf(self, deserializer: PayloadDeserializer, proto_registry: FakeProtoRegistry) -> None:
        result = deserializer.deserialize(b"\x08\x96\x01", "proto-topic", RecordRole.KEY)
        assert result.encoding is PayloadEncoding.PROTOBUF
        assert result.schema_id == 12
        assert result.native == {"a": 150}
        assert proto_registry.calls[-1] == (b"\x08\x96\x01", "proto-topic", RecordRole.KEY)

    def test_msgpack_only_on_allowed_topics(self, deserializer: PayloadDeserializer) -> None:
        packed = msgpack.packb({"a": [1, 2]})
        allowed = deserializer.deserialize(packed, "packed")
        assert allowed.encoding is PayloadEncoding.MSGPACK
        assert allowed.to_dict()["payload"] == {"a": [1, 2]}
        assert deserializer.deserialize(packed, "other").encoding is PayloadEncoding.BINARY

    def test_smile(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(smile_payload({"a": 1}), "t")
        assert result.encoding is PayloadEncoding.SMILE
        assert result.native == {"a": 1}

    def test_text(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize("héllo".encode(), "t")
        assert result.encoding is PayloadEncoding.TEXT
        assert result.to_dict()["payload"] == "héllo"

    def test_utf8_with_control_chars(self, deserializer: PayloadDeserializer) -> None:
        payload = b"line1\nline2"
        result = deserializer.deserialize(payload, "t")
        assert result.encoding is PayloadEncoding.UTF8_WITH_CONTROL_CHARS
        assert result.to_dict()["payload"] == base64.b64encode(payload).decode()

    def test_c1_control_byte(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(b"a\xc2\x85b", "t")
        assert result.encoding is PayloadEncoding.UTF8_WITH_CONTROL_CHARS

    def test_utf8_with_c1_range_continuation_bytes(self, deserializer: PayloadDeserializer) -> None:
        payload = "Привет".encode()
        result = deserializer.deserialize(payload, "t")
        assert result.encoding is PayloadEncoding.UTF8_WITH_CONTROL_CHARS
        assert result.to_dict()["payload"] == base64.b64encode(payload).decode()

    def test_binary(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(b"\xff\xfe\xfd", "t")
        assert result.encoding is PayloadEncoding.BINARY
        assert result.to_dict()["payload"] == "//79"

    def test_probe_failures_carry_payload(
        self, deserializer: PayloadDeserializer, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="mp_payloads.serde.deserializer"):
            deserializer.deserialize(b"{oops", "t")
        failures = [r for r in caplog.records if r.getMessage().startswith("payload.probe_failed probe=json")]
        assert failures
        assert failures[0].payload == b"{oops"

    def test_raising_precondition_is_skipped(self) -> None:
        deserializer = PayloadDeserializer(msgpack_allowlist=_BrokenAllowlist())
        assert deserializer.deserialize(msgpack.packb([1]), "t").encoding is PayloadEncoding.BINARY


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestProperties:
    @pytest.mark.parametrize(
        "payload",
        [b'{"a":1}', b"<a/>", b"text", b"\x00\x01\x02", b"\xff", b"", None],
    )
    def test_idempotent(self, deserializer: PayloadDeserializer, payload: bytes | None) -> None:
        first = deserializer.deserialize(payload, "t")
        second = deserializer.deserialize(payload, "t")
        assert (first.encoding, first.payload, first.schema_id) == (second.encoding, second.payload, second.schema_id)

    @pytest.mark.parametrize(
        "document",
        [{"a": 1}, [1, "two", None], {"nested": {"list": [True, False]}}, []],
    )
    def test_json_round_trip(self, deserializer: PayloadDeserializer, document: object) -> None:
        result = deserializer.deserialize(json.dumps(document).encode(), "t")
        assert result.encoding is PayloadEncoding.JSON
        assert json.loads(result.payload) == document

    def test_envelope_is_json(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(b"\xff", "t")
        assert json.loads(result.to_json())["encoding"] == "binary"

    def test_results_are_frozen(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize(b"x", "t")
        with pytest.raises(AttributeError):
            result.encoding = PayloadEncoding.JSON  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Whole records
# ---------------------------------------------------------------------------


def _java_value() -> bytes:
    writer = JavaStreamWriter()
    write_hash_map(writer, [("a", "x")])
    return writer.base64()


class TestDeserializeRecord:
    def test_key_value_and_headers(self, deserializer: PayloadDeserializer) -> None:
        record = KafkaRecord(
            topic="orders",
            key=b"order-1",
            value=b'{"a":1}',
            headers=(("trace", b"abc"), ("empty", None)),
        )
        result = deserializer.deserialize_record(record)
        assert result.key.encoding is PayloadEncoding.TEXT
        assert result.value.encoding is PayloadEncoding.JSON
        assert result.headers["trace"].encoding is PayloadEncoding.TEXT
        assert result.headers["empty"].is_payload_null is True
        assert result.to_dict()["headers"]["trace"]["payload"] == "abc"

    def test_from_client_record(self, deserializer: PayloadDeserializer) -> None:
        client_record = types.SimpleNamespace(topic="t", key=None, value=b"[1]", headers=[("h", b"v")])
        result = deserializer.deserialize_record(client_record)  # type: ignore[arg-type]
        assert result.key.is_payload_null is True
        assert result.value.encoding is PayloadEncoding.JSON
        assert set(result.headers) == {"h"}

    def test_consumer_offsets(self, deserializer: PayloadDeserializer) -> None:
        key = struct.pack(">h", 2) + struct.pack(">h", 5) + b"group"
        result = deserializer.deserialize_record(KafkaRecord("__consumer_offsets", key=key, value=None))
        assert result.key.encoding is PayloadEncoding.CONSUMER_OFFSETS
        assert result.key.native == {"version": 2, "group": "group"}
        assert result.value.encoding is PayloadEncoding.NONE
        assert result.value.is_payload_null is True

    def test_consumer_offsets_unknown_version_falls_back(self, deserializer: PayloadDeserializer) -> None:
        key = struct.pack(">h", 99) + b"\xff\xfe"
        result = deserializer.deserialize_record(KafkaRecord("__consumer_offsets", key=key, value=b"\xff"))
        assert result.key.encoding is PayloadEncoding.BINARY
        assert result.key.size == 4
        assert result.value.encoding is PayloadEncoding.BINARY

    def test_java_value_parsed_when_enabled(self, deserializer: PayloadDeserializer) -> None:
        record = KafkaRecord("legacy-java", key=None, value=_java_value())
        result = deserializer.deserialize_record(record, parse_java_to_json=True)
        assert result.value.encoding is PayloadEncoding.JSON
        assert result.value.native == {"a": "x"}

    def test_java_value_left_alone_by_default(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize_record(KafkaRecord("legacy-java", value=_java_value()))
        assert result.value.encoding is PayloadEncoding.TEXT

    def test_java_enabled_by_settings_except_excluded_topics(self) -> None:
        deserializer = PayloadDeserializer(
            DeserializerSettings(parse_java_to_json=True, java_excluded_topics=["raw-java"]),
        )
        parsed = deserializer.deserialize_record(KafkaRecord("java", value=_java_value()))
        excluded = deserializer.deserialize_record(KafkaRecord("raw-java", value=_java_value()))
        assert parsed.value.encoding is PayloadEncoding.JSON
        assert excluded.value.encoding is PayloadEncoding.TEXT

    def test_non_java_value_untouched_when_enabled(self, deserializer: PayloadDeserializer) -> None:
        result = deserializer.deserialize_record(KafkaRecord("t", value=b"plain words"), parse_java_to_json=True)
        assert result.value == DeserializedPayload(
            payload=b"plain words", encoding=PayloadEncoding.TEXT, is_payload_null=False, size=11
        )


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAYLOADS_MSGPACK_ALLOWED_TOPICS", "packed")
        deserializer = PayloadDeserializer.from_env()
        assert deserializer.settings.msgpack_allowed_topics == ["packed"]
        assert deserializer.deserialize(msgpack.packb({"k": 1}), "packed").encoding is PayloadEncoding.MSGPACK

    def test_custom_allowlist_wins(self) -> None:
        deserializer = PayloadDeserializer(
            DeserializerSettings(msgpack_allowed_topics=["a"]),
            msgpack_allowlist=TopicAllowlist(["b"]),
        )
        packed = msgpack.packb({"k": 1})
        assert deserializer.deserialize(packed, "b").encoding is PayloadEncoding.MSGPACK
        assert deserializer.deserialize(packed, "a").encoding is PayloadEncoding.BINARY
