"""Serde – encoding probes and the ordered probe chain.

A probe is a cheap ``precondition`` plus a ``decode`` attempt returning a
:class:`~mp_payloads.kernel.types.Result`. Decode attempts never mutate
shared state, so the order of the chain only affects speed, never the
outcome for a payload a single probe accepts.
"""
from __future__ import annotations

import dataclasses
import re
import struct
from typing import Any, Callable

from mp_payloads.kernel.types import Nothing, Ok, Option, Result, Some, attempt
from mp_payloads.serde.codecs import SMILE_HEADER, AvroDecoder, decode_msgpack
from mp_payloads.serde.encoding import PayloadEncoding, RecordRole, dumps_json, loads_json
from mp_payloads.serde.ports import MessagePackAllowlist, ProtoRegistry, SmileDecoder, XmlToJson

WHITESPACE = b" \t\r\n"
FRAME_HEADER_SIZE = 5

_SCHEMA_ID = struct.Struct(">I")
_CONTROL_BYTES = re.compile(rb"[\x00-\x1f\x7f-\x9f]")
_JSON_OPENERS = frozenset(b"[{")


@dataclasses.dataclass(frozen=True)
class ProbeInput:
    payload: bytes
    trimmed: bytes
    topic: str
    role: RecordRole

    @classmethod
    def of(cls, payload: bytes, topic: str, role: RecordRole) -> ProbeInput:
        return cls(payload=payload, trimmed=payload.lstrip(WHITESPACE), topic=topic, role=role)


@dataclasses.dataclass(frozen=True)
class ProbeMatch:
    """A successful decode: encoding, normalized bytes and decoded value."""

    encoding: PayloadEncoding
    normalized: bytes
    native: Any
    schema_id: int = 0


@dataclasses.dataclass(frozen=True)
class EncodingProbe:
    name: str
    precondition: Callable[[ProbeInput], bool]
    decode: Callable[[ProbeInput], Result[ProbeMatch, Exception]]


def framed_schema_id(payload: bytes) -> Option[int]:
    """Schema id of a schema-registry framed payload (magic byte ``0``)."""
    if len(payload) > FRAME_HEADER_SIZE and payload[0] == 0:
        return Some(_SCHEMA_ID.unpack_from(payload, 1)[0])
    return Nothing()


def has_control_chars(data: bytes) -> bool:
    """True when *data* holds a byte in 0x00-0x1F or 0x7F-0x9F.

    The check runs on the raw bytes, so UTF-8 continuation bytes in that
    range count as well.
    """
    return _CONTROL_BYTES.search(data) is not None


def _attempting(func: Callable[[ProbeInput], ProbeMatch]) -> Callable[[ProbeInput], Result[ProbeMatch, Exception]]:
    def decode(probe_input: ProbeInput) -> Result[ProbeMatch, Exception]:
        return attempt(func, probe_input)

    decode.__name__ = func.__name__
    return decode


def _always(probe_input: ProbeInput) -> bool:  # noqa: ARG001
    return True


# ----------------------------------------------------------------------
# JSON
# ----------------------------------------------------------------------


def _looks_like_json(probe_input: ProbeInput) -> bool:
    return bool(probe_input.trimmed) and probe_input.trimmed[0] in _JSON_OPENERS


def _decode_json(probe_input: ProbeInput) -> ProbeMatch:
    native = loads_json(probe_input.trimmed)
    return ProbeMatch(PayloadEncoding.JSON, probe_input.trimmed, native)


def _looks_like_framed_json(probe_input: ProbeInput) -> bool:
    payload = probe_input.payload
    return framed_schema_id(payload).is_some() and payload[FRAME_HEADER_SIZE] in _JSON_OPENERS


def _decode_framed_json(probe_input: ProbeInput) -> ProbeMatch:
    schema_id = framed_schema_id(probe_input.payload).unwrap()
    body = probe_input.payload[FRAME_HEADER_SIZE:]
    return ProbeMatch(PayloadEncoding.JSON, body, loads_json(body), schema_id)


# ----------------------------------------------------------------------
# Collaborator-backed probes
# ----------------------------------------------------------------------


def _xml_probe(converter: XmlToJson) -> EncodingProbe:
    def decode_xml(probe_input: ProbeInput) -> ProbeMatch:
        converted = converter.convert(probe_input.trimmed)
        return ProbeMatch(PayloadEncoding.XML, converted, loads_json(converted))

    return EncodingProbe(
        name="xml",
        precondition=lambda probe_input: probe_input.trimmed[:1] == b"<",
        decode=_attempting(decode_xml),
    )


def _avro_probe(avro: AvroDecoder) -> EncodingProbe:
    def decode_avro(probe_input: ProbeInput) -> ProbeMatch:
        schema_id = framed_schema_id(probe_input.payload).unwrap()
        record = avro.decode(schema_id, probe_input.payload[FRAME_HEADER_SIZE:])
        return ProbeMatch(PayloadEncoding.AVRO, dumps_json(record), record, schema_id)

    return EncodingProbe(
        name="avro",
        precondition=lambda probe_input: framed_schema_id(probe_input.payload).is_some(),
        decode=_attempting(decode_avro),
    )


def _protobuf_probe(registry: ProtoRegistry) -> EncodingProbe:
    def decode_protobuf(probe_input: ProbeInput) -> ProbeMatch:
        converted, schema_id = registry.unmarshal(probe_input.payload, probe_input.topic, probe_input.role)
        return ProbeMatch(PayloadEncoding.PROTOBUF, converted, loads_json(converted), schema_id)

    return EncodingProbe(name="protobuf", precondition=_always, decode=_attempting(decode_protobuf))


def _msgpack_probe(allowlist: MessagePackAllowlist) -> EncodingProbe:
    def decode(probe_input: ProbeInput) -> ProbeMatch:
        native = decode_msgpack(probe_input.payload)
        return ProbeMatch(PayloadEncoding.MSGPACK, dumps_json(native), native)

    return EncodingProbe(
        name="msgpack",
        precondition=lambda probe_input: allowlist.is_topic_allowed(probe_input.topic),
        decode=_attempting(decode),
    )


def _smile_probe(decoder: SmileDecoder) -> EncodingProbe:
    def decode(probe_input: ProbeInput) -> ProbeMatch:
        native = decoder.decode(probe_input.payload)
        return ProbeMatch(PayloadEncoding.SMILE, dumps_json(native), native)

    return EncodingProbe(
        name="smile",
        precondition=lambda probe_input: (
            len(probe_input.payload) > len(SMILE_HEADER) and probe_input.payload.startswith(SMILE_HEADER)
        ),
        decode=_attempting(decode),
    )


# ----------------------------------------------------------------------
# Fallbacks
# ----------------------------------------------------------------------


def _decode_text(probe_input: ProbeInput) -> ProbeMatch:
    text = probe_input.payload.decode("utf-8")
    if has_control_chars(probe_input.payload):
        return ProbeMatch(PayloadEncoding.UTF8_WITH_CONTROL_CHARS, probe_input.payload, text)
    return ProbeMatch(PayloadEncoding.TEXT, probe_input.payload, text)


def _decode_binary(probe_input: ProbeInput) -> Result[ProbeMatch, Exception]:
    return Ok(ProbeMatch(PayloadEncoding.BINARY, probe_input.payload, probe_input.payload))


JSON_PROBE = EncodingProbe("json", _looks_like_json, _attempting(_decode_json))
FRAMED_JSON_PROBE = EncodingProbe("framed_json", _looks_like_framed_json, _attempting(_decode_framed_json))
TEXT_PROBE = EncodingProbe("text", _always, _attempting(_decode_text))
BINARY_PROBE = EncodingProbe("binary", _always, _decode_binary)


def build_probe_chain(
    *,
    xml_converter: XmlToJson | None = None,
    avro: AvroDecoder | None = None,
    proto_registry: ProtoRegistry | None = None,
    msgpack_allowlist: MessagePackAllowlist | None = None,
    smile_decoder: SmileDecoder | None = None,
) -> tuple[EncodingProbe, ...]:
    """Assemble the ordered chain; probes without a collaborator are left out.

    Order: JSON, framed JSON, XML, framed Avro, Protobuf, MessagePack,
    Smile, text, binary. The binary probe always matches.
    """
    chain: list[EncodingProbe] = [JSON_PROBE, FRAMED_JSON_PROBE]
    if xml_converter is not None:
        chain.append(_xml_probe(xml_converter))
    if avro is not None:
        chain.append(_avro_probe(avro))
    if proto_registry is not None:
        chain.append(_protobuf_probe(proto_registry))
    if msgpack_allowlist is not None:
        chain.append(_msgpack_probe(msgpack_allowlist))
    if smile_decoder is not None:
        chain.append(_smile_probe(smile_decoder))
    chain.extend((TEXT_PROBE, BINARY_PROBE))
    return tuple(chain)


__all__ = [
    "BINARY_PROBE",
    "EncodingProbe",
    "FRAMED_JSON_PROBE",
    "JSON_PROBE",
    "ProbeInput",
    "ProbeMatch",
    "TEXT_PROBE",
    "WHITESPACE",
    "build_probe_chain",
    "framed_schema_id",
    "has_control_chars",
]
