"""Serde – default codec implementations backed by third-party libraries."""
from __future__ import annotations

import io
import json
from typing import Any

import fastavro
import msgpack
import xmltodict

from mp_payloads.serde.encoding import dumps_json
from mp_payloads.serde.errors import PayloadDecodeError
from mp_payloads.serde.ports import SchemaRegistry, SmileDecoder, XmlToJson
from mp_payloads.serde.registry import SnapshotCache

SMILE_HEADER = b":)\n"


def _require_pysmile() -> Any:
    try:
        import pysmile  # type: ignore[import-untyped]
        return pysmile
    except ImportError as exc:
        raise ImportError("Install 'mp-payloads[smile]' to decode Smile payloads") from exc


class XmlToDictConverter(XmlToJson):
    """XML → JSON through ``xmltodict`` (attributes keep the ``@`` prefix)."""

    def convert(self, payload: bytes) -> bytes:
        document = xmltodict.parse(payload, disable_entities=True)
        return dumps_json(document)


class PySmileDecoder(SmileDecoder):
    """Smile decoding through ``pysmile``."""

    def decode(self, payload: bytes) -> Any:
        pysmile = _require_pysmile()
        return pysmile.decode(payload)


def decode_msgpack(payload: bytes) -> Any:
    """Decode exactly one MessagePack document; trailing bytes are an error."""
    return msgpack.unpackb(payload, raw=False, strict_map_key=False)


class AvroDecoder:
    """Schemaless Avro binary decoding with schemas fetched by id.

    Parsed schemas are cached per id; the registry itself decides how raw
    schema lookups are cached.
    """

    def __init__(self, registry: SchemaRegistry) -> None:
        self._registry = registry
        self._parsed: SnapshotCache[int, Any] = SnapshotCache()

    def _schema(self, schema_id: int) -> Any:
        cached = self._parsed.get(schema_id)
        if cached.is_some():
            return cached.unwrap()
        schema_json = self._registry.get_avro_schema_by_id(schema_id)
        parsed = fastavro.parse_schema(json.loads(schema_json))
        return self._parsed.put(schema_id, parsed)

    def decode(self, schema_id: int, body: bytes) -> Any:
        schema = self._schema(schema_id)
        buffer = io.BytesIO(body)
        record = fastavro.schemaless_reader(buffer, schema)
        if buffer.tell() != len(body):
            raise PayloadDecodeError(
                f"avro record consumed {buffer.tell()} of {len(body)} bytes",
                payload_type="avro",
                detail={"schema_id": schema_id},
            )
        return record


__all__ = [
    "AvroDecoder",
    "PySmileDecoder",
    "SMILE_HEADER",
    "XmlToDictConverter",
    "decode_msgpack",
]
