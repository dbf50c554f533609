"""Serde – Base64JavaCodec: base64 text carrying a Java serialization stream."""
from __future__ import annotations

import base64
import binascii
import dataclasses
from typing import Any

from mp_payloads.serde.encoding import canonical_json
from mp_payloads.serde.errors import JavaDecodeError, JavaStreamError
from mp_payloads.serde.java import parse_serialized_object, to_plain
from mp_payloads.serde.java.plain import DEFAULT_MAX_NODES
from mp_payloads.serde.settings import DeserializerSettings

DEFAULT_MAX_DEPTH = 7
DEFAULT_MAX_STRING_LENGTH = 4000


@dataclasses.dataclass(frozen=True)
class JavaPayload:
    """Decoded Java payload.

    ``value`` is the parsed object graph, ``plain`` its truncated
    JSON-shaped form and ``normalized`` the canonical JSON bytes of
    ``plain``.
    """

    value: Any
    plain: Any
    normalized: bytes


def _invalid_stream(exc: JavaStreamError) -> JavaDecodeError:
    return JavaDecodeError(
        f"invalid Java serialization stream: {exc.message}",
        payload_type="java",
        detail=exc.detail,
        cause=exc,
    )


class Base64JavaCodec:
    """Decode base64 text holding ``ObjectOutputStream`` output.

    Line breaks inside the base64 text are ignored; any other non-alphabet
    character rejects the payload.
    """

    def __init__(
        self,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_string_length: int = DEFAULT_MAX_STRING_LENGTH,
        max_block_size: int | None = None,
        max_nodes: int = DEFAULT_MAX_NODES,
    ) -> None:
        self._max_depth = max_depth
        self._max_string_length = max_string_length
        self._max_block_size = max_block_size
        self._max_nodes = max_nodes

    @classmethod
    def from_settings(cls, settings: DeserializerSettings) -> Base64JavaCodec:
        return cls(
            max_depth=settings.java_max_depth,
            max_string_length=settings.java_max_string_length,
            max_block_size=settings.java_max_block_size or None,
            max_nodes=settings.java_max_nodes,
        )

    def _stream_bytes(self, payload: bytes) -> bytes:
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise JavaDecodeError("payload is not UTF-8 text", payload_type="java", cause=exc) from exc
        compact = text.replace("\r", "").replace("\n", "")
        try:
            return base64.b64decode(compact, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise JavaDecodeError("payload is not valid base64", payload_type="java", cause=exc) from exc

    def parse(self, payload: bytes) -> Any:
        """Base64-decode and parse *payload* into a Java object graph."""
        raw = self._stream_bytes(payload)
        try:
            return parse_serialized_object(raw, max_block_size=self._max_block_size)
        except JavaStreamError as exc:
            raise _invalid_stream(exc) from exc

    def decode(self, payload: bytes) -> JavaPayload:
        value = self.parse(payload)
        try:
            plain = to_plain(
                value,
                max_depth=self._max_depth,
                max_string_length=self._max_string_length,
                max_nodes=self._max_nodes,
            )
        except JavaStreamError as exc:
            raise _invalid_stream(exc) from exc
        try:
            normalized = canonical_json(plain)
        except (TypeError, ValueError) as exc:
            raise JavaDecodeError("decoded Java value is not JSON serializable", payload_type="java", cause=exc) from exc
        return JavaPayload(value=value, plain=plain, normalized=normalized)


def parse_base64_to_object(payload: bytes | str, **options: Any) -> Any:
    """Parse base64 Java serialization text into an object graph."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return Base64JavaCodec(**options).parse(payload)


def parse_base64_to_json(payload: bytes | str, **options: Any) -> bytes:
    """Parse base64 Java serialization text into canonical JSON bytes."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return Base64JavaCodec(**options).decode(payload).normalized


__all__ = [
    "Base64JavaCodec",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_MAX_STRING_LENGTH",
    "JavaPayload",
    "parse_base64_to_object",
    "parse_base64_to_json",
]
