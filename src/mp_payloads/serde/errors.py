"""Serde errors – failures raised by decoders and collaborators.

Hierarchy::

    SerializationError
    └── PayloadDecodeError
        ├── JavaStreamError
        │   ├── UnknownTypeCodeError
        │   ├── BlockSizeExceededError
        │   ├── UnsupportedClassFlagsError
        │   └── GraphTooLargeError
        ├── JavaDecodeError
        └── ConsumerOffsetsError
    ExternalServiceError
    └── SchemaNotFoundError
"""

from __future__ import annotations

from typing import Any

from mp_payloads.kernel.errors import ExternalServiceError, SerializationError


class PayloadDecodeError(SerializationError):
    """A payload could not be decoded with the attempted format."""

    default_code = "payload_decode_error"


class JavaStreamError(PayloadDecodeError):
    """The byte stream violates the Java Object Serialization protocol."""

    default_code = "java_stream_error"

    def __init__(self, message: str, *, position: int | None = None, **kwargs: Any) -> None:
        detail = kwargs.pop("detail", None) or {}
        if position is not None:
            detail.setdefault("position", position)
        super().__init__(message, payload_type="java", detail=detail, **kwargs)
        self.position = position


class UnknownTypeCodeError(JavaStreamError):
    """A tag byte outside the known ``TC_*`` range was read."""

    default_code = "java_unknown_type_code"

    def __init__(self, type_code: int, *, position: int | None = None) -> None:
        super().__init__(f"unknown type {type_code:#x}", position=position, detail={"type_code": type_code})
        self.type_code = type_code


class BlockSizeExceededError(JavaStreamError):
    """A declared length is larger than the configured maximum block size."""

    default_code = "java_block_size_exceeded"

    def __init__(self, size: int, max_size: int, *, position: int | None = None) -> None:
        super().__init__(
            f"block data of {size} bytes exceeds the maximum block size of {max_size} bytes",
            position=position,
            detail={"size": size, "max_size": max_size},
        )
        self.size = size
        self.max_size = max_size


class UnsupportedClassFlagsError(JavaStreamError):
    """The class uses a serialization mechanism the parser cannot read."""

    default_code = "java_unsupported_class_flags"

    def __init__(self, class_name: str, flags: int, reason: str | None = None) -> None:
        super().__init__(
            reason or f"unable to deserialize class '{class_name}' with flags {flags:#x}",
            detail={"class_name": class_name, "flags": flags},
        )
        self.class_name = class_name
        self.flags = flags


class GraphTooLargeError(JavaStreamError):
    """A decoded object graph expands to more values than the node budget allows.

    Back-references let a small stream describe a graph whose tree form is
    exponentially large; conversion stops once the budget is spent.
    """

    default_code = "java_graph_too_large"

    def __init__(self, max_nodes: int) -> None:
        super().__init__(
            f"decoded object graph exceeds {max_nodes} values",
            detail={"max_nodes": max_nodes},
        )
        self.max_nodes = max_nodes


class JavaDecodeError(PayloadDecodeError):
    """A payload is not a base64-encoded Java serialization stream."""

    default_code = "java_decode_error"


class ConsumerOffsetsError(PayloadDecodeError):
    """A ``__consumer_offsets`` record has an unknown or malformed layout."""

    default_code = "consumer_offsets_error"


class SchemaNotFoundError(ExternalServiceError):
    """The schema registry has no schema for the requested id."""

    default_code = "schema_not_found"

    def __init__(self, schema_id: int, message: str | None = None, **kwargs: Any) -> None:
        super().__init__("schema-registry", message or f"schema {schema_id} not found", **kwargs)
        self.schema_id = schema_id


__all__ = [
    "BlockSizeExceededError",
    "ConsumerOffsetsError",
    "GraphTooLargeError",
    "JavaDecodeError",
    "JavaStreamError",
    "PayloadDecodeError",
    "SchemaNotFoundError",
    "UnknownTypeCodeError",
    "UnsupportedClassFlagsError",
]
