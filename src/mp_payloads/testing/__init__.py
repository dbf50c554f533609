"""Testing support – Java stream writer and in-memory fakes.

Usage in tests::

    from mp_payloads.testing import JavaStreamWriter, InMemorySchemaRegistry
"""

from mp_payloads.testing.fakes import (
    FakeMonotonicClock,
    FakeProtoRegistry,
    FakeSmileDecoder,
    InMemorySchemaRegistry,
    smile_payload,
)
from mp_payloads.testing.java_stream import ClassSpec, FieldSpec, JavaStreamWriter

__all__ = [
    "ClassSpec",
    "FakeMonotonicClock",
    "FakeProtoRegistry",
    "FakeSmileDecoder",
    "FieldSpec",
    "InMemorySchemaRegistry",
    "JavaStreamWriter",
    "smile_payload",
]
