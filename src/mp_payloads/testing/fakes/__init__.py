"""Testing fakes – in-memory doubles for serde ports."""
from mp_payloads.testing.fakes.clock import FakeMonotonicClock
from mp_payloads.testing.fakes.registry import FakeProtoRegistry, InMemorySchemaRegistry
from mp_payloads.testing.fakes.smile import FakeSmileDecoder, smile_payload

__all__ = [
    "FakeMonotonicClock",
    "FakeProtoRegistry",
    "FakeSmileDecoder",
    "InMemorySchemaRegistry",
    "smile_payload",
]
