"""conftest.py for benchmarks.

The deserializer is session-scoped so probe chains and schema caches are
built once and every benchmark measures the steady state.
"""

from __future__ import annotations

import pytest

from mp_payloads.serde import DeserializerSettings, PayloadDeserializer
from mp_payloads.testing import FakeSmileDecoder, InMemorySchemaRegistry

ORDER_SCHEMA = {
    "type": "record",
    "name": "Order",
    "fields": [{"name": "id", "type": "long"}, {"name": "item", "type": "string"}],
}


@pytest.fixture(scope="session")
def deserializer() -> PayloadDeserializer:
    return PayloadDeserializer(
        DeserializerSettings(msgpack_allowed_topics=["packed"]),
        schema_registry=InMemorySchemaRegistry({7: ORDER_SCHEMA}),
        smile_decoder=FakeSmileDecoder(),
    )
