"""Schema-registry adapter – Confluent Schema Registry lookups."""
from mp_payloads.adapters.schema_registry.client import ConfluentSchemaRegistry

__all__ = ["ConfluentSchemaRegistry"]
