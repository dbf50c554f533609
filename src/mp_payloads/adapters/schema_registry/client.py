"""Schema-registry adapter – ConfluentSchemaRegistry."""
from __future__ import annotations

import logging
from typing import Any

from mp_payloads.kernel.errors import ExternalServiceError
from mp_payloads.serde.errors import SchemaNotFoundError
from mp_payloads.serde.ports import SchemaRegistry

logger = logging.getLogger(__name__)

_NOT_FOUND = 404


def _require_confluent_kafka() -> Any:
    try:
        from confluent_kafka.schema_registry import SchemaRegistryClient
        return SchemaRegistryClient
    except ImportError as exc:
        raise ImportError("Install 'mp-payloads[schema-registry]' to use the schema-registry adapter") from exc


class ConfluentSchemaRegistry(SchemaRegistry):
    """Fetch Avro schemas by id from a Confluent-compatible registry.

    Wrap in :class:`~mp_payloads.serde.CachedSchemaRegistry` (the
    deserializer does so automatically) to avoid one HTTP call per record.
    """

    def __init__(self, url: str, *, client: Any = None, **config: Any) -> None:
        if client is None:
            client_class = _require_confluent_kafka()
            client = client_class({"url": url, **config})
        self._client = client
        self._url = url

    def get_avro_schema_by_id(self, schema_id: int) -> str:
        try:
            schema = self._client.get_schema(schema_id)
        except Exception as exc:
            status = getattr(exc, "http_status_code", None)
            if status == _NOT_FOUND:
                raise SchemaNotFoundError(schema_id, cause=exc) from exc
            raise ExternalServiceError(
                "schema-registry",
                f"schema {schema_id} lookup failed",
                detail={"url": self._url, "status": status},
                cause=exc,
            ) from exc

        schema_type = getattr(schema, "schema_type", None) or "AVRO"
        if schema_type.upper() != "AVRO":
            raise SchemaNotFoundError(schema_id, f"schema {schema_id} is {schema_type}, not AVRO")
        logger.debug("schema_registry.fetched schema_id=%d url=%s", schema_id, self._url)
        return schema.schema_str


__all__ = ["ConfluentSchemaRegistry"]
