"""Unit tests for the Confluent schema-registry adapter (mocked client)."""
from __future__ import annotations

import sys
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from mp_payloads.adapters.schema_registry import ConfluentSchemaRegistry
from mp_payloads.kernel.errors import ExternalServiceError
from mp_payloads.serde import SchemaNotFoundError

URL = "http://registry:8081"


class _RegistryError(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP {status}")
        self.http_status_code = status


def _adapter(client: MagicMock) -> ConfluentSchemaRegistry:
    return ConfluentSchemaRegistry(URL, client=client)


class TestConfluentSchemaRegistry:
    def test_returns_avro_schema_text(self) -> None:
        client = MagicMock()
        client.get_schema.return_value = SimpleNamespace(schema_str='{"type":"string"}', schema_type="AVRO")
        assert _adapter(client).get_avro_schema_by_id(5) == '{"type":"string"}'
        client.get_schema.assert_called_once_with(5)

    def test_missing_schema_type_defaults_to_avro(self) -> None:
        client = MagicMock()
        client.get_schema.return_value = SimpleNamespace(schema_str='"int"', schema_type=None)
        assert _adapter(client).get_avro_schema_by_id(1) == '"int"'

    def test_404_is_schema_not_found(self) -> None:
        client = MagicMock()
        client.get_schema.side_effect = _RegistryError(404)
        with pytest.raises(SchemaNotFoundError) as info:
            _adapter(client).get_avro_schema_by_id(9)
        assert info.value.schema_id == 9

    def test_other_failures_are_external_service_errors(self) -> None:
        client = MagicMock()
        client.get_schema.side_effect = _RegistryError(500)
        with pytest.raises(ExternalServiceError) as info:
            _adapter(client).get_avro_schema_by_id(9)
        assert not isinstance(info.value, SchemaNotFoundError)
        assert info.value.detail == {"url": URL, "status": 500}
        assert isinstance(info.value.cause, _RegistryError)

    def test_connection_error_has_no_status(self) -> None:
        client = MagicMock()
        client.get_schema.side_effect = ConnectionError("refused")
        with pytest.raises(ExternalServiceError) as info:
            _adapter(client).get_avro_schema_by_id(9)
        assert info.value.detail["status"] is None

    def test_non_avro_schema_is_not_found(self) -> None:
        client = MagicMock()
        client.get_schema.return_value = SimpleNamespace(schema_str="syntax = 'proto3';", schema_type="PROTOBUF")
        with pytest.raises(SchemaNotFoundError, match="PROTOBUF"):
            _adapter(client).get_avro_schema_by_id(3)

    def test_builds_client_from_url_and_config(self) -> None:
        client_class = MagicMock()
        module = MagicMock(SchemaRegistryClient=client_class)
        with patch.dict(sys.modules, {"confluent_kafka": MagicMock(), "confluent_kafka.schema_registry": module}):
            ConfluentSchemaRegistry(URL, **{"basic.auth.user.info": "u:p"})
        client_class.assert_called_once_with({"url": URL, "basic.auth.user.info": "u:p"})

    def test_missing_library(self) -> None:
        with patch.dict(sys.modules, {"confluent_kafka": None, "confluent_kafka.schema_registry": None}):
            with pytest.raises(ImportError, match="mp-payloads\\[schema-registry\\]"):
                ConfluentSchemaRegistry(URL)
