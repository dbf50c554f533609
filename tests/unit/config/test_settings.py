"""Unit tests for settings loading."""

from __future__ import annotations

import dataclasses
import os
from typing import ClassVar

import pytest

from mp_payloads.config import (
    ConfigError,
    DotenvSettingsLoader,
    EnvSettingsLoader,
    InvalidSettingValueError,
    MissingRequiredSettingError,
    Settings,
)
from mp_payloads.serde import DeserializerSettings


@dataclasses.dataclass
class _AppSettings(Settings):
    _prefix: ClassVar[str] = "APP"

    name: str
    port: int = 8080
    ratio: float = 0.5
    debug: bool = False
    tags: list[str] = dataclasses.field(default_factory=list)


# ---------------------------------------------------------------------------
# EnvSettingsLoader
# ---------------------------------------------------------------------------


class TestEnvSettingsLoader:
    def test_defaults_apply(self) -> None:
        settings = EnvSettingsLoader({"APP_NAME": "svc"}).load(_AppSettings)
        assert settings.name == "svc"
        assert settings.port == 8080
        assert settings.tags == []

    def test_coercion(self) -> None:
        settings = EnvSettingsLoader(
            {
                "APP_NAME": "svc",
                "APP_PORT": "9000",
                "APP_RATIO": "0.25",
                "APP_DEBUG": "yes",
                "APP_TAGS": "a, b,,c",
            }
        ).load(_AppSettings)
        assert settings.port == 9000
        assert settings.ratio == 0.25
        assert settings.debug is True
        assert settings.tags == ["a", "b", "c"]

    def test_falsy_bool(self) -> None:
        settings = EnvSettingsLoader({"APP_NAME": "svc", "APP_DEBUG": "off"}).load(_AppSettings)
        assert settings.debug is False

    def test_missing_required(self) -> None:
        with pytest.raises(MissingRequiredSettingError) as exc_info:
            EnvSettingsLoader({}).load(_AppSettings)
        assert exc_info.value.setting_name == "APP_NAME"

    def test_invalid_int(self) -> None:
        with pytest.raises(InvalidSettingValueError):
            EnvSettingsLoader({"APP_NAME": "svc", "APP_PORT": "eighty"}).load(_AppSettings)

    def test_reads_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_NAME", "from-env")
        assert EnvSettingsLoader().load(_AppSettings).name == "from-env"


# ---------------------------------------------------------------------------
# DotenvSettingsLoader
# ---------------------------------------------------------------------------


class TestDotenvSettingsLoader:
    def test_loads_env_file(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("APP_NAME", raising=False)
        monkeypatch.delenv("APP_PORT", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("APP_NAME=dotenv-svc\nAPP_PORT=7000\n")
        try:
            settings = DotenvSettingsLoader(str(env_file)).load(_AppSettings)
        finally:
            os.environ.pop("APP_NAME", None)
            os.environ.pop("APP_PORT", None)
        assert settings.name == "dotenv-svc"
        assert settings.port == 7000

    def test_existing_environment_wins_without_override(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_NAME", "already-set")
        env_file = tmp_path / ".env"
        env_file.write_text("APP_NAME=dotenv-svc\n")
        settings = DotenvSettingsLoader(str(env_file)).load(_AppSettings)
        assert settings.name == "already-set"


# ---------------------------------------------------------------------------
# DeserializerSettings
# ---------------------------------------------------------------------------


class TestDeserializerSettings:
    def test_defaults(self) -> None:
        settings = DeserializerSettings()
        assert settings.msgpack_allowed_topics == []
        assert settings.parse_java_to_json is False
        assert settings.java_max_depth == 7
        assert settings.java_max_string_length == 4000
        assert settings.java_max_block_size == 0
        assert settings.java_max_nodes == 100_000
        assert settings.schema_cache_miss_ttl == 30.0

    def test_loaded_from_prefixed_environment(self) -> None:
        settings = EnvSettingsLoader(
            {
                "PAYLOADS_MSGPACK_ALLOWED_TOPICS": "metrics,events.*",
                "PAYLOADS_PARSE_JAVA_TO_JSON": "true",
                "PAYLOADS_JAVA_EXCLUDED_TOPICS": "legacy",
                "PAYLOADS_JAVA_MAX_DEPTH": "3",
            }
        ).load(DeserializerSettings)
        assert settings.msgpack_allowed_topics == ["metrics", "events.*"]
        assert settings.parse_java_to_json is True
        assert settings.java_excluded_topics == ["legacy"]
        assert settings.java_max_depth == 3

    def test_negative_depth_rejected(self) -> None:
        with pytest.raises(InvalidSettingValueError):
            DeserializerSettings(java_max_depth=-1)

    def test_negative_ttl_rejected_through_loader(self) -> None:
        with pytest.raises(ConfigError):
            EnvSettingsLoader({"PAYLOADS_SCHEMA_CACHE_MISS_TTL": "-5"}).load(DeserializerSettings)
