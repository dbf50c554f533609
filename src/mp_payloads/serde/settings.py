"""Serde – DeserializerSettings."""
from __future__ import annotations

import dataclasses
from typing import ClassVar

from mp_payloads.config.settings import Settings
from mp_payloads.config.validation import InvalidSettingValueError


@dataclasses.dataclass
class DeserializerSettings(Settings):
    """Tunables of the payload deserializer.

    Loaded from ``PAYLOADS_*`` environment variables by
    :class:`~mp_payloads.config.EnvSettingsLoader`.
    """

    _prefix: ClassVar[str] = "PAYLOADS"

    msgpack_allowed_topics: list[str] = dataclasses.field(default_factory=list)
    parse_java_to_json: bool = False
    java_excluded_topics: list[str] = dataclasses.field(default_factory=list)
    java_max_depth: int = 7
    java_max_string_length: int = 4000
    # 0 bounds every length field by the size of the payload itself
    java_max_block_size: int = 0
    # 0 lets a decoded Java graph expand without bound
    java_max_nodes: int = 100_000
    schema_cache_miss_ttl: float = 30.0

    def _validate(self) -> None:
        for name in ("java_max_depth", "java_max_string_length", "java_max_block_size", "java_max_nodes"):
            value = getattr(self, name)
            if value < 0:
                raise InvalidSettingValueError(name, value, "must not be negative")
        if self.schema_cache_miss_ttl < 0:
            raise InvalidSettingValueError("schema_cache_miss_ttl", self.schema_cache_miss_ttl, "must not be negative")


__all__ = ["DeserializerSettings"]
