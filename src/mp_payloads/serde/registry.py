"""Serde – read-mostly shared state: topic allow-list and schema caches.

Readers never take a lock. Writers build a new snapshot under a lock and
publish it with a single attribute assignment, so a reader sees either the
old or the new snapshot, never a half-updated one.
"""
from __future__ import annotations

import fnmatch
import logging
import threading
import time
from types import MappingProxyType
from typing import Callable, Generic, Hashable, Iterable, Mapping, TypeVar

from mp_payloads.kernel.types import Nothing, Option, Some
from mp_payloads.serde.errors import SchemaNotFoundError
from mp_payloads.serde.ports import MessagePackAllowlist, SchemaRegistry

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_PATTERN_CHARS = frozenset("*?[")


class SnapshotCache(Generic[K, V]):
    """Copy-on-write mapping safe for concurrent readers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Mapping[K, V] = MappingProxyType({})

    def get(self, key: K) -> Option[V]:
        snapshot = self._snapshot
        if key in snapshot:
            return Some(snapshot[key])
        return Nothing()

    def put(self, key: K, value: V) -> V:
        with self._lock:
            updated = dict(self._snapshot)
            updated[key] = value
            self._snapshot = MappingProxyType(updated)
        return value

    def discard(self, key: K) -> None:
        with self._lock:
            if key in self._snapshot:
                updated = dict(self._snapshot)
                del updated[key]
                self._snapshot = MappingProxyType(updated)

    def __len__(self) -> int:
        return len(self._snapshot)


class TopicAllowlist(MessagePackAllowlist):
    """Allow-list of topic names; entries containing ``*?[`` are ``fnmatch`` patterns."""

    def __init__(self, topics: Iterable[str] = ()) -> None:
        self._snapshot = self._build(topics)

    @staticmethod
    def _build(topics: Iterable[str]) -> tuple[frozenset[str], tuple[str, ...]]:
        names: set[str] = set()
        patterns: list[str] = []
        for topic in topics:
            topic = topic.strip()
            if not topic:
                continue
            if _PATTERN_CHARS.intersection(topic):
                patterns.append(topic)
            else:
                names.add(topic)
        return frozenset(names), tuple(patterns)

    def replace(self, topics: Iterable[str]) -> None:
        """Atomically swap in a new set of topics."""
        self._snapshot = self._build(topics)

    def is_topic_allowed(self, topic: str) -> bool:
        names, patterns = self._snapshot
        if topic in names:
            return True
        return any(fnmatch.fnmatchcase(topic, pattern) for pattern in patterns)


class CachedSchemaRegistry(SchemaRegistry):
    """Caching decorator for a :class:`SchemaRegistry`.

    Schemas are immutable per id, so hits are kept forever. Misses (and any
    delegate failure) are remembered for ``miss_ttl`` seconds so that a
    topic full of unregistered ids does not trigger a lookup per record.
    """

    def __init__(
        self,
        delegate: SchemaRegistry,
        *,
        miss_ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._delegate = delegate
        self._miss_ttl = miss_ttl
        self._clock = clock
        self._schemas: SnapshotCache[int, str] = SnapshotCache()
        self._misses: SnapshotCache[int, float] = SnapshotCache()

    def get_avro_schema_by_id(self, schema_id: int) -> str:
        cached = self._schemas.get(schema_id)
        if cached.is_some():
            return cached.unwrap()

        missed_at = self._misses.get(schema_id)
        if missed_at.is_some() and self._clock() - missed_at.unwrap() < self._miss_ttl:
            raise SchemaNotFoundError(schema_id, detail={"cached": True})

        try:
            schema = self._delegate.get_avro_schema_by_id(schema_id)
        except Exception as exc:
            self._misses.put(schema_id, self._clock())
            logger.debug("schema_registry.lookup_failed schema_id=%d exc=%r", schema_id, exc)
            if isinstance(exc, SchemaNotFoundError):
                raise
            raise SchemaNotFoundError(schema_id, cause=exc) from exc

        self._misses.discard(schema_id)
        return self._schemas.put(schema_id, schema)


__all__ = ["CachedSchemaRegistry", "SnapshotCache", "TopicAllowlist"]
