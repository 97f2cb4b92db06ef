# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Entity instance cache keyed by (entity class, page URL).

Opt-in: only consulted for classes decorated with ``@cacheable`` (or when a
caller forces ``use_cache=True``) and only when a cache is injected.

Two implementations of ``EntityCache``:
- ``InMemoryEntityCache``: unbounded, entries live as long as the cache
- ``LRUEntityCache``: bounded by entry count and optional TTL

Both are thread-safe. ``get_or_create`` holds a per-key lock while the
factory runs, so racing threads build an entity once. The lock is
re-entrant: a nested build of the same key on the same thread proceeds
(the depth guard in the creation context stops real cycles).

Pure Python module. No entitymap imports.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable
from urllib.parse import parse_qsl, urlparse, urlunparse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


def normalize_cache_url(url: str) -> str:
    """Lowercase scheme/netloc and sort query params. Path case and fragment are kept."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    params = parse_qsl(parsed.query, keep_blank_values=True)
    sorted_query = "&".join(f"{k}={v}" for k, v in sorted(params))
    return urlunparse(
        (parsed.scheme.lower(), parsed.netloc.lower(), parsed.path, parsed.params, sorted_query, parsed.fragment)
    )


@dataclass(frozen=True, slots=True)
class CacheKey:
    entity_class: str
    url: str

    def __str__(self) -> str:
        return f"{self.entity_class}:@:{self.url}"


def cache_key(entity_class: type, url: str) -> CacheKey:
    return CacheKey(f"{entity_class.__module__}.{entity_class.__qualname__}", normalize_cache_url(url))


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@dataclass
class CacheStats:
    """Counters for cache behaviour, used for logging and the CLI."""

    hits: int = 0
    misses: int = 0
    stores: int = 0
    evictions: int = 0
    ttl_expirations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class EntityCache(Protocol):
    def get(self, key: CacheKey) -> Any | None: ...

    def put(self, key: CacheKey, value: Any) -> None: ...

    def get_or_create(self, key: CacheKey, factory: Callable[[], Any]) -> Any: ...

    def clear(self) -> None: ...

    def __len__(self) -> int: ...


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------


@dataclass
class _Entry:
    value: Any
    created_at: float  # time.monotonic()

    def is_expired(self, ttl: float) -> bool:
        return ttl > 0 and (time.monotonic() - self.created_at) > ttl


@dataclass
class _KeyLock:
    """Per-key build lock; dropped when the last holder or waiter leaves."""

    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


class LRUEntityCache:
    """Bounded LRU. ``max_entries=0`` means unbounded, ``ttl=0`` means no expiry."""

    def __init__(self, max_entries: int = 256, ttl: float = 0.0) -> None:
        self._max_entries = max_entries
        self._ttl = ttl
        self._entries: OrderedDict[CacheKey, _Entry] = OrderedDict()
        self._lock = threading.Lock()
        self._key_locks: dict[CacheKey, _KeyLock] = {}
        self._stats = CacheStats()

    # -- Lookup --

    def _lookup(self, key: CacheKey) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._ttl):
            del self._entries[key]
            self._stats.ttl_expirations += 1
            logger.debug("Entity cache TTL expired: %s", key)
            return None
        self._entries.move_to_end(key)
        return entry

    def get(self, key: CacheKey) -> Any | None:
        with self._lock:
            entry = self._lookup(key)
            if entry is None:
                self._stats.misses += 1
                return None
            self._stats.hits += 1
            return entry.value

    # -- Store --

    def put(self, key: CacheKey, value: Any) -> None:
        with self._lock:
            self._entries[key] = _Entry(value, time.monotonic())
            self._entries.move_to_end(key)
            self._stats.stores += 1
            while self._max_entries > 0 and len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._stats.evictions += 1
                logger.debug("Entity cache eviction: %s", evicted)
        logger.debug("Entity cache store: %s size=%d", key, len(self._entries))

    def get_or_create(self, key: CacheKey, factory: Callable[[], Any]) -> Any:
        """Cached value for ``key``, or ``factory()`` stored under it.

        ``factory`` runs at most once per key across racing threads; if it
        raises, nothing is stored and the error propagates.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        with self._lock:
            key_lock = self._key_locks.setdefault(key, _KeyLock())
            key_lock.users += 1
        try:
            with key_lock.lock:
                with self._lock:
                    entry = self._lookup(key)
                if entry is not None:
                    return entry.value
                value = factory()
                self.put(key, value)
                return value
        finally:
            with self._lock:
                key_lock.users -= 1
                if key_lock.users == 0:
                    del self._key_locks[key]

    # -- Invalidation --

    def invalidate(self, key: CacheKey) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Entity cache cleared")

    # -- Introspection --

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


class InMemoryEntityCache(LRUEntityCache):
    """Unbounded cache, no expiry."""

    def __init__(self) -> None:
        super().__init__(max_entries=0, ttl=0.0)
