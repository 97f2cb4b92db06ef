# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Engine configuration with ENTITYMAP_* environment overrides.

Environment variables:
    ENTITYMAP_CACHE          1/true/yes enables the instance cache (default on)
    ENTITYMAP_CACHE_MAX      max cached entities, 0 = unbounded (default 256)
    ENTITYMAP_CACHE_TTL      seconds before a cached entity expires, 0 = never
    ENTITYMAP_MAX_DEPTH      nested entity depth limit (default 32)
    ENTITYMAP_LOG_LEVEL      root log level (default INFO)
    ENTITYMAP_JSON_LOGS      1/true/yes for JSON log lines
    ENTITYMAP_HTTP_TIMEOUT   seconds per HTTP request (default 30)
    ENTITYMAP_USER_AGENT     User-Agent for the HTTP session

Invalid numeric values are ignored and the default is kept.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass, replace

from .cache import EntityCache, InMemoryEntityCache, LRUEntityCache
from .context import DEFAULT_MAX_DEPTH

DEFAULT_USER_AGENT = "entitymap/0.3 (+https://github.com/Retio-ai)"

_TRUTHY = ("1", "true", "yes")
_FALSY = ("0", "false", "no")


@dataclass(frozen=True, slots=True)
class EngineConfig:
    cache_enabled: bool = True
    cache_max_entries: int = 256
    cache_ttl: float = 0.0
    max_depth: int = DEFAULT_MAX_DEPTH
    log_level: str = "INFO"
    json_logs: bool = False
    http_timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineConfig:
        env = os.environ if environ is None else environ
        config = cls()

        env_cache = env.get("ENTITYMAP_CACHE", "").strip().lower()
        if env_cache in _TRUTHY:
            config = replace(config, cache_enabled=True)
        elif env_cache in _FALSY:
            config = replace(config, cache_enabled=False)

        env_max = env.get("ENTITYMAP_CACHE_MAX", "").strip()
        if env_max:
            with suppress(ValueError):
                config = replace(config, cache_max_entries=max(0, int(env_max)))

        env_ttl = env.get("ENTITYMAP_CACHE_TTL", "").strip()
        if env_ttl:
            with suppress(ValueError):
                config = replace(config, cache_ttl=max(0.0, float(env_ttl)))

        env_depth = env.get("ENTITYMAP_MAX_DEPTH", "").strip()
        if env_depth:
            with suppress(ValueError):
                config = replace(config, max_depth=max(1, int(env_depth)))

        env_level = env.get("ENTITYMAP_LOG_LEVEL", "").strip().upper()
        if env_level:
            config = replace(config, log_level=env_level)

        env_json = env.get("ENTITYMAP_JSON_LOGS", "").strip().lower()
        config = replace(config, json_logs=config.json_logs or env_json in _TRUTHY)

        env_timeout = env.get("ENTITYMAP_HTTP_TIMEOUT", "").strip()
        if env_timeout:
            with suppress(ValueError):
                config = replace(config, http_timeout=float(env_timeout))

        env_ua = env.get("ENTITYMAP_USER_AGENT", "").strip()
        if env_ua:
            config = replace(config, user_agent=env_ua)

        return config

    def build_cache(self) -> EntityCache | None:
        """Cache matching this configuration; None when caching is disabled."""
        if not self.cache_enabled:
            return None
        if self.cache_max_entries == 0 and self.cache_ttl == 0:
            return InMemoryEntityCache()
        return LRUEntityCache(max_entries=self.cache_max_entries, ttl=self.cache_ttl)
