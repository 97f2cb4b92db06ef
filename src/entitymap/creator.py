# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Entity creation: walk a definition's fields against a value reader.

``EntityCreator`` builds one entity class. Nested and collection fields
call back into ``EntityCreator.build`` so the whole tree shares one
creation context, one cache and one set of listeners.

``EntityMapper`` is the facade most callers want: it owns configuration,
the instance cache and listeners, and builds any entity class.

While a field is evaluated, ``entity_class`` and ``entity_field`` are bound
in ``structlog.contextvars`` so every log record can be attributed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol, TypeVar, runtime_checkable

import structlog

from .cache import CacheKey, EntityCache, cache_key
from .config import EngineConfig
from .context import DEFAULT_MAX_DEPTH, EntityCreationContext
from .definition import EntityDefinition, FieldDescriptor, get_definition
from .errors import EntityMapError, FieldScrapeError, ValueReaderError
from .reader import ValueReader

logger = logging.getLogger(__name__)

E = TypeVar("E")


@runtime_checkable
class EntityCreationListener(Protocol):
    """Observer of entity construction. Exceptions raised here propagate."""

    def on_entity_creation_started(self, entity_class: type) -> None: ...

    def on_entity_created(self, instance: Any) -> None: ...


# ---------------------------------------------------------------------------
# Creator
# ---------------------------------------------------------------------------


class EntityCreator:
    def __init__(
        self,
        definition: EntityDefinition,
        *,
        cache: EntityCache | None = None,
        use_cache: bool = False,
        listeners: Iterable[EntityCreationListener] = (),
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._definition = definition
        self._cache = cache
        self._use_cache = use_cache
        self._listeners = tuple(listeners)
        self._max_depth = max_depth

    @property
    def definition(self) -> EntityDefinition:
        return self._definition

    def create(self, reader: ValueReader, context: EntityCreationContext | None = None) -> Any:
        """Build the entity, or return the cached instance for this page.

        A cache hit returns the stored instance without reading any field
        and without notifying listeners.
        """
        if context is None:
            context = EntityCreationContext(self._definition.entity_class, max_depth=self._max_depth)

        key = self._cache_key(reader)
        if key is None or self._cache is None:
            return self._create_new(reader, context)
        return self._cache.get_or_create(key, lambda: self._create_new(reader, context))

    def build(
        self,
        entity_class: type,
        reader: ValueReader,
        context: EntityCreationContext,
        *,
        use_cache: bool,
    ) -> Any:
        """Build a nested entity with this creator's cache and listeners."""
        nested = EntityCreator(
            get_definition(entity_class),
            cache=self._cache,
            use_cache=use_cache,
            listeners=self._listeners,
            max_depth=self._max_depth,
        )
        return nested.create(reader, context)

    def _cache_key(self, reader: ValueReader) -> CacheKey | None:
        if self._cache is None or not self._use_cache:
            return None
        try:
            url = reader.get_current_url()
        except ValueReaderError as e:
            logger.debug("No cache key for %s: %s", self._definition.entity_class.__qualname__, e)
            return None
        if not url:
            return None
        return cache_key(self._definition.entity_class, url)

    def _create_new(self, reader: ValueReader, context: EntityCreationContext) -> Any:
        entity_class = self._definition.entity_class
        with context.entity(entity_class), structlog.contextvars.bound_contextvars(
            entity_class=entity_class.__qualname__
        ):
            for listener in self._listeners:
                listener.on_entity_creation_started(entity_class)

            instance = entity_class()
            for descriptor in self._definition.fields:
                self._populate(descriptor, instance, reader, context)

            for listener in self._listeners:
                listener.on_entity_created(instance)
            logger.debug("Created %s at %s", entity_class.__qualname__, context.get_context())
            return instance

    def _populate(
        self,
        descriptor: FieldDescriptor,
        instance: Any,
        reader: ValueReader,
        context: EntityCreationContext,
    ) -> None:
        with context.field(descriptor), structlog.contextvars.bound_contextvars(entity_field=descriptor.name):
            try:
                value = descriptor.evaluator.evaluate(reader, context, self)
                descriptor.bind(instance, value)
            except FieldScrapeError:
                raise
            except EntityMapError as e:
                path = context.get_context()
                with structlog.contextvars.bound_contextvars(entity_path=path):
                    logger.error("Failed to scrape %s: %s", path, e)
                raise FieldScrapeError(f"Failed to scrape field {descriptor.name}: {e}", path=path, cause=e) from e


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


class EntityMapper:
    """Builds entities with shared configuration, cache and listeners.

    ``use_cache=None`` on ``create`` follows the class's ``@cacheable``
    opt-in. With ``cache_enabled`` off in the config no cache is consulted.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        cache: EntityCache | None = None,
        listeners: Iterable[EntityCreationListener] = (),
    ) -> None:
        self.config = config if config is not None else EngineConfig.from_env()
        if not self.config.cache_enabled:
            self.cache = None
        else:
            self.cache = cache if cache is not None else self.config.build_cache()
        self._listeners = list(listeners)

    def add_listener(self, listener: EntityCreationListener) -> None:
        self._listeners.append(listener)

    def creator(self, entity_class: type, *, use_cache: bool | None = None) -> EntityCreator:
        definition = get_definition(entity_class)
        return EntityCreator(
            definition,
            cache=self.cache,
            use_cache=definition.cacheable if use_cache is None else use_cache,
            listeners=self._listeners,
            max_depth=self.config.max_depth,
        )

    def create(
        self,
        entity_class: type[E],
        reader: ValueReader,
        *,
        use_cache: bool | None = None,
        context: EntityCreationContext | None = None,
    ) -> E:
        return self.creator(entity_class, use_cache=use_cache).create(reader, context)

    def describe(self, entity_class: type) -> list[tuple[str, str]]:
        return get_definition(entity_class).describe()

    def clear_cache(self) -> None:
        if self.cache is not None:
            self.cache.clear()


def create_entity(
    entity_class: type[E],
    reader: ValueReader,
    *,
    cache: EntityCache | None = None,
    use_cache: bool | None = None,
    listeners: Iterable[EntityCreationListener] = (),
    context: EntityCreationContext | None = None,
    config: EngineConfig | None = None,
) -> E:
    """One-shot build. Caches only when ``cache`` is given."""
    definition = get_definition(entity_class)
    max_depth = config.max_depth if config is not None else DEFAULT_MAX_DEPTH
    if config is not None and not config.cache_enabled:
        cache = None
    creator = EntityCreator(
        definition,
        cache=cache,
        use_cache=definition.cacheable if use_cache is None else use_cache,
        listeners=listeners,
        max_depth=max_depth,
    )
    return creator.create(reader, context)
