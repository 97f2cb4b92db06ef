# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Entity creation context: the breadcrumb stack of one root build.

One context is created per root ``create`` call and passed by reference
through every nested and collection build. It serves two purposes:

- diagnostics: ``get_context()`` renders ``Order->lines[2]->price``
- relative indexing: ``existing_index`` is the position of the collection
  item currently being built, read by ``CollectionIndex`` fields

It also tracks entity nesting depth so runaway self-referencing
definitions fail with ``EntityRecursionError`` instead of a stack overflow.

Not thread-safe. Concurrent builds use separate contexts.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import EntityRecursionError

if TYPE_CHECKING:
    from .definition import FieldDescriptor

DEFAULT_MAX_DEPTH = 32


@dataclass(slots=True)
class Breadcrumb:
    """One frame of the path: a field, plus the item index inside it."""

    field_name: str
    collection_index: int | None = None

    def render(self) -> str:
        if self.collection_index is None:
            return self.field_name
        return f"{self.field_name}[{self.collection_index}]"


class EntityCreationContext:
    def __init__(self, root_class: type, *, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._root_class = root_class
        self._max_depth = max_depth
        self._breadcrumbs: list[Breadcrumb] = []
        self._collection_indices: list[int] = []
        self._entities: list[type] = []

    @property
    def root_class(self) -> type:
        return self._root_class

    @property
    def breadcrumbs(self) -> tuple[Breadcrumb, ...]:
        return tuple(self._breadcrumbs)

    @property
    def depth(self) -> int:
        return len(self._entities)

    # -- field frames -------------------------------------------------------

    def process_field(self, descriptor: FieldDescriptor) -> None:
        self._breadcrumbs.append(Breadcrumb(descriptor.name))

    def field_process_complete(self) -> None:
        if self._breadcrumbs:
            self._breadcrumbs.pop()

    @contextmanager
    def field(self, descriptor: FieldDescriptor) -> Iterator[Breadcrumb]:
        self.process_field(descriptor)
        try:
            yield self._breadcrumbs[-1]
        finally:
            self.field_process_complete()

    # -- collections --------------------------------------------------------

    def start_collection(self) -> None:
        self._collection_indices.append(-1)

    def process_collection_item(self) -> None:
        """Advance to the next item: bumps the field frame and the live index."""
        if self._breadcrumbs:
            top = self._breadcrumbs[-1]
            top.collection_index = 0 if top.collection_index is None else top.collection_index + 1
        if self._collection_indices:
            self._collection_indices[-1] += 1

    def end_collection(self) -> None:
        if self._collection_indices:
            self._collection_indices.pop()

    @contextmanager
    def collection(self) -> Iterator[None]:
        self.start_collection()
        try:
            yield
        finally:
            self.end_collection()

    @property
    def existing_index(self) -> int | None:
        """Index of the collection item being built, or None outside a collection."""
        if not self._collection_indices:
            return None
        index = self._collection_indices[-1]
        return index if index >= 0 else None

    # -- nesting ------------------------------------------------------------

    @contextmanager
    def entity(self, entity_class: type) -> Iterator[None]:
        if len(self._entities) >= self._max_depth:
            raise EntityRecursionError(
                f"Entity nesting deeper than {self._max_depth} while building "
                f"{entity_class.__qualname__} at {self.get_context()}",
                depth=len(self._entities),
            )
        self._entities.append(entity_class)
        try:
            yield
        finally:
            self._entities.pop()

    # -- rendering ----------------------------------------------------------

    def get_context(self) -> str:
        parts = [self._root_class.__qualname__]
        parts.extend(b.render() for b in self._breadcrumbs)
        return "->".join(parts)

    def __repr__(self) -> str:
        return f"EntityCreationContext({self.get_context()!r})"
