# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""EntityMap exception hierarchy.

All entitymap-specific errors inherit from EntityMapError, allowing callers
to catch the base class for any extraction failure or specific subclasses
for targeted handling.

Definition errors are raised once, when an entity class is first resolved.
Everything else is raised while a page is being read.
"""

from __future__ import annotations


class EntityMapError(Exception):
    """Base exception for all entitymap errors."""


# ---------------------------------------------------------------------------
# Definition time
# ---------------------------------------------------------------------------


class EntityDefinitionError(EntityMapError):
    """Entity class declarations cannot be resolved into a pipeline."""

    def __init__(self, message: str, *, entity_class: type | None = None) -> None:
        super().__init__(message)
        self.entity_class = entity_class


class FieldDefinitionError(EntityDefinitionError):
    """A single field carries an invalid combination of declarations."""

    def __init__(self, message: str, *, entity_class: type | None = None, field_name: str = "") -> None:
        if field_name:
            owner = entity_class.__qualname__ if entity_class is not None else "?"
            message = f"{owner}.{field_name}: {message}"
        super().__init__(message, entity_class=entity_class)
        self.field_name = field_name


class RegexError(EntityDefinitionError):
    """A declared regular expression does not compile."""

    def __init__(self, message: str, *, pattern: str = "") -> None:
        super().__init__(message)
        self.pattern = pattern


# ---------------------------------------------------------------------------
# Read time
# ---------------------------------------------------------------------------


class ValueReaderError(EntityMapError):
    """The value reader could not answer a query."""


class ElementNotFoundError(ValueReaderError):
    """A required element is missing from the page."""

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class ExtractionError(EntityMapError):
    """Extractor selection or execution failed."""


class EntityRecursionError(ExtractionError):
    """Nested entity construction exceeded the configured depth."""

    def __init__(self, message: str, *, depth: int = 0) -> None:
        super().__init__(message)
        self.depth = depth


class ConversionError(EntityMapError):
    """A raw value could not be turned into the declared field type."""


class ValueMappingError(ConversionError):
    """A primitive mapper rejected its input."""

    def __init__(self, message: str, *, value: object = None, target: type | None = None) -> None:
        super().__init__(message)
        self.value = value
        self.target = target


class BindingError(EntityMapError):
    """A converted value could not be assigned to the entity field."""


class FieldScrapeError(EntityMapError):
    """Scraping a field failed; carries the breadcrumb path of the failure."""

    def __init__(self, message: str, *, path: str = "", cause: BaseException | None = None) -> None:
        super().__init__(f"{message} [{path}]" if path else message)
        self.path = path
        self.cause = cause
