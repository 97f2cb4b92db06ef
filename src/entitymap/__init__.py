# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""EntityMap: declarative extraction of typed entities from web pages.

Fields of a plain data class declare where their value comes from and how
it is refined::

    @dataclass
    class Product:
        title: Annotated[str, ExtractValue("//h1")] = ""
        price: Annotated[Decimal, RegexExtractValue(ExtractValue("//*[@class='price']"), r"(?P<value>[\\d.]+)")] = Decimal(0)

    product = EntityMapper().create(Product, HtmlValueReader(HtmlSession.from_html(page)))

Readers: ``html`` (lxml + httpx) and ``playwright_reader`` (Chromium).
"""

from __future__ import annotations

from .cache import CacheStats, EntityCache, InMemoryEntityCache, LRUEntityCache
from .config import EngineConfig
from .context import EntityCreationContext
from .converters import ValueConverter, register_converter
from .creator import EntityCreationListener, EntityCreator, EntityMapper, create_entity
from .definition import EntityDefinition, FieldDescriptor, clear_definitions, get_definition
from .errors import (
    BindingError,
    ConversionError,
    ElementNotFoundError,
    EntityDefinitionError,
    EntityMapError,
    EntityRecursionError,
    ExtractionError,
    FieldDefinitionError,
    FieldScrapeError,
    RegexError,
    ValueMappingError,
    ValueReaderError,
)
from .reader import ElementHandle, ElementValueReader, ValueReader
from .rules import (
    CollectionIndex,
    ConditionalConstant,
    ConditionalExtractFromUrl,
    ConditionalExtractValue,
    Constant,
    Conversion,
    ExtractCurrentUrl,
    ExtractFromUrl,
    ExtractValue,
    MappedCollection,
    RegexExtractCurrentUrl,
    RegexExtractValue,
    Transformation,
    cacheable,
)
from .transformers import TransformationFunction

__version__ = "0.3.0"

__all__ = [
    "BindingError",
    "CacheStats",
    "CollectionIndex",
    "ConditionalConstant",
    "ConditionalExtractFromUrl",
    "ConditionalExtractValue",
    "Constant",
    "Conversion",
    "ConversionError",
    "ElementHandle",
    "ElementNotFoundError",
    "ElementValueReader",
    "EngineConfig",
    "EntityCache",
    "EntityCreationContext",
    "EntityCreationListener",
    "EntityCreator",
    "EntityDefinition",
    "EntityDefinitionError",
    "EntityMapError",
    "EntityMapper",
    "EntityRecursionError",
    "ExtractCurrentUrl",
    "ExtractFromUrl",
    "ExtractValue",
    "ExtractionError",
    "FieldDefinitionError",
    "FieldDescriptor",
    "FieldScrapeError",
    "InMemoryEntityCache",
    "LRUEntityCache",
    "MappedCollection",
    "RegexError",
    "RegexExtractCurrentUrl",
    "RegexExtractValue",
    "Transformation",
    "TransformationFunction",
    "ValueConverter",
    "ValueMappingError",
    "ValueReader",
    "ValueReaderError",
    "__version__",
    "cacheable",
    "clear_definitions",
    "create_entity",
    "get_definition",
    "register_converter",
]
