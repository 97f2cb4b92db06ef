# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Converters: turn a (transformed) raw value into the declared field type.

Three layers:
- primitive mappers: text -> str/int/float/bool/date/Decimal, extendable
  via ``register_converter``
- field converters: primitive, custom mapper, element-wise collection,
  and nested entity builders (from a sub-element or a derived URL)
- ``resolve_converter``: picks the field converter for a descriptor

Nested builders do not construct entities themselves; they call back into
an ``EntityBuilder`` (the running ``EntityCreator``) so cache, listeners
and the creation context are shared by the whole tree.

Dependencies: reader.py, typeinfo.py, rules.py, errors.py.
"""

from __future__ import annotations

import calendar
import datetime
import logging
import re
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from urllib.parse import urljoin

from .errors import ConversionError, FieldDefinitionError, ValueMappingError
from .reader import ElementValueReader, page_reader
from .rules import Conversion, RuleCategory
from .typeinfo import STANDARD_TYPES, TypeInfo, has_no_arg_constructor

if TYPE_CHECKING:
    from .context import EntityCreationContext
    from .definition import FieldDescriptor
    from .reader import ValueReader

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Primitive mappers
# ---------------------------------------------------------------------------

_TRUE_WORDS = frozenset({"1", "true", "yes"})

_ORDINAL_DATE = re.compile(r"(?P<day>\d{1,2})(st|nd|rd|th)\s(?P<month>\w+)\s(?P<year>\d{4})")

_MONTHS = {name.lower(): i for i, name in enumerate(calendar.month_name) if name}
_MONTHS.update({name.lower(): i for i, name in enumerate(calendar.month_abbr) if name})


def _to_str(text: str) -> str:
    return text


def _to_int(text: str) -> int:
    return int(text.strip())


def _to_float(text: str) -> float:
    return float(text.strip())


def _to_bool(text: str) -> bool:
    return text.strip().lower() in _TRUE_WORDS


def _to_decimal(text: str) -> Decimal:
    return Decimal(text.strip())


def _to_date(text: str) -> datetime.date:
    """ISO ``2023-02-28`` or ordinal ``28th February 2023``."""
    text = text.strip()
    try:
        return datetime.date.fromisoformat(text)
    except ValueError:
        pass
    match = _ORDINAL_DATE.fullmatch(text)
    if match is None:
        raise ValueError(f"Unsupported date format: {text!r}")
    month = _MONTHS.get(match.group("month").lower())
    if month is None:
        raise ValueError(f"Unknown month {match.group('month')!r}")
    return datetime.date(int(match.group("year")), month, int(match.group("day")))


def _to_datetime(text: str) -> datetime.datetime:
    return datetime.datetime.fromisoformat(text.strip())


_PRIMITIVES: dict[type, Callable[[str], Any]] = {}
_ZEROS: dict[type, Any] = {}


def register_converter(target: type, mapper: Callable[[str], Any], *, zero: Any = None) -> None:
    """Register a text mapper for ``target``, making it a standard type.

    ``zero`` is returned for blank input on non-nullable fields; without
    one, blank input yields None.
    """
    _PRIMITIVES[target] = mapper
    if zero is not None:
        _ZEROS[target] = zero
    STANDARD_TYPES.add(target)


def primitive_mapper(target: type) -> Callable[[str], Any] | None:
    return _PRIMITIVES.get(target)


register_converter(str, _to_str)
register_converter(int, _to_int, zero=0)
register_converter(float, _to_float, zero=0.0)
register_converter(bool, _to_bool, zero=False)
register_converter(Decimal, _to_decimal, zero=Decimal(0))
register_converter(datetime.date, _to_date)
register_converter(datetime.datetime, _to_datetime)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class ValueConverter(Protocol):
    """User-supplied mapper from text to any value."""

    def convert(self, value: str) -> Any: ...


class EntityBuilder(Protocol):
    def build(
        self,
        entity_class: type,
        reader: ValueReader,
        context: EntityCreationContext,
        *,
        use_cache: bool,
    ) -> Any: ...


class Converter(Protocol):
    def convert(
        self,
        value: Any,
        reader: ValueReader,
        context: EntityCreationContext,
        builder: EntityBuilder,
    ) -> Any: ...

    def describe(self) -> str: ...


# ---------------------------------------------------------------------------
# Field converters
# ---------------------------------------------------------------------------


class PrimitiveConverter:
    """Text to a standard type. Blank input: None if nullable, else the type's zero."""

    __slots__ = ("target", "nullable", "_mapper")

    def __init__(self, target: type, nullable: bool = False) -> None:
        mapper = primitive_mapper(target)
        if mapper is None:
            raise FieldDefinitionError(f"Cannot determine mapper for {target!r}")
        self.target = target
        self.nullable = nullable
        self._mapper = mapper

    def convert(self, value: Any, reader: Any = None, context: Any = None, builder: Any = None) -> Any:
        if value is None:
            return None
        if type(value) is self.target:
            return value
        text = str(value)
        if self.target is not str and not text.strip():
            return None if self.nullable else _ZEROS.get(self.target)
        try:
            return self._mapper(text)
        except ConversionError:
            raise
        except Exception as e:
            raise ValueMappingError(
                f"Cannot convert {text!r} to {self.target.__name__}: {e}", value=value, target=self.target
            ) from e

    def describe(self) -> str:
        return f"Primitive:{self.target.__name__}"


class MapperConverter:
    """Custom mapper applied to the whole value as text."""

    __slots__ = ("_mapper", "_name")

    def __init__(self, mapper: Callable[[str], Any], name: str) -> None:
        self._mapper = mapper
        self._name = name

    def convert(self, value: Any, reader: Any = None, context: Any = None, builder: Any = None) -> Any:
        if value is None:
            return None
        try:
            return self._mapper(str(value))
        except ConversionError:
            raise
        except Exception as e:
            raise ValueMappingError(f"Mapper {self._name} rejected {value!r}: {e}", value=value) from e

    def describe(self) -> str:
        return f"Mapper:{self._name}"


class CollectionTypeConverter:
    """Converts each element with ``element``; builds the declared container."""

    __slots__ = ("_element", "_info")

    def __init__(self, element: Converter, info: TypeInfo) -> None:
        self._element = element
        self._info = info

    def convert(
        self, value: Any, reader: ValueReader, context: EntityCreationContext, builder: EntityBuilder
    ) -> Any:
        if value is None:
            return None
        items = []
        with context.collection():
            for item in value:
                context.process_collection_item()
                items.append(self._element.convert(item, reader, context, builder))
        return self._info.make_collection(items)

    def describe(self) -> str:
        return f"Each({self._element.describe()})"


class EntityFromElementConverter:
    """Nested entity read from an extracted sub-element. Never cached."""

    __slots__ = ("entity_class",)

    def __init__(self, entity_class: type) -> None:
        self.entity_class = entity_class

    def convert(
        self, value: Any, reader: ValueReader, context: EntityCreationContext, builder: EntityBuilder
    ) -> Any:
        if value is None or not value.exists():
            return None
        scoped = ElementValueReader(reader, value)
        return builder.build(self.entity_class, scoped, context, use_cache=False)

    def describe(self) -> str:
        return f"Entity:{self.entity_class.__qualname__}"


class EntitiesFromElementConverter:
    __slots__ = ("_single", "_info")

    def __init__(self, entity_class: type, info: TypeInfo) -> None:
        self._single = EntityFromElementConverter(entity_class)
        self._info = info

    def convert(
        self, value: Any, reader: ValueReader, context: EntityCreationContext, builder: EntityBuilder
    ) -> Any:
        if value is None:
            return None
        entities = []
        with context.collection():
            for element in value:
                context.process_collection_item()
                entities.append(self._single.convert(element, reader, context, builder))
        return self._info.make_collection(entities)

    def describe(self) -> str:
        return f"Entities:{self._single.entity_class.__qualname__}"


class EntityCreatorConverter:
    """Nested entity built on the page the value links to.

    Navigates to the URL (relative URLs resolve against the current page),
    builds the entity with the cache enabled, then navigates back.
    """

    __slots__ = ("entity_class",)

    def __init__(self, entity_class: type) -> None:
        self.entity_class = entity_class

    def convert(
        self, value: Any, reader: ValueReader, context: EntityCreationContext, builder: EntityBuilder
    ) -> Any:
        if value is None or not str(value).strip():
            return None
        page = page_reader(reader)
        url = urljoin(page.get_current_url(), str(value).strip())
        logger.debug("Following %s for %s", url, self.entity_class.__qualname__)
        page.navigate_to(url)
        try:
            return builder.build(self.entity_class, page, context, use_cache=True)
        finally:
            page.navigate_back()

    def describe(self) -> str:
        return f"EntityAtUrl:{self.entity_class.__qualname__}"


class EntitiesCreatorConverter:
    __slots__ = ("_single", "_info")

    def __init__(self, entity_class: type, info: TypeInfo) -> None:
        self._single = EntityCreatorConverter(entity_class)
        self._info = info

    def convert(
        self, value: Any, reader: ValueReader, context: EntityCreationContext, builder: EntityBuilder
    ) -> Any:
        if value is None:
            return None
        entities = []
        with context.collection():
            for url in value:
                context.process_collection_item()
                entities.append(self._single.convert(url, reader, context, builder))
        return self._info.make_collection(entities)

    def describe(self) -> str:
        return f"EntitiesAtUrl:{self._single.entity_class.__qualname__}"


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def mapper_converter(conversion: Conversion) -> MapperConverter:
    """Accepts a ValueConverter class or instance, or a plain callable."""
    mapper = conversion.converter
    if isinstance(mapper, type):
        try:
            mapper = mapper()
        except TypeError as e:
            raise FieldDefinitionError(f"Cannot instantiate converter {mapper.__qualname__}: {e}") from e
    if isinstance(mapper, ValueConverter):
        return MapperConverter(mapper.convert, type(mapper).__qualname__)
    if callable(mapper):
        return MapperConverter(mapper, getattr(mapper, "__qualname__", repr(mapper)))
    raise FieldDefinitionError(f"Converter {mapper!r} is not callable")


def resolve_converter(desc: FieldDescriptor) -> Converter:
    info = desc.type_info
    url_derived = desc.category is RuleCategory.URL_DERIVED

    def fail(message: str) -> FieldDefinitionError:
        return FieldDefinitionError(message, entity_class=desc.owner, field_name=desc.name)

    if desc.conversion is not None:
        mapper = mapper_converter(desc.conversion)
        if info.is_collection and not desc.mapped_collection:
            return CollectionTypeConverter(mapper, info)
        return mapper

    if info.is_collection:
        element = info.element_type
        if info.is_standard:
            return CollectionTypeConverter(PrimitiveConverter(element, info.element_nullable), info)
        if has_no_arg_constructor(element):
            if url_derived:
                return EntitiesCreatorConverter(element, info)
            return EntitiesFromElementConverter(element, info)
        raise fail(f"Cannot determine mapper for collection of {element!r}")

    if not info.is_standard:
        if has_no_arg_constructor(info.target):
            if url_derived:
                return EntityCreatorConverter(info.target)
            return EntityFromElementConverter(info.target)
        raise fail(f"Cannot determine mapper for {info.target!r}")

    try:
        return PrimitiveConverter(info.target, info.nullable)
    except FieldDefinitionError as e:
        raise fail(str(e)) from e
