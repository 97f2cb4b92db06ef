# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Entity definitions: the per-class field table, resolved once.

``get_definition(cls)`` reads the class's ``Annotated`` field declarations,
validates them and resolves each field into an ``EntityFieldEvaluator``.
Results (and failures) are memoized process-wide under a lock, so
definition errors surface once, before any page is read.

Self-referencing entity classes are allowed: a class being resolved is
visible to its own nested fields while its resolution is in progress.

Dependencies: rules.py, typeinfo.py, extractors.py, transformers.py,
converters.py, evaluator.py, errors.py.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar, get_origin, get_type_hints

from .converters import resolve_converter
from .errors import BindingError, EntityDefinitionError, FieldDefinitionError
from .evaluator import EntityFieldEvaluator
from .extractors import ElementExtractor, ElementListExtractor, resolve_extractors
from .rules import Conversion, MappedCollection, RuleCategory, Transformation, is_cacheable, is_rule
from .transformers import resolve_transformer
from .typeinfo import TypeInfo, analyze, has_no_arg_constructor

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Field descriptor
# ---------------------------------------------------------------------------


class FieldDescriptor:
    """One populated field: its declarations, type facts and evaluator."""

    __slots__ = (
        "owner",
        "name",
        "type_info",
        "rules",
        "transformation",
        "conversion",
        "mapped_collection",
        "category",
        "evaluator",
    )

    def __init__(
        self,
        owner: type,
        name: str,
        type_info: TypeInfo,
        rules: tuple[Any, ...],
        *,
        transformation: Transformation | None = None,
        conversion: Conversion | None = None,
        mapped_collection: bool = False,
    ) -> None:
        self.owner = owner
        self.name = name
        self.type_info = type_info
        self.rules = rules
        self.transformation = transformation
        self.conversion = conversion
        self.mapped_collection = mapped_collection
        self.category = self._validate()

        extractors = resolve_extractors(self)
        transformer = resolve_transformer(self)
        if transformer is not None and any(isinstance(e, (ElementExtractor, ElementListExtractor)) for e in extractors):
            raise self._fail("transformations apply to text values, not to nested entity elements")
        self.evaluator = EntityFieldEvaluator(extractors, transformer, resolve_converter(self))

    # -- type facts ---------------------------------------------------------

    @property
    def declared_type(self) -> Any:
        return self.type_info.target

    @property
    def element_type(self) -> Any:
        return self.type_info.element_type

    @property
    def nullable(self) -> bool:
        return self.type_info.nullable

    @property
    def is_collection(self) -> bool:
        return self.type_info.is_collection

    @property
    def is_collection_of_entities(self) -> bool:
        return self.is_collection and not self.type_info.is_standard and self.conversion is None

    @property
    def nested_entity_type(self) -> type | None:
        """Entity class built for this field, if it holds nested entities."""
        if self.conversion is not None or self.type_info.is_standard:
            return None
        candidate = self.type_info.value_type
        return candidate if has_no_arg_constructor(candidate) else None

    # -- validation ---------------------------------------------------------

    def _fail(self, message: str) -> FieldDefinitionError:
        return FieldDefinitionError(message, entity_class=self.owner, field_name=self.name)

    def _validate(self) -> RuleCategory:
        if not self.rules:
            raise self._fail("Transformation/Conversion declared without an extraction rule")
        unconditional = [r for r in self.rules if not r.conditional]
        if len(unconditional) > 1:
            raise self._fail(f"Invalid combination of annotations: {len(unconditional)} unconditional rules")
        categories = {r.category for r in self.rules}
        if len(categories) > 1:
            names = ", ".join(sorted(c.value for c in categories))
            raise self._fail(f"Invalid combination of annotations: mixed rule categories ({names})")
        if self.mapped_collection:
            if not self.is_collection:
                raise self._fail("MappedCollection declared on a non-collection field")
            if self.conversion is None:
                raise self._fail("MappedCollection requires a Conversion")
        return categories.pop()

    # -- binding ------------------------------------------------------------

    def coerce(self, value: Any) -> Any:
        """Numeric widening between int, float and Decimal."""
        if value is None or self.is_collection:
            return value
        target = self.type_info.target
        if target is float and type(value) is int:
            return float(value)
        if target is int and type(value) is float:
            if not value.is_integer():
                raise BindingError(f"Cannot bind non-integral {value!r} to int field {self.name}")
            return int(value)
        if target is Decimal and type(value) in (int, float):
            return Decimal(str(value))
        return value

    def bind(self, instance: Any, value: Any) -> None:
        value = self.coerce(value)
        try:
            setattr(instance, self.name, value)
        except (AttributeError, TypeError) as e:
            raise BindingError(f"Cannot set {type(instance).__qualname__}.{self.name}: {e}") from e

    def __repr__(self) -> str:
        return f"FieldDescriptor({self.owner.__qualname__}.{self.name})"


def _describe_field(owner: type, name: str, hint: Any) -> FieldDescriptor | None:
    info = analyze(hint)
    rules: list[Any] = []
    transformation: Transformation | None = None
    conversion: Conversion | None = None
    mapped = False
    for item in info.metadata:
        if is_rule(item):
            rules.append(item)
        elif isinstance(item, Transformation):
            if transformation is not None:
                raise FieldDefinitionError("more than one Transformation", entity_class=owner, field_name=name)
            transformation = item
        elif isinstance(item, Conversion):
            if conversion is not None:
                raise FieldDefinitionError("more than one Conversion", entity_class=owner, field_name=name)
            conversion = item
        elif isinstance(item, MappedCollection) or item is MappedCollection:
            mapped = True

    if not rules and transformation is None and conversion is None and not mapped:
        return None
    return FieldDescriptor(
        owner,
        name,
        info,
        tuple(rules),
        transformation=transformation,
        conversion=conversion,
        mapped_collection=mapped,
    )


# ---------------------------------------------------------------------------
# Entity definition
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EntityDefinition:
    entity_class: type
    fields: tuple[FieldDescriptor, ...]

    @property
    def cacheable(self) -> bool:
        return is_cacheable(self.entity_class)

    def field(self, name: str) -> FieldDescriptor:
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        raise KeyError(name)

    def describe(self) -> list[tuple[str, str]]:
        return [(f.name, f.evaluator.describe()) for f in self.fields]


def _build(cls: type) -> EntityDefinition:
    if not has_no_arg_constructor(cls):
        raise EntityDefinitionError(
            f"{cls!r} is not an entity class: it needs a no-argument constructor", entity_class=cls
        )
    try:
        hints = get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as e:
        raise EntityDefinitionError(f"Cannot resolve annotations of {cls.__qualname__}: {e}", entity_class=cls) from e

    fields = []
    for name, hint in hints.items():
        if get_origin(hint) is ClassVar or hint is ClassVar:
            continue
        descriptor = _describe_field(cls, name, hint)
        if descriptor is not None:
            fields.append(descriptor)
    return EntityDefinition(cls, tuple(fields))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_lock = threading.RLock()
_definitions: dict[type, EntityDefinition] = {}
_failures: dict[type, EntityDefinitionError] = {}
_in_progress: dict[type, EntityDefinition] = {}


def get_definition(cls: type) -> EntityDefinition:
    """Resolved definition of ``cls``; raises EntityDefinitionError if invalid."""
    definition = _definitions.get(cls)
    if definition is not None:
        return definition

    with _lock:
        if cls in _definitions:
            return _definitions[cls]
        if cls in _failures:
            raise _failures[cls]
        if cls in _in_progress:
            return _in_progress[cls]

        try:
            definition = _build(cls)
            _in_progress[cls] = definition
            for descriptor in definition.fields:
                nested = descriptor.nested_entity_type
                if nested is None:
                    continue
                try:
                    get_definition(nested)
                except EntityDefinitionError as e:
                    raise EntityDefinitionError(
                        f"{cls.__qualname__}.{descriptor.name}: nested entity {nested.__qualname__} is invalid: {e}",
                        entity_class=cls,
                    ) from e
        except EntityDefinitionError as e:
            _failures[cls] = e
            logger.error("Invalid entity definition %s: %s", cls.__qualname__, e)
            raise
        finally:
            _in_progress.pop(cls, None)

        _definitions[cls] = definition
        logger.debug("Resolved entity definition %s (%d fields)", cls.__qualname__, len(definition.fields))
        return definition


def clear_definitions() -> None:
    """Forget all memoized definitions and failures."""
    with _lock:
        _definitions.clear()
        _failures.clear()
