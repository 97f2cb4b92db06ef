# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Extractors: how a raw value is read for a field, and when.

Every extractor carries a condition (``AlwaysCondition`` unless it came
from a conditional rule). ``resolve_extractors`` turns a field's rules into
one extractor per rule; the evaluator later picks the single extractor
whose condition holds.

Dependencies: rules.py, regex.py, typeinfo.py, errors.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .errors import ExtractionError, FieldDefinitionError
from .regex import compile_pattern
from .rules import (
    CollectionIndex,
    ConditionalConstant,
    ConditionalExtractFromUrl,
    ConditionalExtractValue,
    Constant,
    ExtractCurrentUrl,
    ExtractFromUrl,
    ExtractValue,
    RegexExtractCurrentUrl,
    RegexExtractValue,
)
from .typeinfo import has_no_arg_constructor

if TYPE_CHECKING:
    from .context import EntityCreationContext
    from .definition import FieldDescriptor
    from .reader import ValueReader


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


@runtime_checkable
class Condition(Protocol):
    def evaluate(self, reader: ValueReader, context: EntityCreationContext) -> bool: ...

    def describe(self) -> str: ...


class AlwaysCondition:
    __slots__ = ()

    def evaluate(self, reader: ValueReader, context: EntityCreationContext) -> bool:
        return True

    def describe(self) -> str:
        return "always"

    def __repr__(self) -> str:
        return "AlwaysCondition()"


ALWAYS = AlwaysCondition()


@dataclass(frozen=True, slots=True)
class RegexCondition:
    """Holds when the value read by ``extractor`` contains a match of ``pattern``."""

    extractor: Extractor
    pattern: str

    def evaluate(self, reader: ValueReader, context: EntityCreationContext) -> bool:
        value = self.extractor.extract(reader, context)
        if value is None:
            return False
        return compile_pattern(self.pattern).search(str(value)) is not None

    def describe(self) -> str:
        return f"{self.extractor.describe()} ~ /{self.pattern}/"


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------


@runtime_checkable
class Extractor(Protocol):
    condition: Condition

    def extract(self, reader: ValueReader, context: EntityCreationContext) -> Any: ...

    def describe(self) -> str: ...


@dataclass(frozen=True, slots=True)
class ElementTextExtractor:
    path: str
    optional: bool = False
    condition: Condition = field(default=ALWAYS, compare=False)

    def extract(self, reader: ValueReader, context: EntityCreationContext) -> str | None:
        return reader.get_element_text(self.path, optional=self.optional)

    def describe(self) -> str:
        return f"Element Text: {self.path}"


@dataclass(frozen=True, slots=True)
class AttributeExtractor:
    path: str
    attribute: str
    optional: bool = False
    condition: Condition = field(default=ALWAYS, compare=False)

    def extract(self, reader: ValueReader, context: EntityCreationContext) -> str | None:
        return reader.get_attribute(self.path, self.attribute, optional=self.optional)

    def describe(self) -> str:
        return f"Attribute: {self.path}/@{self.attribute}"


@dataclass(frozen=True, slots=True)
class ConstantExtractor:
    value: str
    condition: Condition = field(default=ALWAYS, compare=False)

    def extract(self, reader: ValueReader, context: EntityCreationContext) -> str:
        return self.value

    def describe(self) -> str:
        return f"Constant: {self.value}"


@dataclass(frozen=True, slots=True)
class CurrentUrlExtractor:
    condition: Condition = field(default=ALWAYS, compare=False)

    def extract(self, reader: ValueReader, context: EntityCreationContext) -> str:
        return reader.get_current_url()

    def describe(self) -> str:
        return "Current URL"


@dataclass(frozen=True, slots=True)
class ElementTextsCollectionExtractor:
    path: str
    condition: Condition = field(default=ALWAYS, compare=False)

    def extract(self, reader: ValueReader, context: EntityCreationContext) -> list[str]:
        return reader.get_element_texts(self.path)

    def describe(self) -> str:
        return f"Element Texts: {self.path}"


@dataclass(frozen=True, slots=True)
class AttributesExtractor:
    path: str
    attribute: str
    condition: Condition = field(default=ALWAYS, compare=False)

    def extract(self, reader: ValueReader, context: EntityCreationContext) -> list[str | None]:
        return reader.get_attributes(self.path, self.attribute)

    def describe(self) -> str:
        return f"Attributes: {self.path}/@{self.attribute}"


@dataclass(frozen=True, slots=True)
class ElementListExtractor:
    path: str
    condition: Condition = field(default=ALWAYS, compare=False)

    def extract(self, reader: ValueReader, context: EntityCreationContext) -> list[Any]:
        return reader.get_elements(self.path)

    def describe(self) -> str:
        return f"Elements: {self.path}"


@dataclass(frozen=True, slots=True)
class ElementExtractor:
    path: str
    optional: bool = False
    condition: Condition = field(default=ALWAYS, compare=False)

    def extract(self, reader: ValueReader, context: EntityCreationContext) -> Any:
        return reader.get_element(self.path, optional=self.optional)

    def describe(self) -> str:
        return f"Element: {self.path}"


@dataclass(frozen=True, slots=True)
class CollectionIndexExtractor:
    base: int = 0
    condition: Condition = field(default=ALWAYS, compare=False)

    def extract(self, reader: ValueReader, context: EntityCreationContext) -> str:
        index = context.existing_index
        if index is None:
            raise ExtractionError(f"Can't use index when not part of a collection. [{context.get_context()}]")
        return str(index + self.base)

    def describe(self) -> str:
        return "Collection Index"


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

_NO_EXTRACTOR = "Cannot determine a suitable value extractor. Missing a converter or no-args constructor?"


def _fail(desc: FieldDescriptor, message: str) -> FieldDefinitionError:
    return FieldDefinitionError(message, entity_class=desc.owner, field_name=desc.name)


def _regex_condition(if_value: ExtractValue, regex: str) -> RegexCondition:
    compile_pattern(regex)
    attribute = if_value.attribute.strip()
    if attribute:
        probe: Extractor = AttributeExtractor(if_value.path, attribute, optional=True)
    else:
        probe = ElementTextExtractor(if_value.path, optional=True)
    return RegexCondition(probe, regex)


def _require_scalar_source(desc: FieldDescriptor, source: str) -> None:
    """Constant, current-URL and index rules yield one string; the field must accept it."""
    info = desc.type_info
    if info.is_collection:
        if desc.is_collection_of_entities:
            raise _fail(desc, f"{source} cannot populate a collection of entities")
        if not (desc.mapped_collection and desc.conversion is not None):
            raise _fail(desc, f"{source} on a collection requires MappedCollection and a Conversion")
    elif not info.is_standard and desc.conversion is None:
        raise _fail(desc, f"{source} on non-standard type {info.target!r} requires a Conversion")


def _url_derived(rule: ExtractFromUrl, desc: FieldDescriptor, condition: Condition, optional: bool) -> Extractor:
    info = desc.type_info
    if not (info.is_standard or desc.conversion is not None or has_no_arg_constructor(info.value_type)):
        raise _fail(desc, _NO_EXTRACTOR)
    attribute = rule.attribute.strip()
    if info.is_collection and not desc.mapped_collection:
        if attribute:
            return AttributesExtractor(rule.url_path, attribute, condition=condition)
        return ElementTextsCollectionExtractor(rule.url_path, condition=condition)
    if attribute:
        return AttributeExtractor(rule.url_path, attribute, optional=optional, condition=condition)
    return ElementTextExtractor(rule.url_path, optional=optional, condition=condition)


def _value_path(rule: ExtractValue, desc: FieldDescriptor, condition: Condition, optional: bool) -> Extractor:
    info = desc.type_info
    attribute = rule.attribute.strip()
    if info.is_collection:
        if attribute:
            if desc.mapped_collection:
                return AttributeExtractor(rule.path, attribute, optional=optional, condition=condition)
            return AttributesExtractor(rule.path, attribute, condition=condition)
        if desc.mapped_collection:
            return ElementTextExtractor(rule.path, optional=optional, condition=condition)
        if info.is_standard or desc.conversion is not None:
            return ElementTextsCollectionExtractor(rule.path, condition=condition)
        return ElementListExtractor(rule.path, condition=condition)

    if attribute:
        return AttributeExtractor(rule.path, attribute, optional=optional, condition=condition)
    if not info.is_standard:
        if desc.conversion is not None:
            return ElementTextExtractor(rule.path, optional=optional, condition=condition)
        if has_no_arg_constructor(info.target):
            return ElementExtractor(rule.path, optional=optional, condition=condition)
        raise _fail(desc, _NO_EXTRACTOR)
    return ElementTextExtractor(rule.path, optional=optional, condition=condition)


def resolve_extractor(rule: Any, desc: FieldDescriptor) -> Extractor:
    """One extractor for one rule. Conditional rules never read optionally."""
    if isinstance(rule, ConditionalConstant):
        _require_scalar_source(desc, "Constant")
        return ConstantExtractor(rule.then_constant.value, condition=_regex_condition(rule.if_value, rule.regex))
    if isinstance(rule, Constant):
        _require_scalar_source(desc, "Constant")
        return ConstantExtractor(rule.value)
    if isinstance(rule, (ExtractCurrentUrl, RegexExtractCurrentUrl)):
        _require_scalar_source(desc, "Current URL")
        return CurrentUrlExtractor()
    if isinstance(rule, CollectionIndex):
        _require_scalar_source(desc, "Collection index")
        return CollectionIndexExtractor(rule.base)
    if isinstance(rule, ConditionalExtractFromUrl):
        condition = _regex_condition(rule.if_value, rule.regex)
        return _url_derived(rule.then_url, desc, condition, optional=False)
    if isinstance(rule, ExtractFromUrl):
        return _url_derived(rule, desc, ALWAYS, optional=rule.optional)
    if isinstance(rule, ConditionalExtractValue):
        condition = _regex_condition(rule.if_value, rule.regex)
        return _value_path(rule.then_value, desc, condition, optional=False)
    if isinstance(rule, RegexExtractValue):
        return _value_path(rule.extract, desc, ALWAYS, optional=rule.extract.optional)
    if isinstance(rule, ExtractValue):
        return _value_path(rule, desc, ALWAYS, optional=rule.optional)
    raise _fail(desc, f"Unsupported extraction rule {rule!r}")


def resolve_extractors(desc: FieldDescriptor) -> tuple[Extractor, ...]:
    return tuple(resolve_extractor(rule, desc) for rule in desc.rules)
