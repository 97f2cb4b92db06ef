# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Field declarations: extraction rules and refinement markers.

Declarations are attached to entity fields through ``typing.Annotated``::

    @dataclass
    class Product:
        title: Annotated[str, ExtractValue("//h1")] = ""
        price: Annotated[int, RegexExtractValue(ExtractValue("//span[@class='price']"), r"(?P<value>\\d+)")] = 0

Leaf module. No entitymap imports besides errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar, Union

from .errors import FieldDefinitionError

T = TypeVar("T", bound=type)

CACHEABLE_ATTR = "__entitymap_cacheable__"


class RuleCategory(StrEnum):
    """Which source a field value comes from. A field may use one category only."""

    CONSTANT = "constant"
    CURRENT_URL = "current_url"
    URL_DERIVED = "url_derived"
    VALUE_PATH = "value_path"
    INDEX = "index"


def _as_patterns(regexes: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(regexes, str):
        return (regexes,)
    patterns = tuple(regexes)
    if not patterns:
        raise FieldDefinitionError("at least one regex pattern is required")
    return patterns


# ---------------------------------------------------------------------------
# Plain rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExtractValue:
    """Read element text at ``path``, or attribute ``attribute`` when set."""

    path: str
    attribute: str = ""
    optional: bool = False

    category = RuleCategory.VALUE_PATH
    conditional = False


@dataclass(frozen=True, slots=True)
class ExtractFromUrl:
    """The value at ``url_path`` is a URL; the field is built on that page."""

    url_path: str
    attribute: str = ""
    optional: bool = False

    category = RuleCategory.URL_DERIVED
    conditional = False


@dataclass(frozen=True, slots=True)
class ExtractCurrentUrl:
    category = RuleCategory.CURRENT_URL
    conditional = False


@dataclass(frozen=True, slots=True)
class Constant:
    value: str

    category = RuleCategory.CONSTANT
    conditional = False


@dataclass(frozen=True, slots=True)
class CollectionIndex:
    """Position of the enclosing collection item, offset by ``base``."""

    base: int = 0

    category = RuleCategory.INDEX
    conditional = False


# ---------------------------------------------------------------------------
# Regex rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RegexExtractValue:
    """Value-path rule whose raw value is refined by a named regex group.

    Patterns are tried in order; the first one yielding the group wins,
    otherwise ``default`` is used.
    """

    extract: ExtractValue
    regexes: tuple[str, ...]
    group: str = "value"
    default: str | None = None

    category = RuleCategory.VALUE_PATH
    conditional = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "regexes", _as_patterns(self.regexes))


@dataclass(frozen=True, slots=True)
class RegexExtractCurrentUrl:
    regexes: tuple[str, ...]
    group: str = "value"
    default: str | None = None

    category = RuleCategory.CURRENT_URL
    conditional = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "regexes", _as_patterns(self.regexes))


# ---------------------------------------------------------------------------
# Conditional rules (repeatable)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConditionalExtractValue:
    """Use ``then_value`` only when the text read by ``if_value`` contains ``regex``."""

    if_value: ExtractValue
    then_value: ExtractValue
    regex: str

    category = RuleCategory.VALUE_PATH
    conditional = True


@dataclass(frozen=True, slots=True)
class ConditionalExtractFromUrl:
    if_value: ExtractValue
    then_url: ExtractFromUrl
    regex: str

    category = RuleCategory.URL_DERIVED
    conditional = True


@dataclass(frozen=True, slots=True)
class ConditionalConstant:
    if_value: ExtractValue
    then_constant: Constant
    regex: str

    category = RuleCategory.CONSTANT
    conditional = True

    def __post_init__(self) -> None:
        if isinstance(self.then_constant, str):
            object.__setattr__(self, "then_constant", Constant(self.then_constant))


ExtractionRule = Union[
    ExtractValue,
    ExtractFromUrl,
    ExtractCurrentUrl,
    Constant,
    CollectionIndex,
    RegexExtractValue,
    RegexExtractCurrentUrl,
    ConditionalExtractValue,
    ConditionalExtractFromUrl,
    ConditionalConstant,
]

EXTRACTION_RULE_TYPES: tuple[type, ...] = ExtractionRule.__args__


# ---------------------------------------------------------------------------
# Refinement markers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transformation:
    """Custom string transform applied after extraction.

    ``function`` is a TransformationFunction (class or instance) or a plain
    callable ``(value, parameters) -> str``.
    """

    function: Any
    parameters: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if isinstance(self.parameters, str):
            object.__setattr__(self, "parameters", (self.parameters,))
        else:
            object.__setattr__(self, "parameters", tuple(self.parameters))


@dataclass(frozen=True, slots=True)
class Conversion:
    """Custom mapper (ValueConverter class or instance) producing the field value."""

    converter: Any


@dataclass(frozen=True, slots=True)
class MappedCollection:
    """Map the collection as one unit instead of element by element."""


# ---------------------------------------------------------------------------
# Class-level opt-in
# ---------------------------------------------------------------------------


def cacheable(cls: T) -> T:
    """Opt an entity class in to the instance cache (keyed by class + URL)."""
    setattr(cls, CACHEABLE_ATTR, True)
    return cls


def is_cacheable(cls: type) -> bool:
    return bool(getattr(cls, CACHEABLE_ATTR, False))


def is_rule(obj: object) -> bool:
    return isinstance(obj, EXTRACTION_RULE_TYPES)
