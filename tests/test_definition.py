# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for definition.py: field table construction and validation.

Tests: rule collection from Annotated metadata, declaration order,
invalid rule combinations, memoized failures, nested validation,
descriptor type facts, binding with numeric widening.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Annotated, ClassVar

import pytest

from entitymap import (
    BindingError,
    CollectionIndex,
    ConditionalConstant,
    ConditionalExtractValue,
    Constant,
    Conversion,
    EntityDefinitionError,
    ExtractCurrentUrl,
    ExtractValue,
    FieldDefinitionError,
    MappedCollection,
    RegexError,
    RegexExtractValue,
    Transformation,
    cacheable,
    get_definition,
)
from entitymap.rules import RuleCategory

# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class Child:
    name: Annotated[str, ExtractValue(".//b")] = ""


@dataclass
class Plain:
    first: Annotated[str, ExtractValue("//h1")] = ""
    undeclared: str = ""
    documented: Annotated[str, "just a note"] = ""
    second: Annotated[int | None, ExtractValue("//span")] = None
    children: Annotated[list[Child], ExtractValue("//div")] = field(default_factory=list)
    tags: Annotated[set[str], ExtractValue("//li")] = field(default_factory=set)
    shared: ClassVar[int] = 0


@dataclass
class Numbers:
    ratio: Annotated[float, Constant("1")] = 0.0
    count: Annotated[int, Constant("1")] = 0
    amount: Annotated[Decimal, Constant("1")] = Decimal(0)


@cacheable
@dataclass
class Cached:
    title: Annotated[str, ExtractValue("//h1")] = ""


@dataclass
class TwoUnconditional:
    value: Annotated[str, ExtractValue("//h1"), ExtractValue("//h2")] = ""


@dataclass
class MixedCategories:
    value: Annotated[
        str,
        Constant("x"),
        ConditionalExtractValue(ExtractValue("//p"), ExtractValue("//h1"), "a"),
    ] = ""


@dataclass
class MappedWithoutConversion:
    values: Annotated[list[str], ExtractValue("//p"), MappedCollection()] = field(default_factory=list)


@dataclass
class MappedScalar:
    value: Annotated[str, ExtractValue("//p"), MappedCollection(), Conversion(str)] = ""


class NeedsArgs:
    def __init__(self, value: str) -> None:
        self.value = value


@dataclass
class UnbuildableField:
    thing: Annotated[NeedsArgs | None, ExtractValue("//p")] = None


@dataclass
class UrlIntoEntity:
    child: Annotated[Child | None, ExtractCurrentUrl()] = None


@dataclass
class ConstantList:
    values: Annotated[list[str], Constant("a,b")] = field(default_factory=list)


@dataclass
class BadRegex:
    value: Annotated[str, RegexExtractValue(ExtractValue("//p"), r"(?P<value>[")] = ""


@dataclass
class MissingGroup:
    value: Annotated[str, RegexExtractValue(ExtractValue("//p"), r"(\d+)")] = ""


@dataclass
class BadConditionRegex:
    value: Annotated[str, ConditionalConstant(ExtractValue("//p"), Constant("x"), "(")] = ""


@dataclass
class TransformWithoutRule:
    value: Annotated[str, Transformation(lambda v, p: v)] = ""


@dataclass
class TransformOnElements:
    children: Annotated[list[Child], ExtractValue("//div"), Transformation(lambda v, p: v)] = field(
        default_factory=list
    )


@dataclass
class TwoConversions:
    value: Annotated[str, ExtractValue("//p"), Conversion(str), Conversion(str)] = ""


@dataclass
class BrokenParent:
    child: Annotated[UnbuildableField | None, ExtractValue("//div")] = None


@dataclass
class IndexOnEntity:
    child: Annotated[Child | None, CollectionIndex()] = None


@dataclass
class Frozen:
    value: Annotated[str, Constant("x")] = ""

    def __setattr__(self, name, value):
        raise AttributeError("read-only")


# =========================================================================
# Field table
# =========================================================================


class TestFieldTable:
    def test_only_declared_fields_in_order(self):
        definition = get_definition(Plain)
        assert [f.name for f in definition.fields] == ["first", "second", "children", "tags"]

    def test_memoized(self):
        assert get_definition(Plain) is get_definition(Plain)

    def test_field_lookup(self):
        assert get_definition(Plain).field("second").name == "second"
        with pytest.raises(KeyError):
            get_definition(Plain).field("undeclared")

    def test_nullable_scalar(self):
        second = get_definition(Plain).field("second")
        assert second.nullable is True
        assert second.declared_type is int
        assert second.is_collection is False

    def test_collection_of_entities(self):
        children = get_definition(Plain).field("children")
        assert children.is_collection is True
        assert children.element_type is Child
        assert children.is_collection_of_entities is True
        assert children.nested_entity_type is Child

    def test_collection_of_standard(self):
        tags = get_definition(Plain).field("tags")
        assert tags.is_collection_of_entities is False
        assert tags.nested_entity_type is None

    def test_category(self):
        assert get_definition(Plain).field("first").category is RuleCategory.VALUE_PATH
        assert get_definition(Numbers).field("ratio").category is RuleCategory.CONSTANT

    def test_cacheable(self):
        assert get_definition(Cached).cacheable is True
        assert get_definition(Plain).cacheable is False


# =========================================================================
# Validation
# =========================================================================


class TestValidation:
    @pytest.mark.parametrize(
        ("entity_class", "message"),
        [
            (TwoUnconditional, "Invalid combination of annotations"),
            (MixedCategories, "mixed rule categories"),
            (MappedWithoutConversion, "MappedCollection requires a Conversion"),
            (MappedScalar, "non-collection"),
            (UnbuildableField, "Missing a converter or no-args constructor"),
            (UrlIntoEntity, "requires a Conversion"),
            (ConstantList, "requires MappedCollection and a Conversion"),
            (TransformWithoutRule, "without an extraction rule"),
            (TransformOnElements, "transformations apply to text values"),
            (TwoConversions, "more than one Conversion"),
            (IndexOnEntity, "Collection index"),
        ],
    )
    def test_invalid_field(self, entity_class, message):
        with pytest.raises(FieldDefinitionError, match=message):
            get_definition(entity_class)

    def test_error_names_class_and_field(self):
        with pytest.raises(FieldDefinitionError) as exc_info:
            get_definition(TwoUnconditional)
        assert exc_info.value.field_name == "value"
        assert str(exc_info.value).startswith("TwoUnconditional.value:")

    def test_invalid_regex(self):
        with pytest.raises(RegexError):
            get_definition(BadRegex)

    def test_regex_without_named_group(self):
        with pytest.raises(RegexError, match="no group named 'value'"):
            get_definition(MissingGroup)

    def test_invalid_condition_regex(self):
        with pytest.raises(RegexError):
            get_definition(BadConditionRegex)

    def test_failure_memoized(self):
        with pytest.raises(EntityDefinitionError) as first:
            get_definition(TwoUnconditional)
        with pytest.raises(EntityDefinitionError) as second:
            get_definition(TwoUnconditional)
        assert first.value is second.value

    def test_nested_failure_fails_parent(self):
        with pytest.raises(EntityDefinitionError, match="nested entity UnbuildableField is invalid"):
            get_definition(BrokenParent)

    def test_class_without_no_arg_constructor(self):
        with pytest.raises(EntityDefinitionError, match="no-argument constructor"):
            get_definition(NeedsArgs)


# =========================================================================
# Binding
# =========================================================================


class TestBinding:
    def test_int_widened_to_float(self):
        instance = Numbers()
        get_definition(Numbers).field("ratio").bind(instance, 2)
        assert instance.ratio == 2.0
        assert type(instance.ratio) is float

    def test_integral_float_narrowed_to_int(self):
        instance = Numbers()
        get_definition(Numbers).field("count").bind(instance, 3.0)
        assert instance.count == 3
        assert type(instance.count) is int

    def test_fractional_float_rejected_for_int(self):
        with pytest.raises(BindingError):
            get_definition(Numbers).field("count").bind(Numbers(), 3.5)

    def test_number_to_decimal(self):
        instance = Numbers()
        get_definition(Numbers).field("amount").bind(instance, 1.5)
        assert instance.amount == Decimal("1.5")

    def test_none_binds(self):
        instance = Plain()
        get_definition(Plain).field("second").bind(instance, None)
        assert instance.second is None

    def test_setter_failure_is_binding_error(self):
        with pytest.raises(BindingError, match="read-only"):
            get_definition(Frozen).field("value").bind(Frozen.__new__(Frozen), "x")
