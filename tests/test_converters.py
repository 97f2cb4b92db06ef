# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for converters.py: primitive mapping and field converters.

Covers:
- Standard type parsing, including the two date formats
- Blank input: None when nullable, the zero value otherwise
- register_converter extending the standard set
- Collection and nested-entity converters against a mocked builder
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from entitymap.context import EntityCreationContext
from entitymap.converters import (
    CollectionTypeConverter,
    EntitiesCreatorConverter,
    EntitiesFromElementConverter,
    EntityCreatorConverter,
    EntityFromElementConverter,
    MapperConverter,
    PrimitiveConverter,
    mapper_converter,
    primitive_mapper,
    register_converter,
)
from entitymap.errors import FieldDefinitionError, ValueMappingError
from entitymap.reader import ElementValueReader
from entitymap.rules import Conversion
from entitymap.typeinfo import analyze, is_standard_type


class Entity:
    pass


class Colour:
    def __init__(self, name: str = "") -> None:
        self.name = name


class Grade:
    def __init__(self, rank: int = 0) -> None:
        self.rank = rank


class UpperConverter:
    def convert(self, value: str) -> str:
        return value.upper()


def _ctx() -> EntityCreationContext:
    return EntityCreationContext(Entity)


def _builder(result="built") -> MagicMock:
    builder = MagicMock()
    builder.build.return_value = result
    return builder


# =========================================================================
# Primitive mapping
# =========================================================================


class TestPrimitiveConverter:
    @pytest.mark.parametrize(
        ("target", "text", "expected"),
        [
            (str, " keep spaces ", " keep spaces "),
            (int, " 42 ", 42),
            (float, "3.5", 3.5),
            (Decimal, "19.99", Decimal("19.99")),
            (bool, "Yes", True),
            (bool, "true", True),
            (bool, "1", True),
            (bool, "no", False),
            (bool, "anything", False),
            (datetime.date, "2023-02-28", datetime.date(2023, 2, 28)),
            (datetime.date, "28th February 2023", datetime.date(2023, 2, 28)),
            (datetime.date, "1st Mar 2024", datetime.date(2024, 3, 1)),
            (datetime.datetime, "2024-01-02T03:04:05", datetime.datetime(2024, 1, 2, 3, 4, 5)),
        ],
    )
    def test_parse(self, target, text, expected):
        assert PrimitiveConverter(target).convert(text) == expected

    @pytest.mark.parametrize(
        ("target", "zero"),
        [(int, 0), (float, 0.0), (bool, False), (Decimal, Decimal(0))],
    )
    def test_blank_non_nullable_is_zero(self, target, zero):
        assert PrimitiveConverter(target).convert("   ") == zero

    def test_blank_nullable_is_none(self):
        assert PrimitiveConverter(int, nullable=True).convert("") is None

    def test_blank_date_is_none(self):
        assert PrimitiveConverter(datetime.date).convert("") is None

    def test_blank_string_kept(self):
        assert PrimitiveConverter(str).convert("") == ""

    def test_none_passes_through(self):
        assert PrimitiveConverter(int).convert(None) is None

    def test_value_of_target_type_unchanged(self):
        assert PrimitiveConverter(int).convert(7) == 7

    @pytest.mark.parametrize(
        ("target", "text", "message"),
        [
            (int, "abc", "Cannot convert 'abc' to int"),
            (Decimal, "1,5", "to Decimal"),
            (datetime.date, "Feb 28 2023", "Unsupported date format"),
            (datetime.date, "28th Smarch 2023", "Unknown month"),
            (datetime.date, "31st February 2023", "to date"),
        ],
    )
    def test_unparseable(self, target, text, message):
        with pytest.raises(ValueMappingError, match=message) as exc_info:
            PrimitiveConverter(target).convert(text)
        assert exc_info.value.target is target

    def test_unknown_target(self):
        with pytest.raises(FieldDefinitionError, match="Cannot determine mapper"):
            PrimitiveConverter(Entity)


class TestRegistry:
    def test_register_extends_standard_types(self):
        register_converter(Colour, Colour, zero=None)
        assert is_standard_type(Colour)
        assert primitive_mapper(Colour) is Colour
        assert PrimitiveConverter(Colour).convert("red").name == "red"
        assert PrimitiveConverter(Colour).convert(" ") is None

    def test_registered_mapper_failure_wrapped(self):
        grades = {"A": 1, "B": 2}
        register_converter(Grade, lambda text: Grade(grades[text]))
        with pytest.raises(ValueMappingError, match="to Grade") as exc_info:
            PrimitiveConverter(Grade).convert("Z")
        assert isinstance(exc_info.value.__cause__, KeyError)


# =========================================================================
# Custom mappers
# =========================================================================


class TestMapperConverter:
    def test_plain_callable(self):
        converter = mapper_converter(Conversion(lambda v: v[::-1]))
        assert converter.convert("abc") == "cba"

    def test_value_converter_class(self):
        converter = mapper_converter(Conversion(UpperConverter))
        assert converter.convert("abc") == "ABC"
        assert converter.describe() == "Mapper:UpperConverter"

    def test_value_converter_instance(self):
        assert mapper_converter(Conversion(UpperConverter())).convert("x") == "X"

    def test_not_callable(self):
        with pytest.raises(FieldDefinitionError, match="not callable"):
            mapper_converter(Conversion("nope"))

    def test_mapper_errors_wrapped(self):
        converter = MapperConverter(int, "int")
        with pytest.raises(ValueMappingError, match="Mapper int rejected 'x'"):
            converter.convert("x")

    def test_any_mapper_exception_wrapped(self):
        def explode(value: str) -> str:
            raise RuntimeError("backend down")

        with pytest.raises(ValueMappingError, match="backend down"):
            MapperConverter(explode, "explode").convert("x")

    def test_conversion_error_passes_through(self):
        def reject(value: str) -> str:
            raise ValueMappingError("rejected", value=value)

        with pytest.raises(ValueMappingError, match="^rejected$"):
            MapperConverter(reject, "reject").convert("x")

    def test_none_skips_mapper(self):
        mapper = MagicMock()
        assert MapperConverter(mapper, "m").convert(None) is None
        mapper.assert_not_called()


# =========================================================================
# Collections
# =========================================================================


class TestCollectionTypeConverter:
    def test_elementwise_in_order(self):
        converter = CollectionTypeConverter(PrimitiveConverter(int), analyze(list[int]))
        assert converter.convert(["3", "1", "2"], MagicMock(), _ctx(), _builder()) == [3, 1, 2]

    def test_declared_container(self):
        converter = CollectionTypeConverter(PrimitiveConverter(str), analyze(frozenset[str]))
        result = converter.convert(["a", "a", "b"], MagicMock(), _ctx(), _builder())
        assert result == frozenset({"a", "b"})

    def test_collection_frame_closed(self):
        ctx = _ctx()
        converter = CollectionTypeConverter(PrimitiveConverter(int), analyze(list[int]))
        converter.convert(["1"], MagicMock(), ctx, _builder())
        assert ctx.existing_index is None

    def test_index_visible_to_element(self):
        seen = []

        class Recording:
            def convert(self, value, reader, context, builder):
                seen.append(context.existing_index)
                return value

            def describe(self):
                return "Recording"

        CollectionTypeConverter(Recording(), analyze(list[str])).convert(["a", "b"], MagicMock(), _ctx(), _builder())
        assert seen == [0, 1]


# =========================================================================
# Nested entities
# =========================================================================


class TestEntityFromElement:
    def test_builds_over_scoped_reader_uncached(self):
        element = MagicMock()
        element.exists.return_value = True
        builder = _builder("child")
        reader = MagicMock()
        ctx = _ctx()

        assert EntityFromElementConverter(Entity).convert(element, reader, ctx, builder) == "child"
        cls, scoped, passed_ctx = builder.build.call_args.args
        assert cls is Entity
        assert isinstance(scoped, ElementValueReader)
        assert scoped.element is element
        assert scoped.parent is reader
        assert passed_ctx is ctx
        assert builder.build.call_args.kwargs == {"use_cache": False}

    def test_missing_element(self):
        element = MagicMock()
        element.exists.return_value = False
        builder = _builder()
        assert EntityFromElementConverter(Entity).convert(element, MagicMock(), _ctx(), builder) is None
        assert EntityFromElementConverter(Entity).convert(None, MagicMock(), _ctx(), builder) is None
        builder.build.assert_not_called()

    def test_collection(self):
        elements = [MagicMock(), MagicMock()]
        builder = MagicMock()
        builder.build.side_effect = ["a", "b"]
        converter = EntitiesFromElementConverter(Entity, analyze(list[Entity]))
        assert converter.convert(elements, MagicMock(), _ctx(), builder) == ["a", "b"]


class TestEntityCreator:
    def test_follows_relative_url_and_returns(self):
        reader = MagicMock()
        reader.get_current_url.return_value = "https://shop.test/products/1"
        builder = _builder("linked")

        result = EntityCreatorConverter(Entity).convert("../brands/acme", reader, _ctx(), builder)

        assert result == "linked"
        reader.navigate_to.assert_called_once_with("https://shop.test/brands/acme")
        reader.navigate_back.assert_called_once_with()
        assert builder.build.call_args.kwargs == {"use_cache": True}

    def test_navigates_back_on_failure(self):
        reader = MagicMock()
        reader.get_current_url.return_value = "https://shop.test/"
        builder = MagicMock()
        builder.build.side_effect = ValueMappingError("boom")

        with pytest.raises(ValueMappingError):
            EntityCreatorConverter(Entity).convert("/x", reader, _ctx(), builder)
        reader.navigate_back.assert_called_once_with()

    def test_uses_page_reader_behind_element_scope(self):
        page = MagicMock()
        page.get_current_url.return_value = "https://shop.test/"
        scoped = ElementValueReader(page, MagicMock())
        builder = _builder()

        EntityCreatorConverter(Entity).convert("/brand", scoped, _ctx(), builder)
        assert builder.build.call_args.args[1] is page

    def test_blank_url_is_none(self):
        reader = MagicMock()
        assert EntityCreatorConverter(Entity).convert("  ", reader, _ctx(), _builder()) is None
        reader.navigate_to.assert_not_called()

    def test_collection_in_order(self):
        reader = MagicMock()
        reader.get_current_url.return_value = "https://shop.test/"
        builder = MagicMock()
        builder.build.side_effect = ["a", "b"]

        converter = EntitiesCreatorConverter(Entity, analyze(list[Entity]))
        assert converter.convert(["/a", "/b"], reader, _ctx(), builder) == ["a", "b"]
        assert [c.args[0] for c in reader.navigate_to.call_args_list] == ["https://shop.test/a", "https://shop.test/b"]
        assert reader.navigate_back.call_count == 2
