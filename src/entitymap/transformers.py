# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Transformers: string refinement between extraction and conversion.

Order when both are declared: regex group capture first, then the custom
function. Collections not declared ``MappedCollection`` broadcast the
transformer to every element independently.

Dependencies: regex.py, rules.py, errors.py.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .errors import ConversionError, FieldDefinitionError
from .regex import RegexGroup
from .rules import RegexExtractCurrentUrl, RegexExtractValue, Transformation

if TYPE_CHECKING:
    from .definition import FieldDescriptor


@runtime_checkable
class TransformationFunction(Protocol):
    """User-supplied transform. Implementations must be stateless."""

    def transform(self, value: str, parameters: tuple[str, ...]) -> str: ...


@runtime_checkable
class Transformer(Protocol):
    def transform(self, value: Any) -> Any: ...

    def describe(self) -> str: ...


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class RegexTransformation:
    __slots__ = ("_group",)

    def __init__(self, group: RegexGroup) -> None:
        self._group = group

    def transform(self, value: Any) -> str | None:
        return self._group.capture(None if value is None else str(value))

    def describe(self) -> str:
        return f"Regex{list(self._group.patterns)}:{self._group.group}"


class FunctionTransformer:
    __slots__ = ("_function", "_parameters", "_name")

    def __init__(self, function: Callable[[str, tuple[str, ...]], str], parameters: tuple[str, ...], name: str) -> None:
        self._function = function
        self._parameters = parameters
        self._name = name

    def transform(self, value: Any) -> Any:
        if value is None:
            return None
        try:
            return self._function(value, self._parameters)
        except ConversionError:
            raise
        except Exception as e:
            raise ConversionError(f"Transformation {self._name} failed on {value!r}: {e}") from e

    def describe(self) -> str:
        return f"Function:{self._name}"


class CombinedTransformer:
    __slots__ = ("_first", "_second")

    def __init__(self, first: Transformer, second: Transformer) -> None:
        self._first = first
        self._second = second

    def transform(self, value: Any) -> Any:
        return self._second.transform(self._first.transform(value))

    def describe(self) -> str:
        return f"{self._first.describe()} + {self._second.describe()}"


class CollectionTransformer:
    """Applies ``inner`` to each element; the result keeps input order."""

    __slots__ = ("_inner",)

    def __init__(self, inner: Transformer) -> None:
        self._inner = inner

    @property
    def inner(self) -> Transformer:
        return self._inner

    def transform(self, value: Any) -> list[Any]:
        return [self._inner.transform(v) for v in value]

    def describe(self) -> str:
        return f"Each({self._inner.describe()})"


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def function_transformer(transformation: Transformation) -> FunctionTransformer:
    """Accepts a TransformationFunction class or instance, or a plain callable."""
    fn = transformation.function
    if isinstance(fn, type):
        try:
            fn = fn()
        except TypeError as e:
            raise FieldDefinitionError(f"Cannot instantiate transformation {fn.__qualname__}: {e}") from e
    if isinstance(fn, TransformationFunction):
        name = type(fn).__qualname__
        call = fn.transform
    elif callable(fn):
        name = getattr(fn, "__qualname__", repr(fn))
        call = fn
    else:
        raise FieldDefinitionError(f"Transformation function {fn!r} is not callable")
    return FunctionTransformer(call, transformation.parameters, name)


def resolve_transformer(desc: FieldDescriptor) -> Transformer | None:
    regex_rule = next((r for r in desc.rules if isinstance(r, (RegexExtractValue, RegexExtractCurrentUrl))), None)
    regex = RegexTransformation(RegexGroup(regex_rule.regexes, regex_rule.group, regex_rule.default)) if regex_rule else None

    if desc.transformation is not None:
        custom = function_transformer(desc.transformation)
        resolved: Transformer | None = CombinedTransformer(regex, custom) if regex else custom
    else:
        resolved = regex

    if resolved is not None and desc.type_info.is_collection and not desc.mapped_collection:
        return CollectionTransformer(resolved)
    return resolved
