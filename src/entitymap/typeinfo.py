# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Type inspection for entity fields.

Reduces an annotation such as ``Annotated[list[Item] | None, ExtractValue(...)]``
to the facts the resolvers need: the declarations, the target type, whether
it is nullable, whether it is a collection and of what.

Leaf module. No entitymap imports.
"""

from __future__ import annotations

import collections.abc
import datetime
import inspect
import types
from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated, Any, Union, get_args, get_origin

# Types mapped straight from text. Extended by converters.register_converter.
STANDARD_TYPES: set[type] = {str, int, float, bool, datetime.date, Decimal}

_LIST_ORIGINS = frozenset(
    {
        list,
        collections.abc.Sequence,
        collections.abc.MutableSequence,
        collections.abc.Collection,
        collections.abc.Iterable,
    }
)
_SET_ORIGINS = frozenset({set, collections.abc.Set, collections.abc.MutableSet})


@dataclass(frozen=True, slots=True)
class TypeInfo:
    """What a field annotation means to the engine."""

    target: Any
    nullable: bool = False
    container: type | None = None
    element_type: Any = None
    element_nullable: bool = False
    metadata: tuple[Any, ...] = ()

    @property
    def is_collection(self) -> bool:
        return self.container is not None

    @property
    def value_type(self) -> Any:
        """Element type for collections, the target type otherwise."""
        return self.element_type if self.is_collection else self.target

    @property
    def is_standard(self) -> bool:
        return is_standard_type(self.value_type)

    def make_collection(self, items: list[Any]) -> Any:
        if self.container is None or self.container is list:
            return items
        return self.container(items)


def is_standard_type(tp: Any) -> bool:
    return isinstance(tp, type) and tp in STANDARD_TYPES


def has_no_arg_constructor(tp: Any) -> bool:
    """True when ``tp()`` can be called without arguments."""
    if not isinstance(tp, type):
        return False
    try:
        signature = inspect.signature(tp)
    except (TypeError, ValueError):
        return False
    for param in signature.parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        if param.default is param.empty:
            return False
    return True


def _strip_optional(tp: Any) -> tuple[Any, bool]:
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(tp) if a is not type(None)]
        nullable = len(args) != len(get_args(tp))
        if len(args) == 1:
            return args[0], nullable
        return Union[tuple(args)], nullable
    return tp, False


def analyze(hint: Any) -> TypeInfo:
    """Break an annotation into declarations, target type and collection shape."""
    metadata: tuple[Any, ...] = ()
    if get_origin(hint) is Annotated:
        hint, *extras = get_args(hint)
        metadata = tuple(extras)

    target, nullable = _strip_optional(hint)
    # Optional[Annotated[...]] puts the declarations one level down
    if get_origin(target) is Annotated:
        target, *extras = get_args(target)
        metadata += tuple(extras)

    origin = get_origin(target) or target
    args = get_args(target)

    if origin in _LIST_ORIGINS:
        container: type | None = list
    elif origin in _SET_ORIGINS:
        container = set
    elif origin is frozenset:
        container = frozenset
    elif origin is tuple:
        container = tuple
    else:
        container = None

    if container is None:
        return TypeInfo(target=target, nullable=nullable, metadata=metadata)

    element = args[0] if args else str
    element, element_nullable = _strip_optional(element)
    return TypeInfo(
        target=target,
        nullable=nullable,
        container=container,
        element_type=element,
        element_nullable=element_nullable,
        metadata=metadata,
    )
