# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Entity serialization to JSON-safe structures.

Handles dataclasses and plain objects, nested entities, collections,
dates and decimals. Sets are emitted as sorted lists when sortable.
"""

from __future__ import annotations

import dataclasses
import datetime
import json
from decimal import Decimal
from typing import Any


def to_dict(value: Any) -> Any:
    """Recursively convert an entity (or any field value) to JSON-safe data."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_dict(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        items = [to_dict(v) for v in value]
        try:
            return sorted(items)
        except TypeError:
            return items
    if isinstance(value, (list, tuple)):
        return [to_dict(v) for v in value]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_dict(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if hasattr(value, "__dict__"):
        return {k: to_dict(v) for k, v in vars(value).items() if not k.startswith("_")}
    return str(value)


def to_json(entity: Any, indent: int | None = 2) -> str:
    """Serialize an entity to a JSON string.

    Args:
        entity: Built entity (or list of entities)
        indent: JSON indentation level, None for a single line

    Returns:
        JSON string
    """
    return json.dumps(to_dict(entity), indent=indent, ensure_ascii=False)
