# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Compiled-pattern memo and named-group capture.

Patterns compile once per process; ``functools.lru_cache`` is thread-safe.
Matching uses ``re.search`` throughout: a pattern matches when the value
*contains* a match.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache

from .errors import RegexError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise RegexError(f"Invalid regex {pattern!r}: {e}", pattern=pattern) from e


class RegexGroup:
    """Capture a named group from the first pattern that yields it."""

    __slots__ = ("_patterns", "group", "default")

    def __init__(self, patterns: tuple[str, ...], group: str = "value", default: str | None = None) -> None:
        self._patterns = tuple(compile_pattern(p) for p in patterns)
        self.group = group
        self.default = default
        for p in self._patterns:
            if group not in p.groupindex:
                raise RegexError(f"Pattern {p.pattern!r} has no group named {group!r}", pattern=p.pattern)

    @property
    def patterns(self) -> tuple[str, ...]:
        return tuple(p.pattern for p in self._patterns)

    def capture(self, value: str | None) -> str | None:
        if value is None:
            return None
        for pattern in self._patterns:
            match = pattern.search(value)
            if match is None:
                continue
            captured = match.group(self.group)
            if captured is not None:
                return captured
        logger.debug("No pattern in %s captured group %r", self.patterns, self.group)
        return self.default

    def __repr__(self) -> str:
        return f"RegexGroup({self.patterns!r}, group={self.group!r})"
