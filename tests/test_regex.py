# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for regex.py: pattern memo and named-group capture."""

from __future__ import annotations

import pytest

from entitymap.errors import RegexError
from entitymap.regex import RegexGroup, compile_pattern


class TestCompilePattern:
    def test_memoized(self):
        assert compile_pattern(r"\d+") is compile_pattern(r"\d+")

    def test_invalid(self):
        with pytest.raises(RegexError) as exc_info:
            compile_pattern("(unclosed")
        assert exc_info.value.pattern == "(unclosed"


class TestRegexGroup:
    def test_named_group_capture(self):
        assert RegexGroup((r"(?P<num>\d+)",), "num").capture("Price: 42") == "42"

    def test_first_pattern_with_group_wins(self):
        group = RegexGroup((r"EUR (?P<value>\d+)", r"(?P<value>\d+) NZD"), "value")
        assert group.capture("12 NZD") == "12"
        assert group.capture("EUR 7 or 9 NZD") == "7"

    def test_optional_group_unmatched_falls_through(self):
        group = RegexGroup((r"a(?P<value>\d+)?", r"(?P<value>\d+)"), "value")
        assert group.capture("a then 5") == "5"

    def test_default_when_nothing_matches(self):
        assert RegexGroup((r"(?P<value>\d+)",), default="n/a").capture("none") == "n/a"
        assert RegexGroup((r"(?P<value>\d+)",)).capture("none") is None

    def test_none_input(self):
        assert RegexGroup((r"(?P<value>.*)",), default="d").capture(None) is None

    def test_missing_group_rejected(self):
        with pytest.raises(RegexError):
            RegexGroup((r"(\d+)",), "value")

