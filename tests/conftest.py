# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import entitymap  # noqa: F401
except ImportError:
    raise ImportError("entitymap is not installed. Run: pip install -e '.[dev]'") from None

import pytest
import structlog


def pytest_collection_modifyitems(config, items):
    """Skip live-marked tests unless ENTITYMAP_LIVE_TESTS is set."""
    import os

    if os.environ.get("ENTITYMAP_LIVE_TESTS", "").strip().lower() in ("1", "true", "yes"):
        return
    skip_marker = pytest.mark.skip(reason="ENTITYMAP_LIVE_TESTS not set")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture(autouse=True)
def _clear_contextvars():
    """Entity context bound by one test must not leak into the next."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture(autouse=True)
def _no_env_config(monkeypatch):
    """Tests see default configuration regardless of the developer's shell."""
    import os

    for name in list(os.environ):
        if name.startswith("ENTITYMAP_") and name != "ENTITYMAP_LIVE_TESTS":
            monkeypatch.delenv(name, raising=False)
