# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Value reader abstraction: how the engine queries a page.

Defines ``ValueReader`` (page-level queries plus navigation) and
``ElementHandle`` (a located node), both runtime-checkable Protocols, and
``ElementValueReader``, a driver-agnostic reader scoped to one element.
Concrete readers live in ``html.py`` (lxml + httpx) and
``playwright_reader.py``.

Every failure surfaces as ``ValueReaderError``; a required element that is
missing raises ``ElementNotFoundError``.

Dependencies: errors.py only.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .errors import ElementNotFoundError

# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class ElementHandle(Protocol):
    """A located element that supports relative queries."""

    @property
    def text(self) -> str: ...

    def get_attribute(self, name: str) -> str | None: ...

    def find_element(self, path: str, optional: bool = False) -> ElementHandle | None: ...

    def find_elements(self, path: str) -> list[ElementHandle]: ...

    def exists(self) -> bool: ...


@runtime_checkable
class ValueReader(Protocol):
    """Read-side interface the engine needs from a browsing session."""

    def get_current_url(self) -> str: ...

    def get_element_text(self, path: str, optional: bool = False) -> str | None: ...

    def get_element_texts(self, path: str) -> list[str]: ...

    def get_element(self, path: str, optional: bool = False) -> ElementHandle | None: ...

    def get_elements(self, path: str) -> list[ElementHandle]: ...

    def get_attribute(self, path: str, attribute: str, optional: bool = False) -> str | None: ...

    def get_attributes(self, path: str, attribute: str) -> list[str | None]: ...

    def navigate_to(self, url: str) -> None: ...

    def navigate_back(self) -> None: ...

    def open_new_window(self) -> None: ...

    def close_window(self) -> None: ...

    def get_session(self) -> Any: ...


def missing_element(path: str, optional: bool) -> None:
    """Shared absent-element policy: ``None`` when optional, else raise."""
    if optional:
        return None
    raise ElementNotFoundError(f"No element found for path {path!r}", path=path)


# ---------------------------------------------------------------------------
# Element-scoped reader
# ---------------------------------------------------------------------------


class ElementValueReader:
    """Reader whose path queries are relative to ``element``.

    URL and navigation calls delegate to the parent reader, so a nested
    entity built from a sub-element still sees the page it lives on.
    """

    def __init__(self, parent: ValueReader, element: ElementHandle) -> None:
        self._parent = parent
        self._element = element

    @property
    def element(self) -> ElementHandle:
        return self._element

    @property
    def parent(self) -> ValueReader:
        return self._parent

    def get_current_url(self) -> str:
        return self._parent.get_current_url()

    def get_element(self, path: str, optional: bool = False) -> ElementHandle | None:
        found = self._element.find_element(path, optional=True)
        if found is None:
            return missing_element(path, optional)
        return found

    def get_elements(self, path: str) -> list[ElementHandle]:
        return self._element.find_elements(path)

    def get_element_text(self, path: str, optional: bool = False) -> str | None:
        found = self.get_element(path, optional)
        return None if found is None else found.text

    def get_element_texts(self, path: str) -> list[str]:
        return [e.text for e in self._element.find_elements(path)]

    def get_attribute(self, path: str, attribute: str, optional: bool = False) -> str | None:
        found = self.get_element(path, optional)
        return None if found is None else found.get_attribute(attribute)

    def get_attributes(self, path: str, attribute: str) -> list[str | None]:
        return [e.get_attribute(attribute) for e in self._element.find_elements(path)]

    def navigate_to(self, url: str) -> None:
        self._parent.navigate_to(url)

    def navigate_back(self) -> None:
        self._parent.navigate_back()

    def open_new_window(self) -> None:
        self._parent.open_new_window()

    def close_window(self) -> None:
        self._parent.close_window()

    def get_session(self) -> Any:
        return self._parent.get_session()

    def __repr__(self) -> str:
        return f"ElementValueReader({self._element!r})"


def page_reader(reader: ValueReader) -> ValueReader:
    """The page-level reader behind any number of element scopes."""
    while isinstance(reader, ElementValueReader):
        reader = reader.parent
    return reader
