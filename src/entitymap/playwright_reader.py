# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Playwright value reader for pages that need a real browser.

Uses the sync API: entity construction is a synchronous depth-first walk.
Paths are XPath expressions, evaluated through ``xpath=`` locators.
Windows are tabs of one BrowserContext; the newest tab is current.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from playwright.sync_api import BrowserContext, Locator, Page, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from .config import DEFAULT_USER_AGENT, EngineConfig
from .errors import ValueReaderError
from .reader import ElementHandle, missing_element

logger = logging.getLogger(__name__)


@dataclass
class BrowserOptions:
    """Navigation options for the Playwright reader."""

    headless: bool = True
    timeout_ms: int = 30000
    wait_until: str = "load"
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_config(cls, config: EngineConfig) -> BrowserOptions:
        return cls(timeout_ms=int(config.http_timeout * 1000), user_agent=config.user_agent)


def _xpath(path: str) -> str:
    return f"xpath={path}"


# ---------------------------------------------------------------------------
# Element handle
# ---------------------------------------------------------------------------


class PlaywrightElement:
    """ElementHandle over a Playwright locator resolving to one element."""

    __slots__ = ("_locator",)

    def __init__(self, locator: Locator) -> None:
        self._locator = locator

    @property
    def locator(self) -> Locator:
        return self._locator

    @property
    def text(self) -> str:
        try:
            return (self._locator.text_content() or "").strip()
        except PlaywrightError as e:
            raise ValueReaderError(f"Cannot read element text: {e}") from e

    def get_attribute(self, name: str) -> str | None:
        try:
            return self._locator.get_attribute(name)
        except PlaywrightError as e:
            raise ValueReaderError(f"Cannot read attribute {name!r}: {e}") from e

    def find_element(self, path: str, optional: bool = False) -> ElementHandle | None:
        found = self._locator.locator(_xpath(path))
        try:
            count = found.count()
        except PlaywrightError as e:
            raise ValueReaderError(f"Cannot evaluate {path!r}: {e}") from e
        if count == 0:
            return missing_element(path, optional)
        return PlaywrightElement(found.first)

    def find_elements(self, path: str) -> list[ElementHandle]:
        try:
            return [PlaywrightElement(loc) for loc in self._locator.locator(_xpath(path)).all()]
        except PlaywrightError as e:
            raise ValueReaderError(f"Cannot evaluate {path!r}: {e}") from e

    def exists(self) -> bool:
        try:
            return self._locator.count() > 0
        except PlaywrightError:
            return False


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class PlaywrightValueReader:
    def __init__(self, page: Page, options: BrowserOptions | None = None) -> None:
        self._pages: list[Page] = [page]
        self._options = options or BrowserOptions()

    @property
    def page(self) -> Page:
        return self._pages[-1]

    @property
    def context(self) -> BrowserContext:
        return self.page.context

    def get_current_url(self) -> str:
        return self.page.url

    def get_element(self, path: str, optional: bool = False) -> ElementHandle | None:
        locator = self.page.locator(_xpath(path))
        try:
            count = locator.count()
        except PlaywrightError as e:
            raise ValueReaderError(f"Cannot evaluate {path!r}: {e}") from e
        if count == 0:
            return missing_element(path, optional)
        return PlaywrightElement(locator.first)

    def get_elements(self, path: str) -> list[ElementHandle]:
        try:
            return [PlaywrightElement(loc) for loc in self.page.locator(_xpath(path)).all()]
        except PlaywrightError as e:
            raise ValueReaderError(f"Cannot evaluate {path!r}: {e}") from e

    def get_element_text(self, path: str, optional: bool = False) -> str | None:
        found = self.get_element(path, optional)
        return None if found is None else found.text

    def get_element_texts(self, path: str) -> list[str]:
        return [e.text for e in self.get_elements(path)]

    def get_attribute(self, path: str, attribute: str, optional: bool = False) -> str | None:
        found = self.get_element(path, optional)
        return None if found is None else found.get_attribute(attribute)

    def get_attributes(self, path: str, attribute: str) -> list[str | None]:
        return [e.get_attribute(attribute) for e in self.get_elements(path)]

    def navigate_to(self, url: str) -> None:
        try:
            self.page.goto(url, wait_until=self._options.wait_until, timeout=self._options.timeout_ms)
        except PlaywrightError as e:
            raise ValueReaderError(f"Cannot navigate to {url}: {e}") from e
        logger.debug("Navigated to %s", self.page.url)

    def navigate_back(self) -> None:
        try:
            response = self.page.go_back(wait_until=self._options.wait_until, timeout=self._options.timeout_ms)
        except PlaywrightError as e:
            raise ValueReaderError(f"Cannot navigate back: {e}") from e
        if response is None:
            raise ValueReaderError("No previous page to go back to")

    def open_new_window(self) -> None:
        try:
            self._pages.append(self.context.new_page())
        except PlaywrightError as e:
            raise ValueReaderError(f"Cannot open a new window: {e}") from e

    def close_window(self) -> None:
        if len(self._pages) < 2:
            raise ValueReaderError("Cannot close the last window")
        page = self._pages.pop()
        try:
            page.close()
        except PlaywrightError as e:
            raise ValueReaderError(f"Cannot close window: {e}") from e

    def get_session(self) -> BrowserContext:
        return self.context


@contextmanager
def open_browser(options: BrowserOptions | None = None) -> Iterator[PlaywrightValueReader]:
    """Launch headless Chromium and yield a reader on a blank page."""
    options = options or BrowserOptions()
    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=options.headless)
        try:
            context = browser.new_context(user_agent=options.user_agent)
            yield PlaywrightValueReader(context.new_page(), options)
        finally:
            browser.close()
