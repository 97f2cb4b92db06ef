# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Static HTML value reader: httpx for fetching, lxml for XPath.

``HtmlSession`` keeps one history stack per window, so ``navigate_back``
and ``close_window`` behave like a browser without running one. Pages can
also be loaded from a string (``HtmlSession.from_html``) for offline use.

XPath results that are strings (``//a/@href``, ``//p/text()``) are
returned as text-only handles.

Below the document root an absolute path is evaluated relative to the
element (``//b`` behaves as ``.//b``), as Playwright does for ``xpath=``
locators chained off an element.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
import lxml.html
from lxml import etree

from .config import DEFAULT_USER_AGENT, EngineConfig
from .errors import ValueReaderError
from .reader import ElementHandle, missing_element

logger = logging.getLogger(__name__)

_EMPTY_DOCUMENT = "<html><body></body></html>"


def parse_html(text: str) -> lxml.html.HtmlElement:
    if not text or not text.strip():
        text = _EMPTY_DOCUMENT
    try:
        return lxml.html.document_fromstring(text)
    except (etree.ParserError, ValueError) as e:
        raise ValueReaderError(f"Cannot parse HTML: {e}") from e


# ---------------------------------------------------------------------------
# Element handle
# ---------------------------------------------------------------------------


class LxmlElement:
    """ElementHandle over an lxml node or an XPath string result."""

    __slots__ = ("_node",)

    def __init__(self, node: Any) -> None:
        self._node = node

    @property
    def node(self) -> Any:
        return self._node

    @property
    def text(self) -> str:
        if isinstance(self._node, str):
            return str(self._node).strip()
        return (self._node.text_content() or "").strip()

    def get_attribute(self, name: str) -> str | None:
        if isinstance(self._node, str):
            return None
        return self._node.get(name)

    def _xpath(self, path: str) -> list[Any]:
        if isinstance(self._node, str):
            raise ValueReaderError(f"Cannot evaluate {path!r} against a text result")
        if path.startswith("/") and self._node.getparent() is not None:
            path = "." + path
        try:
            result = self._node.xpath(path)
        except etree.XPathError as e:
            raise ValueReaderError(f"Invalid XPath {path!r}: {e}") from e
        if isinstance(result, list):
            return result
        # Scalar XPath (count(), string(), boolean()) yields one value
        return [str(result)]

    def find_element(self, path: str, optional: bool = False) -> ElementHandle | None:
        nodes = self._xpath(path)
        if not nodes:
            return missing_element(path, optional)
        return LxmlElement(nodes[0])

    def find_elements(self, path: str) -> list[ElementHandle]:
        return [LxmlElement(n) for n in self._xpath(path)]

    def exists(self) -> bool:
        return self._node is not None

    def __repr__(self) -> str:
        if isinstance(self._node, str):
            return f"LxmlElement(text={str(self._node)[:30]!r})"
        return f"LxmlElement(<{self._node.tag}>)"


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class HtmlPage:
    url: str
    root: lxml.html.HtmlElement


class HtmlSession:
    """Per-window page history over an httpx client."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._user_agent = user_agent
        self._windows: list[list[HtmlPage]] = [[]]

    @classmethod
    def from_config(cls, config: EngineConfig, client: httpx.Client | None = None) -> HtmlSession:
        return cls(client, timeout=config.http_timeout, user_agent=config.user_agent)

    @classmethod
    def from_html(cls, html: str, url: str = "about:blank", client: httpx.Client | None = None) -> HtmlSession:
        session = cls(client)
        session.load_html(html, url)
        return session

    # -- Pages --

    @property
    def _history(self) -> list[HtmlPage]:
        return self._windows[-1]

    @property
    def current_page(self) -> HtmlPage:
        if not self._history:
            raise ValueReaderError("No page loaded in the current window")
        return self._history[-1]

    @property
    def history_depth(self) -> int:
        return len(self._history)

    @property
    def window_count(self) -> int:
        return len(self._windows)

    def load_html(self, html: str, url: str = "about:blank") -> None:
        self._history.append(HtmlPage(url, parse_html(html)))

    # -- Navigation --

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self._timeout,
                headers={"User-Agent": self._user_agent},
                follow_redirects=True,
            )
        return self._client

    def navigate_to(self, url: str) -> None:
        try:
            response = self._get_client().get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ValueReaderError(f"Cannot load {url}: {e}") from e
        final_url = str(response.url)
        logger.debug("Loaded %s (%d bytes)", final_url, len(response.content))
        self._history.append(HtmlPage(final_url, parse_html(response.text)))

    def navigate_back(self) -> None:
        if len(self._history) < 2:
            raise ValueReaderError("No previous page to go back to")
        self._history.pop()

    def open_new_window(self) -> None:
        self._windows.append([])

    def close_window(self) -> None:
        if len(self._windows) < 2:
            raise ValueReaderError("Cannot close the last window")
        self._windows.pop()

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
        self._client = None

    def __enter__(self) -> HtmlSession:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class HtmlValueReader:
    """ValueReader over the current page of an ``HtmlSession``."""

    def __init__(self, session: HtmlSession) -> None:
        self._session = session

    def _root(self) -> LxmlElement:
        return LxmlElement(self._session.current_page.root)

    def get_current_url(self) -> str:
        return self._session.current_page.url

    def get_element(self, path: str, optional: bool = False) -> ElementHandle | None:
        return self._root().find_element(path, optional)

    def get_elements(self, path: str) -> list[ElementHandle]:
        return self._root().find_elements(path)

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
        self._session.navigate_to(url)

    def navigate_back(self) -> None:
        self._session.navigate_back()

    def open_new_window(self) -> None:
        self._session.open_new_window()

    def close_window(self) -> None:
        self._session.close_window()

    def get_session(self) -> HtmlSession:
        return self._session
