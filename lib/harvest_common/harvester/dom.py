"""
DOM access capability for field extraction.

Extractors are written once against the async DomAccess protocol. StaticDom
serves it from fetched markup (BeautifulSoup with the lxml parser) and
RenderedDom from a live Playwright page. Every operation is awaitable so the
same extractor code runs over both backends.
"""

from typing import Any, Protocol

from bs4 import BeautifulSoup, Comment
from bs4.element import Tag

from harvest_common.harvester.fingerprint import normalize_whitespace

# Elements whose text never counts as visible page text
INVISIBLE_TAGS = ["script", "style", "noscript", "template"]


class ElementHandle(Protocol):
    """A single element returned by a DOM query."""

    async def text(self) -> str | None: ...

    async def attribute(self, name: str) -> str | None: ...

    async def inner_html(self) -> str | None: ...


class DomAccess(Protocol):
    """Read-only view of one document, static or rendered."""

    async def query_all(self, selector: str) -> list[ElementHandle]: ...

    async def title(self) -> str: ...

    async def body_markup(self) -> str: ...

    async def markup(self) -> str: ...

    async def scripts_by_type(self, script_type: str) -> list[str]: ...

    async def visible_text(self) -> str: ...

    async def node_count(self) -> int: ...


class StaticElement:
    """ElementHandle over a BeautifulSoup tag."""

    def __init__(self, tag: Tag):
        self._tag = tag

    async def text(self) -> str | None:
        return self._tag.get_text()

    async def attribute(self, name: str) -> str | None:
        value = self._tag.get(name)
        if value is None:
            return None
        # Multi-valued attributes (class, rel) come back as lists
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def inner_html(self) -> str | None:
        return self._tag.decode_contents()


class StaticDom:
    """
    DomAccess over statically fetched markup.

    Args:
        html: Raw HTML document
    """

    def __init__(self, html: str):
        self._html = html
        self.soup = BeautifulSoup(html, "lxml")

    async def query_all(self, selector: str) -> list[StaticElement]:
        return [StaticElement(tag) for tag in self.soup.select(selector)]

    async def title(self) -> str:
        if self.soup.title is None:
            return ""
        return normalize_whitespace(self.soup.title.get_text())

    async def body_markup(self) -> str:
        if self.soup.body is None:
            return ""
        return self.soup.body.decode_contents()

    async def markup(self) -> str:
        return self._html

    async def scripts_by_type(self, script_type: str) -> list[str]:
        wanted = script_type.lower()
        return [
            script.get_text()
            for script in self.soup.find_all("script")
            if str(script.get("type", "")).strip().lower() == wanted
        ]

    async def visible_text(self) -> str:
        if self.soup.body is None:
            return ""
        parts = []
        for string in self.soup.body.find_all(string=True):
            if isinstance(string, Comment):
                continue
            if string.find_parent(INVISIBLE_TAGS) is not None:
                continue
            parts.append(string)
        return normalize_whitespace(" ".join(parts))

    async def node_count(self) -> int:
        return len(self.soup.find_all(True))


class RenderedElement:
    """ElementHandle over a Playwright element handle."""

    def __init__(self, handle: Any):
        self._handle = handle

    async def text(self) -> str | None:
        return await self._handle.text_content()

    async def attribute(self, name: str) -> str | None:
        return await self._handle.get_attribute(name)

    async def inner_html(self) -> str | None:
        return await self._handle.inner_html()


class RenderedDom:
    """
    DomAccess over a live Playwright page.

    Args:
        page: playwright.async_api.Page after navigation
    """

    def __init__(self, page: Any):
        self.page = page

    async def query_all(self, selector: str) -> list[RenderedElement]:
        handles = await self.page.query_selector_all(selector)
        return [RenderedElement(handle) for handle in handles]

    async def title(self) -> str:
        return normalize_whitespace(await self.page.title())

    async def body_markup(self) -> str:
        return await self.page.evaluate("() => document.body ? document.body.innerHTML : ''")

    async def markup(self) -> str:
        return await self.page.content()

    async def scripts_by_type(self, script_type: str) -> list[str]:
        return await self.page.evaluate(
            """(wanted) => Array.from(document.querySelectorAll('script'))
                .filter((s) => (s.getAttribute('type') || '').trim().toLowerCase() === wanted)
                .map((s) => s.textContent || '')""",
            script_type.lower(),
        )

    async def visible_text(self) -> str:
        text = await self.page.evaluate("() => document.body ? document.body.innerText : ''")
        return normalize_whitespace(text)

    async def node_count(self) -> int:
        return await self.page.evaluate("() => document.querySelectorAll('*').length")
