"""Unit tests for the static and rendered DOM backends."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from harvest_common.harvester.dom import RenderedDom, StaticDom

PAGE = """
<html lang="en">
<head>
  <title>  Acme
    Widgets </title>
  <script type="application/ld+json">{"@type": "Organization"}</script>
  <script type="text/javascript">var tracking = true;</script>
</head>
<body>
  <div class="hero main">Hello <b>brave</b></div>
  <!-- a comment -->
  <script>console.log("hidden")</script>
  <style>p { color: red; }</style>
  <p>world</p>
</body>
</html>
"""


class TestStaticDom:
    """Tests for StaticDom."""

    @pytest.mark.asyncio
    async def test_title_is_normalized(self):
        assert await StaticDom(PAGE).title() == "Acme Widgets"

    @pytest.mark.asyncio
    async def test_missing_title(self):
        assert await StaticDom("<html><body></body></html>").title() == ""

    @pytest.mark.asyncio
    async def test_query_all_and_attribute(self):
        elements = await StaticDom(PAGE).query_all("div.hero")
        assert len(elements) == 1
        # Multi-valued attributes are joined like the DOM would report them
        assert await elements[0].attribute("class") == "hero main"
        assert await elements[0].attribute("missing") is None

    @pytest.mark.asyncio
    async def test_element_text_and_inner_html(self):
        (element,) = await StaticDom(PAGE).query_all("div.hero")
        assert await element.text() == "Hello brave"
        assert await element.inner_html() == "Hello <b>brave</b>"

    @pytest.mark.asyncio
    async def test_body_markup(self):
        dom = StaticDom("<html><head></head><body><p>Hi</p></body></html>")
        assert await dom.body_markup() == "<p>Hi</p>"

    @pytest.mark.asyncio
    async def test_markup_returns_source(self):
        assert await StaticDom(PAGE).markup() == PAGE

    @pytest.mark.asyncio
    async def test_scripts_by_type(self):
        scripts = await StaticDom(PAGE).scripts_by_type("application/ld+json")
        assert scripts == ['{"@type": "Organization"}']

    @pytest.mark.asyncio
    async def test_visible_text_skips_scripts_styles_and_comments(self):
        assert await StaticDom(PAGE).visible_text() == "Hello brave world"

    @pytest.mark.asyncio
    async def test_node_count(self):
        dom = StaticDom("<html><head></head><body><p>a</p></body></html>")
        assert await dom.node_count() == 4


class TestRenderedDom:
    """Tests for RenderedDom over a mocked Playwright page."""

    @pytest.mark.asyncio
    async def test_query_all_wraps_handles(self):
        handle = MagicMock()
        handle.text_content = AsyncMock(return_value="Welcome")
        handle.get_attribute = AsyncMock(return_value="https://example.com/about")
        handle.inner_html = AsyncMock(return_value="<b>Welcome</b>")
        page = MagicMock()
        page.query_selector_all = AsyncMock(return_value=[handle])

        elements = await RenderedDom(page).query_all("h1")

        page.query_selector_all.assert_awaited_once_with("h1")
        assert await elements[0].text() == "Welcome"
        assert await elements[0].attribute("href") == "https://example.com/about"
        assert await elements[0].inner_html() == "<b>Welcome</b>"

    @pytest.mark.asyncio
    async def test_title_is_normalized(self):
        page = MagicMock()
        page.title = AsyncMock(return_value="  Acme \n Widgets ")
        assert await RenderedDom(page).title() == "Acme Widgets"

    @pytest.mark.asyncio
    async def test_scripts_by_type_passes_lowercased_type(self):
        page = MagicMock()
        page.evaluate = AsyncMock(return_value=['{"@type": "Thing"}'])

        scripts = await RenderedDom(page).scripts_by_type("Application/LD+JSON")

        assert scripts == ['{"@type": "Thing"}']
        assert page.evaluate.await_args.args[1] == "application/ld+json"

    @pytest.mark.asyncio
    async def test_visible_text_is_normalized(self):
        page = MagicMock()
        page.evaluate = AsyncMock(return_value="Hello\n\n  world ")
        assert await RenderedDom(page).visible_text() == "Hello world"

    @pytest.mark.asyncio
    async def test_markup_uses_page_content(self):
        page = MagicMock()
        page.content = AsyncMock(return_value="<html></html>")
        assert await RenderedDom(page).markup() == "<html></html>"
