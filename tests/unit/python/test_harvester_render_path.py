"""Unit tests for the render pipeline and browser helpers."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from harvest_common.exceptions import DocumentValidationError
from harvest_common.harvester.browser import (
    CONSENT_ACCEPT_SELECTORS,
    BrowserSession,
    dismiss_consent,
    politeness_delay,
    wait_for_settle,
)
from harvest_common.harvester.dom import StaticDom
from harvest_common.harvester.frontier import FrontierRequest
from harvest_common.harvester.models import ContentDocument, RenderMode
from harvest_common.harvester.render_path import RenderPipeline
from harvest_common.harvester.stats import RunStats

RENDERED_HTML = (
    "<html><head><title>Widget Shop</title></head>"
    "<body><main><h1>Widgets</h1><p>Rendered after scripts ran.</p></main></body></html>"
)


def make_page(status=200, goto_error=None):
    page = MagicMock()
    response = MagicMock()
    response.status = status
    response.headers = {"content-type": "text/html"}
    page.goto = AsyncMock(return_value=response, side_effect=goto_error)
    page.close = AsyncMock()
    return page


def make_browser(page):
    browser = MagicMock()
    browser.new_page = AsyncMock(return_value=page)
    return browser


def render_request(url="https://spa.test/", needs_render=True):
    return FrontierRequest(
        url=url,
        unique_key=f"{url}#render-fallback",
        marker={"needs_render": needs_render},
    )


@pytest.fixture
def no_page_waits():
    with (
        patch(
            "harvest_common.harvester.render_path.dismiss_consent", new_callable=AsyncMock
        ) as consent,
        patch(
            "harvest_common.harvester.render_path.wait_for_settle", new_callable=AsyncMock
        ) as settle,
    ):
        yield consent, settle


def make_pipeline(browser, store, html=RENDERED_HTML):
    stats = RunStats()
    pipeline = RenderPipeline(
        browser,
        store,
        stats,
        navigation_timeout_ms=5000,
        load_settle_timeout_ms=2000,
        consent_timeout_ms=500,
        dom_factory=lambda page: StaticDom(html),
        delay=AsyncMock(),
    )
    return pipeline, stats


class TestRenderPipeline:
    """Tests for RenderPipeline.handle."""

    @pytest.mark.asyncio
    async def test_renders_and_persists(self, memory_store, no_page_waits):
        consent, settle = no_page_waits
        page = make_page()
        pipeline, stats = make_pipeline(make_browser(page), memory_store)

        await pipeline.handle(render_request())

        assert stats.rendered == 1
        assert len(memory_store.records) == 1
        record = memory_store.records[0]
        assert record["render_mode"] == "rendered"
        assert record["title"] == "Widget Shop"
        assert record["http_status"] == 200
        assert record["content_type"] == "text/html"
        page.goto.assert_awaited_once_with("https://spa.test/", timeout=5000)
        consent.assert_awaited_once_with(page, 500)
        settle.assert_awaited_once_with(page, 2000)
        page.close.assert_awaited_once()
        pipeline.delay.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_incomplete_rendered_page_still_persisted(self, memory_store, no_page_waits):
        pipeline, stats = make_pipeline(
            make_browser(make_page()), memory_store, html="<html><body></body></html>"
        )

        await pipeline.handle(render_request())

        assert stats.rendered == 1
        assert len(memory_store.records) == 1
        assert pipeline.documents[0].render_mode is RenderMode.RENDERED

    @pytest.mark.asyncio
    async def test_skips_unmarked_request(self, memory_store, no_page_waits):
        browser = make_browser(make_page())
        pipeline, stats = make_pipeline(browser, memory_store)

        await pipeline.handle(render_request(needs_render=False))

        assert stats.rendered == 0
        browser.new_page.assert_not_awaited()
        assert memory_store.records == []

    @pytest.mark.asyncio
    async def test_navigation_failure_still_extracts(self, memory_store, no_page_waits):
        page = make_page(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
        pipeline, stats = make_pipeline(make_browser(page), memory_store)

        await pipeline.handle(render_request())

        assert stats.rendered == 1
        assert memory_store.records[0]["http_status"] is None
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_closed_when_render_raises(self, memory_store, no_page_waits):
        page = make_page()
        pipeline, _ = make_pipeline(make_browser(page), memory_store)
        pipeline.dom_factory = MagicMock(side_effect=RuntimeError("page crashed"))

        with pytest.raises(RuntimeError):
            await pipeline.handle(render_request())

        page.close.assert_awaited_once()
        assert memory_store.records == []

    @pytest.mark.asyncio
    async def test_invalid_document_is_dropped(self, memory_store, no_page_waits):
        pipeline, stats = make_pipeline(make_browser(make_page()), memory_store)

        with patch.object(
            ContentDocument,
            "validate",
            side_effect=DocumentValidationError("https://spa.test/", ["bad fingerprint"]),
        ):
            await pipeline.handle(render_request())

        assert stats.rendered == 1
        assert memory_store.records == []
        assert pipeline.documents == []


def locator_page(visible_selector=None, calls=None):
    """Page where only ``visible_selector`` matches a visible button."""
    calls = calls if calls is not None else []
    page = MagicMock()
    page.add_style_tag = AsyncMock(side_effect=lambda content: calls.append("css"))
    locators = {}

    def locator(selector):
        loc = MagicMock()
        button = loc.first
        button.is_visible = AsyncMock(return_value=selector == visible_selector)
        button.click = AsyncMock(side_effect=lambda timeout: calls.append(("click", selector)))
        button.wait_for = AsyncMock()
        locators[selector] = button
        return loc

    page.locator = MagicMock(side_effect=locator)
    return page, locators


class TestDismissConsent:
    """Tests for dismiss_consent."""

    @pytest.mark.asyncio
    @patch("harvest_common.harvester.browser.asyncio.sleep", new_callable=AsyncMock)
    async def test_clicks_first_visible_selector(self, mock_sleep):
        target = CONSENT_ACCEPT_SELECTORS[1]
        page, locators = locator_page(visible_selector=target)

        clicked = await dismiss_consent(page, timeout_ms=500)

        assert clicked == target
        locators[target].click.assert_awaited_once_with(timeout=500)
        locators[CONSENT_ACCEPT_SELECTORS[0]].click.assert_not_awaited()
        # Later selectors are never tried
        assert CONSENT_ACCEPT_SELECTORS[2] not in locators
        page.add_style_tag.assert_awaited_once()
        mock_sleep.assert_awaited_once()

    @pytest.mark.asyncio
    @patch("harvest_common.harvester.browser.asyncio.sleep", new_callable=AsyncMock)
    async def test_click_happens_before_overlays_are_hidden(self, _mock_sleep):
        calls = []
        target = CONSENT_ACCEPT_SELECTORS[0]
        page, _ = locator_page(visible_selector=target, calls=calls)

        await dismiss_consent(page)

        assert calls == [("click", target), "css"]

    @pytest.mark.asyncio
    @patch("harvest_common.harvester.browser.asyncio.sleep", new_callable=AsyncMock)
    async def test_no_banner_costs_no_waits(self, mock_sleep):
        page, locators = locator_page(visible_selector=None)

        assert await dismiss_consent(page) is None

        assert list(locators) == list(CONSENT_ACCEPT_SELECTORS)
        for button in locators.values():
            button.wait_for.assert_not_awaited()
            button.click.assert_not_awaited()
        mock_sleep.assert_not_awaited()
        page.add_style_tag.assert_awaited_once()

    @pytest.mark.asyncio
    @patch("harvest_common.harvester.browser.asyncio.sleep", new_callable=AsyncMock)
    async def test_failed_click_tries_next_selector(self, _mock_sleep):
        page, locators = locator_page(visible_selector=None)
        first, second = CONSENT_ACCEPT_SELECTORS[:2]

        def locator(selector):
            loc = MagicMock()
            loc.first.is_visible = AsyncMock(return_value=selector in (first, second))
            if selector == first:
                loc.first.click = AsyncMock(side_effect=PlaywrightError("element detached"))
            else:
                loc.first.click = AsyncMock()
            locators[selector] = loc.first
            return loc

        page.locator = MagicMock(side_effect=locator)

        assert await dismiss_consent(page) == second
        locators[second].click.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_css_injection_failure_is_ignored(self):
        page, _ = locator_page(visible_selector=None)
        page.add_style_tag = AsyncMock(side_effect=PlaywrightError("Target closed"))

        assert await dismiss_consent(page) is None


class TestWaitForSettle:
    """Tests for wait_for_settle."""

    @pytest.mark.asyncio
    async def test_settled(self):
        page = MagicMock()
        page.wait_for_load_state = AsyncMock()

        assert await wait_for_settle(page, timeout_ms=1234) is True
        page.wait_for_load_state.assert_awaited_once_with("networkidle", timeout=1234)

    @pytest.mark.asyncio
    async def test_timeout_is_not_raised(self):
        page = MagicMock()
        page.wait_for_load_state = AsyncMock(side_effect=PlaywrightError("Timeout"))

        assert await wait_for_settle(page) is False


class TestPolitenessDelay:
    """Tests for politeness_delay."""

    @pytest.mark.asyncio
    @patch("harvest_common.harvester.browser.asyncio.sleep", new_callable=AsyncMock)
    async def test_delay_within_range(self, mock_sleep):
        delay = await politeness_delay(0.2, 0.6)

        assert 0.2 <= delay <= 0.6
        mock_sleep.assert_awaited_once_with(delay)


def fake_playwright():
    context = MagicMock()
    context.route = AsyncMock()
    context.new_page = AsyncMock(return_value="page")
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    manager = MagicMock()
    manager.start = AsyncMock(return_value=playwright)
    return manager, playwright, browser, context


class TestBrowserSession:
    """Tests for BrowserSession."""

    @pytest.mark.asyncio
    async def test_start_and_close(self):
        manager, playwright, browser, context = fake_playwright()

        with patch("harvest_common.harvester.browser.async_playwright", return_value=manager):
            async with BrowserSession(user_agent="TestAgent/1.0", headless=True) as session:
                page = await session.new_page()

        assert page == "page"
        playwright.chromium.launch.assert_awaited_once_with(headless=True)
        browser.new_context.assert_awaited_once_with(user_agent="TestAgent/1.0")
        context.route.assert_awaited_once_with("**/*", session._route_handler)
        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_launch_stops_playwright(self):
        manager, playwright, _, _ = fake_playwright()
        playwright.chromium.launch = AsyncMock(
            side_effect=PlaywrightError("Executable doesn't exist")
        )

        with patch("harvest_common.harvester.browser.async_playwright", return_value=manager):
            session = BrowserSession()
            with pytest.raises(PlaywrightError):
                await session.start()

        playwright.stop.assert_awaited_once()
        assert session._playwright is None

    @pytest.mark.asyncio
    async def test_failed_context_closes_browser(self):
        manager, playwright, browser, _ = fake_playwright()
        browser.new_context = AsyncMock(side_effect=PlaywrightError("context failed"))

        with patch("harvest_common.harvester.browser.async_playwright", return_value=manager):
            with pytest.raises(PlaywrightError):
                await BrowserSession().start()

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        manager, playwright, _, _ = fake_playwright()

        with patch("harvest_common.harvester.browser.async_playwright", return_value=manager):
            session = BrowserSession()
            await session.start()
            await session.start()
            await session.close()

        playwright.chromium.launch.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resource_type", ["image", "font", "media", "stylesheet"])
    async def test_route_blocks_heavy_resources(self, resource_type):
        route = MagicMock()
        route.request.resource_type = resource_type
        route.abort = AsyncMock()
        route.continue_ = AsyncMock()

        await BrowserSession()._route_handler(route)

        route.abort.assert_awaited_once()
        route.continue_.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resource_type", ["document", "script", "xhr", "fetch"])
    async def test_route_allows_content_resources(self, resource_type):
        route = MagicMock()
        route.request.resource_type = resource_type
        route.abort = AsyncMock()
        route.continue_ = AsyncMock()

        await BrowserSession()._route_handler(route)

        route.continue_.assert_awaited_once()
        route.abort.assert_not_awaited()
