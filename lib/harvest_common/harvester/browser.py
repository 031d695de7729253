"""
Playwright browser session for the render pipeline.

One browser and one context are shared by all render workers. The context
aborts image, font, media and stylesheet requests, and every page gets
consent overlays hidden or accepted before extraction.
"""

import asyncio
import logging
import random
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from harvest_common.harvester.models import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media", "stylesheet"})

CONSENT_HIDE_CSS = """
[id*="cookie" i],
[id*="consent" i],
[class*="cookie" i],
[class*="consent" i],
[id*="gdpr" i],
[class*="gdpr" i] {
  display: none !important;
}
"""

# Tried in order; the first visible match is clicked
CONSENT_ACCEPT_SELECTORS = (
    'button:has-text("Acceptera")',
    'button:has-text("Accept")',
    'button:has-text("Godkänn")',
    '[id*="accept"]',
    '[class*="accept"]',
    '[aria-label*="accept" i]',
)

CONSENT_CLICK_PAUSE_S = 0.5
POLITENESS_DELAY_RANGE_S = (0.2, 0.6)


class BrowserSession:
    """Chromium browser plus a single context shared across render workers."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        headless: bool = True,
        blocked_resource_types: frozenset[str] = BLOCKED_RESOURCE_TYPES,
    ):
        self.user_agent = user_agent
        self.headless = headless
        self.blocked_resource_types = blocked_resource_types
        self._playwright = None
        self._browser = None
        self._context = None

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def start(self) -> None:
        """
        Launch the browser and create the shared context.

        Raises:
            PlaywrightError: If the browser cannot be launched (for example,
                when the browser binaries were never installed). Anything
                started so far is closed first.
        """
        if self._context is not None:
            return
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            self._context = await self._browser.new_context(user_agent=self.user_agent)
            await self._context.route("**/*", self._route_handler)
        except PlaywrightError as e:
            logger.error(f"Failed to start browser session: {e}")
            await self.close()
            raise
        logger.info(
            f"Browser session started (headless={self.headless}, "
            f"blocking={','.join(sorted(self.blocked_resource_types))})"
        )

    async def close(self) -> None:
        """Close context, browser and Playwright, in that order."""
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def new_page(self) -> Any:
        if self._context is None:
            await self.start()
        return await self._context.new_page()

    async def _route_handler(self, route) -> None:
        """Abort heavy resources that never affect extracted content."""
        if route.request.resource_type in self.blocked_resource_types:
            await route.abort()
            return
        await route.continue_()


async def dismiss_consent(page: Any, timeout_ms: int = 1000) -> str | None:
    """
    Accept and hide cookie/consent overlays.

    Clicks the first accept-button selector that is visible right now, then
    injects a CSS rule hiding common overlay containers. Visibility checks
    do not wait, so a page without a banner costs no timeouts. Failures are
    never raised.

    Args:
        page: Playwright page after navigation
        timeout_ms: Click timeout for a visible button

    Returns:
        The selector that was clicked, or None
    """
    clicked = None
    for selector in CONSENT_ACCEPT_SELECTORS:
        button = page.locator(selector).first
        try:
            if not await button.is_visible():
                continue
            await button.click(timeout=timeout_ms)
        except PlaywrightError as e:
            logger.debug(f"Consent click via {selector} failed: {e}")
            continue
        logger.debug(f"Consent dismissed via {selector}")
        await asyncio.sleep(CONSENT_CLICK_PAUSE_S)
        clicked = selector
        break

    # Must follow the clicks: the rule also hides accept buttons inside overlays
    try:
        await page.add_style_tag(content=CONSENT_HIDE_CSS)
    except PlaywrightError as e:
        logger.debug(f"Consent CSS injection failed: {e}")

    return clicked


async def wait_for_settle(page: Any, timeout_ms: int = 10000) -> bool:
    """
    Wait for network idle, bounded by ``timeout_ms``.

    Returns:
        False if the wait timed out or failed; extraction continues either way
    """
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
        return True
    except PlaywrightError as e:
        logger.debug(f"Load settle wait ended early: {e}")
        return False


async def politeness_delay(
    low: float = POLITENESS_DELAY_RANGE_S[0], high: float = POLITENESS_DELAY_RANGE_S[1]
) -> float:
    """Sleep a random interval before navigation and return its length."""
    delay = random.uniform(low, high)
    await asyncio.sleep(delay)
    return delay
