"""
Render fallback pipeline: browser-rendered extraction.

Only requests marked needs_render are handled. Rendered documents are
persisted without a completeness check; a page that fails to navigate still
yields whatever document the live page can provide.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from playwright.async_api import Error as PlaywrightError

from harvest_common.exceptions import DocumentValidationError
from harvest_common.harvester.browser import (
    BrowserSession,
    dismiss_consent,
    politeness_delay,
    wait_for_settle,
)
from harvest_common.harvester.dom import DomAccess, RenderedDom
from harvest_common.harvester.extractors import assemble_document
from harvest_common.harvester.frontier import FrontierRequest
from harvest_common.harvester.models import ContentDocument, RenderMode
from harvest_common.harvester.stats import RunStats
from harvest_common.storage import DatasetStore

logger = logging.getLogger(__name__)


class RenderPipeline:
    """
    Per-URL handler for the render phase.

    Args:
        browser: Shared browser session
        store: Dataset store for rendered documents
        stats: Run counters
        documents: Optional list collecting emitted documents
        navigation_timeout_ms: Bound on page.goto
        load_settle_timeout_ms: Bound on the network-idle wait
        consent_timeout_ms: Per-selector consent button timeout
        dom_factory: Builds the DomAccess for a page
        delay: Politeness delay awaited before navigation
    """

    def __init__(
        self,
        browser: BrowserSession,
        store: DatasetStore,
        stats: RunStats,
        documents: list[ContentDocument] | None = None,
        *,
        navigation_timeout_ms: int = 30000,
        load_settle_timeout_ms: int = 10000,
        consent_timeout_ms: int = 1000,
        dom_factory: Callable[[Any], DomAccess] = RenderedDom,
        delay: Callable[[], Awaitable[Any]] = politeness_delay,
    ):
        self.browser = browser
        self.store = store
        self.stats = stats
        self.documents = documents if documents is not None else []
        self.navigation_timeout_ms = navigation_timeout_ms
        self.load_settle_timeout_ms = load_settle_timeout_ms
        self.consent_timeout_ms = consent_timeout_ms
        self.dom_factory = dom_factory
        self.delay = delay

    async def handle(self, request: FrontierRequest) -> None:
        """Render, extract and persist one request."""
        url = request.url
        if not request.needs_render:
            logger.debug(f"[render] Skipping {url}: not marked for rendering")
            return

        self.stats.rendered += 1
        await self.delay()

        page = await self.browser.new_page()
        try:
            document = await self._render(page, url)
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                logger.debug(f"[render] Page close failed for {url}: {e}")

        try:
            document.validate()
        except DocumentValidationError as e:
            logger.error(f"[render] Dropping document: {e}")
            return

        await asyncio.to_thread(self.store.push, document.to_dict())
        self.documents.append(document)
        logger.info(f"[render] Harvested {url}")

    async def _render(self, page: Any, url: str) -> ContentDocument:
        response = None
        try:
            response = await page.goto(url, timeout=self.navigation_timeout_ms)
        except PlaywrightError as e:
            logger.warning(f"[render] Navigation failed for {url}: {e}")

        await dismiss_consent(page, self.consent_timeout_ms)
        await wait_for_settle(page, self.load_settle_timeout_ms)

        return await assemble_document(
            self.dom_factory(page),
            url=url,
            render_mode=RenderMode.RENDERED,
            http_status=response.status if response is not None else None,
            content_type=response.headers.get("content-type") if response is not None else None,
        )
