"""
Work router: two-phase harvest with a barrier.

Phase one drains the frontier with the fast-path handler. Only after it has
fully drained are the deferred URLs re-enqueued under a distinct key and
drained with the render handler. Stats are finalized after both phases.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Error as PlaywrightError

from harvest_common.exceptions import StatsInvariantError
from harvest_common.harvester.browser import BrowserSession, politeness_delay
from harvest_common.harvester.completeness import get_completeness_spec
from harvest_common.harvester.dom import DomAccess, RenderedDom
from harvest_common.harvester.fast_path import FallbackList, FastPathPipeline
from harvest_common.harvester.fetcher import HttpFetcher
from harvest_common.harvester.frontier import Frontier
from harvest_common.harvester.models import ContentDocument, HarvestConfig
from harvest_common.harvester.render_path import RenderPipeline
from harvest_common.harvester.stats import RunStats
from harvest_common.logging_utils import log_summary
from harvest_common.storage import DatasetStore

logger = logging.getLogger(__name__)

RENDER_KEY_SUFFIX = "#render-fallback"


def render_fallback_key(url: str) -> str:
    """Unique key for a URL's render request, distinct from its fast-path key."""
    return f"{url}{RENDER_KEY_SUFFIX}"


@dataclass
class HarvestResult:
    """Outcome of one harvest run."""

    stats: RunStats
    documents: list[ContentDocument] = field(default_factory=list)
    fallback_urls: list[str] = field(default_factory=list)
    render_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": self.stats.to_dict(),
            "documents": len(self.documents),
            "fallback_urls": list(self.fallback_urls),
            "render_error": self.render_error,
        }


class WorkRouter:
    """
    Runs a harvest over the configured seed URLs.

    Args:
        config: Run configuration (validated when the run starts)
        store: Dataset store for emitted documents
        fetcher: Optional HTTP fetcher (built from config when omitted)
        browser: Optional browser session (built from config when omitted)
        render_dom_factory: DomAccess builder for rendered pages
        render_delay: Politeness delay used by the render pipeline
    """

    def __init__(
        self,
        config: HarvestConfig,
        store: DatasetStore,
        *,
        fetcher: HttpFetcher | None = None,
        browser: BrowserSession | None = None,
        render_dom_factory: Callable[[Any], DomAccess] = RenderedDom,
        render_delay: Callable[[], Awaitable[Any]] = politeness_delay,
    ):
        self.config = config
        self.store = store
        self.frontier = Frontier()
        self._fetcher = fetcher
        self._browser = browser
        self._render_dom_factory = render_dom_factory
        self._render_delay = render_delay

    def enqueue(
        self, url: str, unique_key: str | None = None, marker: dict[str, Any] | None = None
    ) -> bool:
        """Add a request to the frontier; duplicates by key are ignored."""
        return self.frontier.enqueue(url, unique_key=unique_key, marker=marker)

    async def run(self) -> HarvestResult:
        """
        Execute both phases.

        Returns:
            HarvestResult with final stats, emitted documents and the URLs
            that were deferred to rendering. A browser that fails to start
            is reported in render_error and leaves those URLs unrendered.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        config = self.config
        config.validate()
        completeness = get_completeness_spec(config.completeness)

        start_time = time.time()
        stats = RunStats()
        documents: list[ContentDocument] = []
        fallback = FallbackList(config.fallback_limit)
        render_error: str | None = None

        for url in config.seed_urls:
            self.enqueue(url)

        logger.info(
            f"Starting fast phase: {len(self.frontier)} URLs, "
            f"concurrency={config.fast_concurrency}, completeness={completeness.name}"
        )
        fetcher = self._fetcher or HttpFetcher(
            timeout=config.request_timeout_s,
            max_retries=config.max_retries,
            user_agent=config.user_agent,
        )
        fast = FastPathPipeline(fetcher, self.store, stats, completeness, fallback, documents)
        async with fetcher:
            drained = await self.frontier.drain(
                fast.handle, config.fast_concurrency, config.max_requests_per_run
            )
        stats.skipped += drained.skipped

        # Barrier: the fast phase has fully drained
        try:
            stats.check_fast_path_invariant()
        except StatsInvariantError as e:
            logger.error(str(e))

        if len(fallback) > 0:
            for url in fallback:
                self.enqueue(
                    url, unique_key=render_fallback_key(url), marker={"needs_render": True}
                )

            logger.info(
                f"Starting render phase: {len(fallback)} URLs, "
                f"concurrency={config.render_concurrency}"
            )
            browser = self._browser or BrowserSession(
                user_agent=config.user_agent, headless=config.headless
            )
            render = RenderPipeline(
                browser,
                self.store,
                stats,
                documents,
                navigation_timeout_ms=config.navigation_timeout_ms,
                load_settle_timeout_ms=config.load_settle_timeout_ms,
                consent_timeout_ms=config.consent_timeout_ms,
                dom_factory=self._render_dom_factory,
                delay=self._render_delay,
            )
            try:
                async with browser:
                    drained = await self.frontier.drain(
                        render.handle, config.render_concurrency, config.max_requests_per_run
                    )
                stats.skipped += drained.skipped
            except PlaywrightError as e:
                render_error = f"Render phase aborted: {e}"
                logger.error(f"{render_error}; {len(fallback)} deferred URLs left unrendered")

        stats.finalize()
        logger.info(
            log_summary(
                "harvest_run",
                success=render_error is None,
                duration_ms=(time.time() - start_time) * 1000,
                documents=len(documents),
                error=render_error,
                collection=config.collection,
                fallback_dropped=fallback.dropped,
                stats=stats.to_dict(),
            )
        )
        return HarvestResult(
            stats=stats,
            documents=documents,
            fallback_urls=fallback.urls,
            render_error=render_error,
        )


async def harvest(config: HarvestConfig, store: DatasetStore, **kwargs: Any) -> HarvestResult:
    """Convenience wrapper: build a WorkRouter and run it."""
    return await WorkRouter(config, store, **kwargs).run()
