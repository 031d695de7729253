"""
Fast-path pipeline: static fetch, extract, judge.

Every request ends in exactly one of two outcomes, accepted (document
persisted) or deferred (URL added to the fallback list), so
accepted + deferred == seen holds when the phase drains.
"""

import asyncio
import logging
from collections.abc import Iterator
from typing import Any

from harvest_common.exceptions import DocumentValidationError, FetchError
from harvest_common.harvester.completeness import CompletenessSpec, Verdict, judge, missing_fields
from harvest_common.harvester.dom import StaticDom
from harvest_common.harvester.extractors import assemble_document, extract_probe_fields
from harvest_common.harvester.fetcher import HttpFetcher
from harvest_common.harvester.frontier import FrontierRequest
from harvest_common.harvester.models import ContentDocument, RenderMode
from harvest_common.harvester.stats import RunStats
from harvest_common.storage import DatasetStore

logger = logging.getLogger(__name__)


class FallbackList:
    """Bounded, ordered, duplicate-free list of URLs deferred to rendering."""

    def __init__(self, limit: int):
        self.limit = limit
        self._urls: list[str] = []
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._urls)

    def __iter__(self) -> Iterator[str]:
        return iter(self._urls)

    @property
    def urls(self) -> list[str]:
        return list(self._urls)

    def add(self, url: str) -> bool:
        """
        Record a deferred URL.

        Returns:
            False if the URL was already listed or the list is full
        """
        if url in self._urls:
            return False
        if len(self._urls) >= self.limit:
            self.dropped += 1
            logger.warning(f"Fallback list full ({self.limit}), not rendering {url}")
            return False
        self._urls.append(url)
        return True


class FastPathPipeline:
    """
    Per-URL handler for the static phase.

    Args:
        fetcher: Shared HTTP fetcher
        store: Dataset store for accepted documents
        stats: Run counters
        completeness: Spec the partial document is judged against
        fallback: List receiving deferred URLs
        documents: Optional list collecting emitted documents
    """

    def __init__(
        self,
        fetcher: HttpFetcher,
        store: DatasetStore,
        stats: RunStats,
        completeness: CompletenessSpec,
        fallback: FallbackList,
        documents: list[ContentDocument] | None = None,
    ):
        self.fetcher = fetcher
        self.store = store
        self.stats = stats
        self.completeness = completeness
        self.fallback = fallback
        self.documents = documents if documents is not None else []

    async def handle(self, request: FrontierRequest) -> None:
        """Process one request; never raises."""
        url = request.url
        self.stats.seen += 1

        try:
            extracted = await self._extract(url)
        except FetchError as e:
            logger.warning(f"[fast] {e}")
            self._defer(url, "fetch failed")
            return
        except Exception as e:
            logger.error(f"[fast] Extraction error for {url}: {e}")
            self._defer(url, "extraction error")
            return

        if extracted is None:
            self._defer(url, "non-HTML response")
            return

        document, partial = extracted
        if judge(self.completeness, partial) is Verdict.DEFER:
            missing = ", ".join(missing_fields(self.completeness, partial))
            self._defer(url, f"missing {missing}")
            return

        try:
            document.validate()
            await asyncio.to_thread(self.store.push, document.to_dict())
        except DocumentValidationError as e:
            logger.error(f"[fast] {e}")
            self._defer(url, "validation failed")
            return
        except Exception as e:
            logger.error(f"[fast] Failed to persist {url}: {e}")
            self._defer(url, "persist failed")
            return

        self.stats.accepted += 1
        self.documents.append(document)
        logger.info(f"[fast] Harvested {url}")

    async def _extract(self, url: str) -> tuple[ContentDocument, dict[str, Any]] | None:
        result = await self.fetcher.fetch(url)
        if not result.is_html:
            return None

        dom = StaticDom(result.content)
        document = await assemble_document(
            dom,
            url=url,
            render_mode=RenderMode.FAST,
            http_status=result.status_code,
            content_type=result.content_type,
        )

        partial = document.to_dict()
        if not self.completeness.required_fields <= partial.keys():
            partial.update(await extract_probe_fields(dom))
        return document, partial

    def _defer(self, url: str, reason: str) -> None:
        self.stats.deferred += 1
        self.fallback.add(url)
        logger.info(f"[fast] Deferring {url} to render ({reason})")
