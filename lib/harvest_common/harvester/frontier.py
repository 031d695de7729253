"""
Work frontier shared by both pipelines.

A dedup-by-key asyncio queue. Each phase drains it with its own handler and
worker count; drain() returns only when every queued request has been
handled, which is what makes the fast/render barrier explicit.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from harvest_common.harvester.fingerprint import normalize_request_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrontierRequest:
    """
    One unit of work.

    Attributes:
        url: URL to process
        unique_key: Dedup key; a key is accepted at most once per frontier
        marker: Free-form flags for the handler (e.g. needs_render)
    """

    url: str
    unique_key: str
    marker: dict[str, Any] = field(default_factory=dict)

    @property
    def needs_render(self) -> bool:
        return bool(self.marker.get("needs_render"))


@dataclass
class DrainResult:
    """Outcome of draining the frontier once."""

    handled: int = 0
    skipped: int = 0
    failed: int = 0


class Frontier:
    """FIFO request queue with key-based deduplication."""

    def __init__(self):
        self._queue: asyncio.Queue[FrontierRequest] = asyncio.Queue()
        self._keys: set[str] = set()

    def __len__(self) -> int:
        return self._queue.qsize()

    def enqueue(
        self, url: str, unique_key: str | None = None, marker: dict[str, Any] | None = None
    ) -> bool:
        """
        Add a request unless its key was already enqueued.

        Args:
            url: URL to process
            unique_key: Dedup key (defaults to the normalized URL)
            marker: Flags passed through to the handler

        Returns:
            True if the request was queued, False if it was a duplicate
        """
        key = unique_key or normalize_request_key(url)
        if key in self._keys:
            logger.debug(f"Skipping duplicate request key: {key}")
            return False
        self._keys.add(key)
        self._queue.put_nowait(FrontierRequest(url=url, unique_key=key, marker=dict(marker or {})))
        return True

    async def drain(
        self,
        handler: Callable[[FrontierRequest], Awaitable[None]],
        concurrency: int,
        max_requests: int | None = None,
    ) -> DrainResult:
        """
        Process queued requests until the queue is empty.

        Runs ``concurrency`` workers. Requests beyond ``max_requests`` are
        dropped and counted as skipped. A handler exception is logged and
        counted; it never stops the drain.

        Args:
            handler: Coroutine function called once per request
            concurrency: Number of concurrent workers
            max_requests: Optional budget of handler calls for this drain

        Returns:
            DrainResult with handled, skipped and failed counts
        """
        result = DrainResult()

        async def worker() -> None:
            while True:
                request = await self._queue.get()
                try:
                    if max_requests is not None and result.handled >= max_requests:
                        result.skipped += 1
                        logger.warning(
                            f"Request budget of {max_requests} reached, skipping {request.url}"
                        )
                        continue
                    result.handled += 1
                    try:
                        await handler(request)
                    except Exception as e:
                        result.failed += 1
                        logger.error(f"Handler failed for {request.url}: {e}")
                finally:
                    self._queue.task_done()

        workers = [asyncio.create_task(worker()) for _ in range(max(1, concurrency))]
        try:
            await self._queue.join()
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        return result
