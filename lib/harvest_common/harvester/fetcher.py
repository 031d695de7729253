"""
Static HTTP fetching for the fast path.

Fetches raw markup with httpx, retrying rate-limit, server and transport
errors with exponential backoff. No JavaScript is executed here; pages that
need it are handled by the render pipeline after the fast phase.
"""

import asyncio
import logging
from dataclasses import dataclass

import httpx

from harvest_common.exceptions import FetchError
from harvest_common.harvester.models import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml")


@dataclass
class FetchResult:
    """Result of a page fetch operation."""

    url: str
    status_code: int
    content: str
    content_type: str
    is_html: bool


class HttpFetcher:
    """Async HTTP fetcher with retry logic, shared across fast-path workers."""

    # Retryable status codes
    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: dict[str, str] | None = None,
        backoff_base: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize HTTP fetcher.

        Args:
            timeout: Request timeout in seconds
            max_retries: Maximum attempts for retryable errors
            user_agent: User-Agent header value
            headers: Optional extra headers
            backoff_base: Seconds of the first backoff step
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.user_agent = user_agent
        self.headers = headers or {}
        self.backoff_base = backoff_base
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HttpFetcher":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                    "Accept-Language": "en-US,en;q=0.5",
                    **self.headers,
                },
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch URL with retries.

        Args:
            url: URL to fetch

        Returns:
            FetchResult for the final response

        Raises:
            FetchError: On a non-retryable status or once retries are exhausted
        """
        await self.open()

        last_error = "no attempts made"
        last_status = None

        for attempt in range(self.max_retries):
            try:
                return await self._do_fetch(url)
            except httpx.HTTPStatusError as e:
                last_status = e.response.status_code
                last_error = f"HTTP {last_status}: {e.response.reason_phrase}"

                if not self._should_retry(last_status):
                    raise FetchError(url, last_error, last_status) from e

                backoff = self._backoff(attempt)
                if last_status == 429:
                    # Longer backoff for rate limiting
                    backoff *= 2
                logger.warning(
                    f"Retry {attempt + 1}/{self.max_retries} for {url} "
                    f"(status={last_status}, backoff={backoff}s)"
                )
            except httpx.TimeoutException as e:
                last_error = f"Timeout: {e}"
                backoff = self._backoff(attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{self.max_retries} for {url} "
                    f"(timeout, backoff={backoff}s)"
                )
            except httpx.RequestError as e:
                last_error = f"Request error: {e}"
                backoff = self._backoff(attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{self.max_retries} for {url} "
                    f"(error={e}, backoff={backoff}s)"
                )

            if attempt + 1 < self.max_retries:
                await asyncio.sleep(backoff)

        raise FetchError(url, last_error, last_status)

    async def _do_fetch(self, url: str) -> FetchResult:
        """Perform the actual HTTP fetch."""
        response = await self._client.get(url)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "")
        return FetchResult(
            url=str(response.url),  # May differ from request URL due to redirects
            status_code=response.status_code,
            content=response.text,
            content_type=content_type,
            is_html=any(kind in content_type.lower() for kind in HTML_CONTENT_TYPES),
        )

    def _backoff(self, attempt: int) -> float:
        return (2**attempt) * self.backoff_base

    def _should_retry(self, status_code: int) -> bool:
        """Check if status code is retryable."""
        return status_code in self.RETRYABLE_STATUS_CODES
