"""
Field extraction over the DOM access capability.

Every extractor reads one facet of a page through DomAccess, so the same code
serves fetched markup and rendered pages. Extractors never raise: a failure
degrades the facet to its empty value and is logged at DEBUG. Both pipelines
build documents through assemble_document, which keeps the output schema
identical for either render mode.
"""

import json
import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from typing import Any, TypeVar
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup
from readability import Document as ReadabilityDocument

from harvest_common.harvester.dom import DomAccess
from harvest_common.harvester.fingerprint import compute_fingerprint, normalize_whitespace
from harvest_common.harvester.models import (
    ALL_TEXT_LIMIT,
    EVIDENCE_SNIPPET_LIMIT,
    JSONLD_ITEM_LIMIT,
    MAIN_TEXT_LIMIT,
    MAX_EMAIL_LENGTH,
    MAX_EVIDENCE,
    MAX_LINKS,
    MAX_META_ENTRIES,
    MAX_PHONES,
    MAX_TEXT_BLOCKS,
    TEXT_BLOCK_LIMIT,
    Contacts,
    ContentDocument,
    DomStats,
    Headings,
    Links,
    RenderMode,
    utc_now,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

META_ALLOW_LIST = frozenset(
    {
        "keywords",
        "author",
        "viewport",
        "robots",
        "theme-color",
        "apple-mobile-web-app-title",
    }
)

# Keyword order decides which snippet wins, not position in the text
EVIDENCE_KEYWORDS = ("terms", "policy", "privacy", "cookie", "villkor", "integritet")

MAIN_CONTAINER_SELECTORS = ("main", "article", '[role="main"]')
MAIN_CONTAINER_MIN_CHARS = 100
BLOCK_SELECTOR = "p, div"
BLOCK_MIN_CHARS = 200

MAX_SCHEMA_DEPTH = 64
MIN_PHONE_DIGITS = 7
PROBE_TEXT_LIMIT = 200

SERVICE_TITLE_SELECTOR = (
    'h1, h2:first-of-type, [class*="service-title" i], [class*="service-name" i], '
    '[id*="service-title" i], [class*="title" i], [itemprop="name"]'
)
PROVIDER_SELECTOR = (
    '[class*="provider" i], [id*="provider" i], [class*="company" i], '
    '[class*="business" i], [itemprop="provider"], [itemprop="brand"], '
    'footer [class*="company" i]'
)
PRICE_SELECTOR = (
    '[class*="price" i], [id*="price" i], [data-price], [itemprop="price"], '
    '.price, [class*="pris" i]'
)

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_PATTERN = re.compile(r"(?:\+?\d{1,3}[-.\s]?)?\(?\d{1,4}\)?[-.\s]?\d{1,4}[-.\s]?\d{1,9}")
PRICE_PATTERN = re.compile(r"\d[\d\s.,]*(?:kr|sek|€|\$|£|:-)", re.IGNORECASE)


def _unique(items: Iterable[str]) -> list[str]:
    """Deduplicate while keeping first-occurrence order."""
    return list(dict.fromkeys(items))


async def _guarded(facet: str, url: str, awaitable: Awaitable[T], default: T) -> T:
    try:
        return await awaitable
    except Exception as e:
        logger.debug(f"{facet} extraction failed for {url}: {e}")
        return default


async def _first_attribute(dom: DomAccess, selector: str, name: str) -> str | None:
    for element in await dom.query_all(selector):
        value = await element.attribute(name)
        if value and value.strip():
            return value.strip()
    return None


async def extract_metadata(dom: DomAccess) -> dict[str, Any]:
    """
    Extract title, description, language, canonical URL and meta maps.

    Title falls back to og:title and the description to og:description.

    Args:
        dom: Page to read

    Returns:
        Dict with title, meta_description, lang, canonical_url, og and meta
    """
    title = await dom.title() or await _first_attribute(
        dom, 'meta[property="og:title"]', "content"
    )
    description = await _first_attribute(
        dom, 'meta[name="description"]', "content"
    ) or await _first_attribute(dom, 'meta[property="og:description"]', "content")

    og: dict[str, str] = {}
    for element in await dom.query_all('meta[property^="og:"]'):
        prop = await element.attribute("property")
        content = await element.attribute("content")
        if prop and content:
            og[prop] = content

    meta: dict[str, str] = {}
    for element in await dom.query_all("meta[name]"):
        if len(meta) >= MAX_META_ENTRIES:
            break
        name = (await element.attribute("name") or "").strip().lower()
        content = await element.attribute("content")
        if name in META_ALLOW_LIST and content:
            meta[name] = content

    return {
        "title": normalize_whitespace(title) or None,
        "meta_description": description,
        "lang": await _first_attribute(dom, "html[lang]", "lang"),
        "canonical_url": await _first_attribute(dom, 'link[rel~="canonical"]', "href"),
        "og": og,
        "meta": meta,
    }


def readability_text(markup: str, url: str | None = None) -> str:
    """
    Main article text via readability, whitespace-normalized.

    Returns an empty string when readability finds nothing usable.
    """
    if not markup or not markup.strip():
        return ""
    summary = ReadabilityDocument(markup, url=url).summary(html_partial=True)
    return normalize_whitespace(BeautifulSoup(summary, "lxml").get_text(" "))


async def extract_largest_blocks(dom: DomAccess) -> list[str]:
    """
    Largest text blocks, used when readability yields nothing.

    Main-content containers are preferred; paragraph and div blocks are only
    considered when no container carries enough text.

    Returns:
        Up to five blocks, longest first, each truncated to the block limit
    """
    blocks = []
    for selector in MAIN_CONTAINER_SELECTORS:
        for element in await dom.query_all(selector):
            text = normalize_whitespace(await element.text())
            if len(text) > MAIN_CONTAINER_MIN_CHARS:
                blocks.append(text)

    if not blocks:
        for element in await dom.query_all(BLOCK_SELECTOR):
            text = normalize_whitespace(await element.text())
            if len(text) > BLOCK_MIN_CHARS:
                blocks.append(text)

    blocks.sort(key=len, reverse=True)
    return [block[:TEXT_BLOCK_LIMIT] for block in blocks[:MAX_TEXT_BLOCKS]]


async def extract_main_text(dom: DomAccess, url: str) -> tuple[str | None, tuple[str, ...]]:
    """
    Extract the main readable text and secondary text blocks.

    Args:
        dom: Page to read
        url: Page URL, passed to readability for link resolution

    Returns:
        Tuple of (main_text or None, text_blocks)
    """
    try:
        text = readability_text(await dom.markup(), url)
    except Exception as e:
        logger.debug(f"Readability failed for {url}, using largest blocks: {e}")
        text = ""

    if text:
        return text[:MAIN_TEXT_LIMIT], ()

    blocks = await extract_largest_blocks(dom)
    if not blocks:
        return None, ()
    return blocks[0][:MAIN_TEXT_LIMIT], tuple(blocks[1:])


async def extract_headings(dom: DomAccess) -> Headings:
    """Collect h1, h2 and h3 texts, deduplicated in document order."""
    levels = {}
    for level in ("h1", "h2", "h3"):
        texts = [normalize_whitespace(await el.text()) for el in await dom.query_all(level)]
        levels[level] = tuple(_unique(text for text in texts if text))
    return Headings(**levels)


async def extract_jsonld(dom: DomAccess) -> tuple[Any, ...]:
    """
    Parse every JSON-LD script on the page.

    Scripts that fail to parse are skipped. Parsed objects whose compact
    serialization exceeds the item limit are dropped.
    """
    items = []
    for raw in await dom.scripts_by_type("application/ld+json"):
        try:
            parsed = json.loads(raw)
        except ValueError:
            continue
        serialized = json.dumps(parsed, separators=(",", ":"), ensure_ascii=False)
        if len(serialized) <= JSONLD_ITEM_LIMIT:
            items.append(parsed)
    return tuple(items)


def extract_schema_types(jsonld: Iterable[Any]) -> tuple[str, ...]:
    """
    Collect every @type value found anywhere in the JSON-LD objects.

    Traversal is iterative, tracks visited containers and stops descending
    past MAX_SCHEMA_DEPTH, so self-referencing or very deep structures
    terminate.

    Args:
        jsonld: Parsed JSON-LD objects

    Returns:
        Distinct type names in first-seen order
    """
    types: list[str] = []
    visited: set[int] = set()
    stack = [(item, 0) for item in reversed(list(jsonld))]

    while stack:
        node, depth = stack.pop()
        if not isinstance(node, (dict, list)) or depth > MAX_SCHEMA_DEPTH:
            continue
        if id(node) in visited:
            continue
        visited.add(id(node))

        if isinstance(node, dict):
            declared = node.get("@type")
            if isinstance(declared, str):
                types.append(declared)
            elif isinstance(declared, list):
                types.extend(value for value in declared if isinstance(value, str))
            children = list(node.values())
        else:
            children = node

        stack.extend((child, depth + 1) for child in reversed(children))

    return tuple(_unique(types))


async def extract_links(dom: DomAccess, source_url: str) -> Links:
    """
    Resolve and classify every anchor on the page.

    Hrefs are resolved against <base href> when present (else the source URL)
    and stripped of fragments. Links on the source hostname are internal,
    links on any other hostname external, and links without a hostname
    (mailto:, javascript:) are dropped.

    Args:
        dom: Page to read
        source_url: URL the page was requested for

    Returns:
        Links with deduplicated lists capped at MAX_LINKS each
    """
    source_host = urlparse(source_url).hostname
    base_href = await _first_attribute(dom, "base[href]", "href")
    base_url = urljoin(source_url, base_href) if base_href else source_url

    internal = []
    external = []
    canonicalized = True

    for element in await dom.query_all("a[href]"):
        href = (await element.attribute("href") or "").strip()
        if not href:
            continue
        try:
            absolute, _fragment = urldefrag(urljoin(base_url, href))
            host = urlparse(absolute).hostname
        except ValueError:
            canonicalized = False
            continue
        if not host:
            continue
        if host == source_host:
            internal.append(absolute)
        else:
            external.append(absolute)

    return Links(
        internal=tuple(_unique(internal)[:MAX_LINKS]),
        external=tuple(_unique(external)[:MAX_LINKS]),
        canonicalized=canonicalized,
    )


def find_emails(text: str) -> list[str]:
    return [e for e in _unique(EMAIL_PATTERN.findall(text)) if len(e) <= MAX_EMAIL_LENGTH]


def find_phones(text: str) -> list[str]:
    """Phone-like substrings with at least MIN_PHONE_DIGITS digits."""
    candidates = (match.strip() for match in PHONE_PATTERN.findall(text))
    phones = [c for c in candidates if sum(ch.isdigit() for ch in c) >= MIN_PHONE_DIGITS]
    return _unique(phones)[:MAX_PHONES]


async def extract_contacts(dom: DomAccess, main_text: str | None) -> Contacts | None:
    """
    Find emails and phone numbers in footer text plus main text.

    Returns:
        Contacts, or None when neither list has entries
    """
    footer_texts = [await el.text() or "" for el in await dom.query_all("footer")]
    haystack = " ".join([*footer_texts, main_text or ""])

    emails = find_emails(haystack)
    phones = find_phones(haystack)
    if not emails and not phones:
        return None
    return Contacts(emails=tuple(emails), phones=tuple(phones))


def find_price_like(text: str) -> str | None:
    match = PRICE_PATTERN.search(text)
    if not match:
        return None
    return match.group(0).strip()[:EVIDENCE_SNIPPET_LIMIT]


def extract_evidence(main_text: str | None, all_text: str | None) -> tuple[str, ...]:
    """
    Short snippets supporting the extracted content.

    At most one per category: the first price-like string, the opening of
    the main text, and a window around the first terms/policy keyword.
    """
    all_text = all_text or ""
    evidence = []

    price = find_price_like(all_text)
    if price:
        evidence.append(price)

    if main_text:
        evidence.append(main_text[:EVIDENCE_SNIPPET_LIMIT])

    for keyword in EVIDENCE_KEYWORDS:
        match = re.search(re.escape(keyword), all_text, re.IGNORECASE)
        if match:
            start = max(0, match.start() - 50)
            snippet = normalize_whitespace(all_text[start : match.start() + 200])
            evidence.append(snippet[:EVIDENCE_SNIPPET_LIMIT])
            break

    return tuple(evidence[:MAX_EVIDENCE])


async def extract_dom_stats(dom: DomAccess, visible_text: str | None = None) -> DomStats:
    if visible_text is None:
        visible_text = await dom.visible_text()
    return DomStats(
        words=len(visible_text.split()),
        chars=len(visible_text),
        node_count=await dom.node_count(),
    )


async def _first_text(
    dom: DomAccess, selector: str, accept: Callable[[str], bool]
) -> str | None:
    for element in await dom.query_all(selector):
        text = (await element.text() or "").strip()
        if text and accept(text):
            return text
    return None


async def extract_probe_fields(dom: DomAccess) -> dict[str, str | None]:
    """
    Service listing fields used by the probe completeness spec.

    Returns:
        Dict with service_title, provider and price_text (None when absent)
    """
    return {
        "service_title": await _first_text(
            dom, SERVICE_TITLE_SELECTOR, lambda text: len(text) < PROBE_TEXT_LIMIT
        ),
        "provider": await _first_text(
            dom, PROVIDER_SELECTOR, lambda text: len(text) < PROBE_TEXT_LIMIT
        ),
        "price_text": await _first_text(
            dom, PRICE_SELECTOR, lambda text: any(ch.isdigit() for ch in text)
        ),
    }


async def assemble_document(
    dom: DomAccess,
    *,
    url: str,
    render_mode: RenderMode,
    http_status: int | None = None,
    content_type: str | None = None,
    fetched_at: datetime | None = None,
) -> ContentDocument:
    """
    Run every extractor over a page and build the ContentDocument.

    Args:
        dom: Page to read (static or rendered)
        url: Source URL
        render_mode: Pipeline producing the document
        http_status: Response status, when known
        content_type: Response content type, when known
        fetched_at: Extraction time (defaults to now, UTC)

    Returns:
        Frozen ContentDocument
    """
    metadata = await _guarded(
        "metadata",
        url,
        extract_metadata(dom),
        {
            "title": None,
            "meta_description": None,
            "lang": None,
            "canonical_url": None,
            "og": {},
            "meta": {},
        },
    )
    main_text, text_blocks = await _guarded(
        "main text", url, extract_main_text(dom, url), (None, ())
    )
    visible_text = await _guarded("visible text", url, dom.visible_text(), "")
    headings = await _guarded("headings", url, extract_headings(dom), Headings())
    jsonld = await _guarded("json-ld", url, extract_jsonld(dom), ())
    try:
        schema_types = extract_schema_types(jsonld)
    except Exception as e:
        logger.debug(f"schema type extraction failed for {url}: {e}")
        schema_types = ()
    microdata = await _guarded("microdata", url, dom.query_all("[itemscope]"), [])
    links = await _guarded("links", url, extract_links(dom, url), Links())
    contacts = await _guarded("contacts", url, extract_contacts(dom, main_text), None)
    dom_stats = await _guarded(
        "dom stats", url, extract_dom_stats(dom, visible_text), DomStats()
    )
    body_markup = await _guarded("body markup", url, dom.body_markup(), "")
    excerpt = visible_text[:ALL_TEXT_LIMIT]

    return ContentDocument(
        url=url,
        fetched_at=fetched_at or utc_now(),
        render_mode=render_mode,
        fingerprint=compute_fingerprint(body_markup),
        http_status=http_status,
        content_type=content_type,
        canonical_url=metadata["canonical_url"],
        lang=metadata["lang"],
        title=metadata["title"],
        meta_description=metadata["meta_description"],
        og=metadata["og"],
        meta=metadata["meta"],
        main_text=main_text,
        all_text_excerpt=excerpt or None,
        text_blocks=text_blocks,
        headings=headings,
        jsonld=jsonld,
        microdata_present=bool(microdata),
        schema_types=schema_types,
        links=links,
        contacts=contacts,
        evidence=extract_evidence(main_text, excerpt),
        dom_stats=dom_stats,
    )
