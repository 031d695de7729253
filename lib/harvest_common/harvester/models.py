"""
Data models for the content harvester.

ContentDocument is the single output schema shared by the fast (static HTML)
and rendered (browser) pipelines. HarvestConfig describes one run.
"""

import copy
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any
from urllib.parse import urlparse

from harvest_common.exceptions import ConfigurationError, DocumentValidationError
from harvest_common.harvester.completeness import COMPLETENESS_SPECS

# Output caps shared by extractors and validation
MAX_LINKS = 200
MAX_META_ENTRIES = 20
MAX_TEXT_BLOCKS = 5
TEXT_BLOCK_LIMIT = 2000
MAIN_TEXT_LIMIT = 10000
ALL_TEXT_LIMIT = 15000
JSONLD_ITEM_LIMIT = 150000
MAX_EVIDENCE = 5
EVIDENCE_SNIPPET_LIMIT = 400
MAX_PHONES = 20
MAX_EMAIL_LENGTH = 99

# Run limits
MAX_SEED_URLS = 50
MAX_REQUESTS_CEILING = 100
MAX_FAST_CONCURRENCY = 20
MAX_RENDER_CONCURRENCY = 10

DEFAULT_USER_AGENT = "ContentHarvester/1.0 (+contact@example.org)"
DEFAULT_COLLECTION = "content-harvest"

_FINGERPRINT_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class RenderMode(str, Enum):
    """Which pipeline produced a document."""

    FAST = "fast"
    RENDERED = "rendered"


@dataclass(frozen=True)
class Headings:
    """Deduplicated heading texts in document order."""

    h1: tuple[str, ...] = ()
    h2: tuple[str, ...] = ()
    h3: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, list[str]]:
        return {"h1": list(self.h1), "h2": list(self.h2), "h3": list(self.h3)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Headings":
        return cls(
            h1=tuple(data.get("h1", ())),
            h2=tuple(data.get("h2", ())),
            h3=tuple(data.get("h3", ())),
        )


@dataclass(frozen=True)
class Links:
    """
    Outbound links split by hostname.

    Attributes:
        internal: Absolute URLs on the source hostname
        external: Absolute URLs on any other hostname
        canonicalized: False if any href on the page failed to resolve
    """

    internal: tuple[str, ...] = ()
    external: tuple[str, ...] = ()
    canonicalized: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "internal": list(self.internal),
            "external": list(self.external),
            "canonicalized": self.canonicalized,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Links":
        return cls(
            internal=tuple(data.get("internal", ())),
            external=tuple(data.get("external", ())),
            canonicalized=data.get("canonicalized", True),
        )


@dataclass(frozen=True)
class Contacts:
    """Email addresses and phone numbers found in footer and main text."""

    emails: tuple[str, ...] = ()
    phones: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, list[str]]:
        return {"emails": list(self.emails), "phones": list(self.phones)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Contacts":
        return cls(emails=tuple(data.get("emails", ())), phones=tuple(data.get("phones", ())))


@dataclass(frozen=True)
class DomStats:
    """Size statistics of the page the document was extracted from."""

    words: int = 0
    chars: int = 0
    node_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"words": self.words, "chars": self.chars, "node_count": self.node_count}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DomStats":
        return cls(
            words=data.get("words", 0),
            chars=data.get("chars", 0),
            node_count=data.get("node_count", 0),
        )


@dataclass(frozen=True)
class ContentDocument:
    """
    Normalized content record emitted once per accepted URL.

    Instances are immutable once built: og and meta are read-only mappings,
    and JSON-LD items are copied in on construction and out in to_dict.
    Both pipelines construct them through the same assembly function, so
    consumers see one schema regardless of render_mode.

    Attributes:
        url: Source URL the document was requested for
        fetched_at: UTC timestamp of extraction
        render_mode: Pipeline that produced the document
        fingerprint: SHA-256 hex digest of the normalized body markup
        http_status: Response status, when known
        content_type: Response content type, when known
        canonical_url: Value of link[rel=canonical]
        lang: Value of html[lang]
        title: Document title, else og:title
        meta_description: meta description, else og:description
        og: All og:* properties
        meta: Allow-listed meta names
        main_text: Main readable text
        all_text_excerpt: Visible body text excerpt
        text_blocks: Secondary text blocks
        headings: h1/h2/h3 texts
        jsonld: Parsed JSON-LD objects
        microdata_present: Whether any itemscope element exists
        schema_types: Every @type value found in the JSON-LD objects
        links: Internal/external link lists
        contacts: Emails and phones, or None if neither was found
        evidence: Price, main text and policy snippets
        dom_stats: Word, char and node counts
    """

    url: str
    fetched_at: datetime
    render_mode: RenderMode
    fingerprint: str
    http_status: int | None = None
    content_type: str | None = None
    canonical_url: str | None = None
    lang: str | None = None
    title: str | None = None
    meta_description: str | None = None
    og: Mapping[str, str] = field(default_factory=dict)
    meta: Mapping[str, str] = field(default_factory=dict)
    main_text: str | None = None
    all_text_excerpt: str | None = None
    text_blocks: tuple[str, ...] = ()
    headings: Headings = field(default_factory=Headings)
    jsonld: tuple[Any, ...] = ()
    microdata_present: bool = False
    schema_types: tuple[str, ...] = ()
    links: Links = field(default_factory=Links)
    contacts: Contacts | None = None
    evidence: tuple[str, ...] = ()
    dom_stats: DomStats = field(default_factory=DomStats)

    def __post_init__(self):
        # frozen only blocks rebinding; mapping and JSON-LD contents are detached here
        object.__setattr__(self, "og", MappingProxyType(dict(self.og)))
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))
        object.__setattr__(self, "jsonld", tuple(copy.deepcopy(item) for item in self.jsonld))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary for the dataset store."""
        return {
            "url": self.url,
            "fetched_at": self.fetched_at.isoformat(),
            "http_status": self.http_status,
            "content_type": self.content_type,
            "canonical_url": self.canonical_url,
            "lang": self.lang,
            "title": self.title,
            "meta_description": self.meta_description,
            "og": dict(self.og),
            "meta": dict(self.meta),
            "main_text": self.main_text,
            "all_text_excerpt": self.all_text_excerpt,
            "text_blocks": list(self.text_blocks),
            "headings": self.headings.to_dict(),
            "jsonld": copy.deepcopy(list(self.jsonld)),
            "microdata_present": self.microdata_present,
            "schema_types": list(self.schema_types),
            "links": self.links.to_dict(),
            "contacts": self.contacts.to_dict() if self.contacts else None,
            "evidence": list(self.evidence),
            "dom_stats": self.dom_stats.to_dict(),
            "fingerprint": self.fingerprint,
            "render_mode": self.render_mode.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContentDocument":
        """Create ContentDocument from a stored dictionary."""
        contacts = data.get("contacts")
        return cls(
            url=data["url"],
            fetched_at=datetime.fromisoformat(data["fetched_at"]),
            render_mode=RenderMode(data["render_mode"]),
            fingerprint=data["fingerprint"],
            http_status=data.get("http_status"),
            content_type=data.get("content_type"),
            canonical_url=data.get("canonical_url"),
            lang=data.get("lang"),
            title=data.get("title"),
            meta_description=data.get("meta_description"),
            og=dict(data.get("og") or {}),
            meta=dict(data.get("meta") or {}),
            main_text=data.get("main_text"),
            all_text_excerpt=data.get("all_text_excerpt"),
            text_blocks=tuple(data.get("text_blocks") or ()),
            headings=Headings.from_dict(data.get("headings") or {}),
            jsonld=tuple(data.get("jsonld") or ()),
            microdata_present=data.get("microdata_present", False),
            schema_types=tuple(data.get("schema_types") or ()),
            links=Links.from_dict(data.get("links") or {}),
            contacts=Contacts.from_dict(contacts) if contacts else None,
            evidence=tuple(data.get("evidence") or ()),
            dom_stats=DomStats.from_dict(data.get("dom_stats") or {}),
        )

    def validate(self) -> None:
        """
        Check structural rules before the document is persisted.

        Raises:
            DocumentValidationError: Listing every violated rule
        """
        errors = []

        if not self.url:
            errors.append("url is empty")
        if not isinstance(self.fetched_at, datetime) or self.fetched_at.tzinfo is None:
            errors.append("fetched_at must be a timezone-aware datetime")
        if not isinstance(self.render_mode, RenderMode):
            errors.append(f"render_mode {self.render_mode!r} is not a RenderMode")
        if not isinstance(self.fingerprint, str) or not _FINGERPRINT_PATTERN.match(
            self.fingerprint
        ):
            errors.append("fingerprint must be a 64-character hex digest")

        if len(self.links.internal) > MAX_LINKS:
            errors.append(f"links.internal exceeds {MAX_LINKS}")
        if len(self.links.external) > MAX_LINKS:
            errors.append(f"links.external exceeds {MAX_LINKS}")
        if len(self.meta) > MAX_META_ENTRIES:
            errors.append(f"meta exceeds {MAX_META_ENTRIES} entries")
        if len(self.evidence) > MAX_EVIDENCE:
            errors.append(f"evidence exceeds {MAX_EVIDENCE} snippets")
        if any(len(snippet) > EVIDENCE_SNIPPET_LIMIT for snippet in self.evidence):
            errors.append(f"evidence snippet exceeds {EVIDENCE_SNIPPET_LIMIT} chars")
        if len(self.text_blocks) > MAX_TEXT_BLOCKS:
            errors.append(f"text_blocks exceeds {MAX_TEXT_BLOCKS} blocks")
        if any(len(block) > TEXT_BLOCK_LIMIT for block in self.text_blocks):
            errors.append(f"text block exceeds {TEXT_BLOCK_LIMIT} chars")
        if self.main_text is not None and len(self.main_text) > MAIN_TEXT_LIMIT:
            errors.append(f"main_text exceeds {MAIN_TEXT_LIMIT} chars")
        if self.all_text_excerpt is not None and len(self.all_text_excerpt) > ALL_TEXT_LIMIT:
            errors.append(f"all_text_excerpt exceeds {ALL_TEXT_LIMIT} chars")

        for mapping_name, mapping in (("og", self.og), ("meta", self.meta)):
            if not all(isinstance(k, str) and isinstance(v, str) for k, v in mapping.items()):
                errors.append(f"{mapping_name} must map strings to strings")

        for item in self.jsonld:
            try:
                size = len(json.dumps(item, separators=(",", ":"), ensure_ascii=False))
            except (TypeError, ValueError):
                errors.append("jsonld item is not JSON-serializable")
                continue
            if size > JSONLD_ITEM_LIMIT:
                errors.append(f"jsonld item exceeds {JSONLD_ITEM_LIMIT} chars")

        if self.contacts is not None:
            if len(self.contacts.phones) > MAX_PHONES:
                errors.append(f"contacts.phones exceeds {MAX_PHONES}")
            if len(set(self.contacts.emails)) != len(self.contacts.emails):
                errors.append("contacts.emails contains duplicates")
            if len(set(self.contacts.phones)) != len(self.contacts.phones):
                errors.append("contacts.phones contains duplicates")

        for level in ("h1", "h2", "h3"):
            values = getattr(self.headings, level)
            if len(set(values)) != len(values):
                errors.append(f"headings.{level} contains duplicates")

        stats = self.dom_stats
        if stats.words < 0 or stats.chars < 0 or stats.node_count < 0:
            errors.append("dom_stats values must be non-negative")

        if errors:
            raise DocumentValidationError(self.url, errors)


def utc_now() -> datetime:
    """Current UTC time, used as the fetched_at default."""
    return datetime.now(UTC)


@dataclass
class HarvestConfig:
    """
    Configuration for a harvest run.

    Attributes:
        seed_urls: URLs to harvest (no link following)
        max_requests_per_run: Request budget applied to each phase
        fast_concurrency: Worker count for the static pipeline
        render_concurrency: Worker count for the browser pipeline
        request_timeout_s: Static fetch timeout in seconds
        navigation_timeout_ms: Browser navigation timeout
        load_settle_timeout_ms: Bound on the network-idle wait after navigation
        consent_timeout_ms: Visibility timeout per consent button selector
        max_retries: Static fetch attempts for retryable failures
        fallback_limit: Maximum URLs deferred to the render phase
        collection: Dataset collection documents are pushed to
        completeness: Name of the completeness spec ("general" or "probe")
        user_agent: User-Agent sent by both pipelines
        headless: Launch the browser headless
    """

    seed_urls: list[str] = field(default_factory=list)
    max_requests_per_run: int = 100
    fast_concurrency: int = 10
    render_concurrency: int = 5
    request_timeout_s: float = 30.0
    navigation_timeout_ms: int = 30000
    load_settle_timeout_ms: int = 10000
    consent_timeout_ms: int = 1000
    max_retries: int = 3
    fallback_limit: int = 100
    collection: str = DEFAULT_COLLECTION
    completeness: str = "general"
    user_agent: str = DEFAULT_USER_AGENT
    headless: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "seed_urls": list(self.seed_urls),
            "max_requests_per_run": self.max_requests_per_run,
            "fast_concurrency": self.fast_concurrency,
            "render_concurrency": self.render_concurrency,
            "request_timeout_s": self.request_timeout_s,
            "navigation_timeout_ms": self.navigation_timeout_ms,
            "load_settle_timeout_ms": self.load_settle_timeout_ms,
            "consent_timeout_ms": self.consent_timeout_ms,
            "max_retries": self.max_retries,
            "fallback_limit": self.fallback_limit,
            "collection": self.collection,
            "completeness": self.completeness,
            "user_agent": self.user_agent,
            "headless": self.headless,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HarvestConfig":
        return cls(
            seed_urls=list(data.get("seed_urls", [])),
            max_requests_per_run=data.get("max_requests_per_run", 100),
            fast_concurrency=data.get("fast_concurrency", 10),
            render_concurrency=data.get("render_concurrency", 5),
            request_timeout_s=data.get("request_timeout_s", 30.0),
            navigation_timeout_ms=data.get("navigation_timeout_ms", 30000),
            load_settle_timeout_ms=data.get("load_settle_timeout_ms", 10000),
            consent_timeout_ms=data.get("consent_timeout_ms", 1000),
            max_retries=data.get("max_retries", 3),
            fallback_limit=data.get("fallback_limit", 100),
            collection=data.get("collection", DEFAULT_COLLECTION),
            completeness=data.get("completeness", "general"),
            user_agent=data.get("user_agent", DEFAULT_USER_AGENT),
            headless=data.get("headless", True),
        )

    def validate(self) -> None:
        """
        Reject configurations that must not start a run.

        Raises:
            ConfigurationError: If any value is out of range
        """
        if not self.seed_urls:
            raise ConfigurationError("At least one seed URL is required")
        if len(self.seed_urls) > MAX_SEED_URLS:
            raise ConfigurationError(
                f"Too many seed URLs: {len(self.seed_urls)} (max {MAX_SEED_URLS})"
            )
        for url in self.seed_urls:
            parsed = urlparse(url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigurationError(f"Seed URL must be absolute http(s): {url!r}")

        _check_range("max_requests_per_run", self.max_requests_per_run, MAX_REQUESTS_CEILING)
        _check_range("fast_concurrency", self.fast_concurrency, MAX_FAST_CONCURRENCY)
        _check_range("render_concurrency", self.render_concurrency, MAX_RENDER_CONCURRENCY)
        for name in (
            "request_timeout_s",
            "navigation_timeout_ms",
            "load_settle_timeout_ms",
            "consent_timeout_ms",
            "max_retries",
            "fallback_limit",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")

        if not self.collection:
            raise ConfigurationError("collection must not be empty")
        if self.completeness not in COMPLETENESS_SPECS:
            raise ConfigurationError(
                f"Unknown completeness spec {self.completeness!r}; "
                f"expected one of {sorted(COMPLETENESS_SPECS)}"
            )


def _check_range(name: str, value: int, ceiling: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= ceiling:
        raise ConfigurationError(
            f"{name} must be an integer between 1 and {ceiling}, got {value!r}"
        )
