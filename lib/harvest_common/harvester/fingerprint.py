"""
Fingerprinting and normalization helpers.

The fingerprint is a SHA-256 digest of the body markup a pipeline extracted
from, after whitespace normalization. It identifies page content, never the
serialized document, so two extractions of the same markup always match.
"""

import hashlib
import re
from urllib.parse import urlparse

_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str | None) -> str:
    """Collapse runs of whitespace to single spaces and strip the ends."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def compute_fingerprint(markup: str) -> str:
    """
    Compute the content fingerprint of body markup.

    Args:
        markup: Inner HTML of the document body

    Returns:
        Hex-encoded SHA-256 digest (64 characters)
    """
    normalized = normalize_whitespace(markup)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def normalize_request_key(url: str) -> str:
    """
    Default frontier dedup key for a URL.

    Lowercases scheme and hostname, drops the fragment, removes a trailing
    slash (except for the root path) and keeps query parameters.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL string
    """
    parsed = urlparse(url.strip())

    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()

    path = parsed.path
    if path and path != "/" and path.endswith("/"):
        path = path.rstrip("/")

    normalized = f"{scheme}://{netloc}{path}"
    if parsed.query:
        normalized += f"?{parsed.query}"
    return normalized
