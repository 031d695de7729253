"""Unit tests for fingerprint and URL normalization helpers."""

import pytest

from harvest_common.harvester.fingerprint import (
    compute_fingerprint,
    normalize_request_key,
    normalize_whitespace,
)


def test_normalize_whitespace():
    assert normalize_whitespace("  a\n\tb   c ") == "a b c"
    assert normalize_whitespace(None) == ""
    assert normalize_whitespace("") == ""


class TestComputeFingerprint:
    """Tests for compute_fingerprint."""

    def test_hex_digest(self):
        fingerprint = compute_fingerprint("<p>Hello</p>")
        assert len(fingerprint) == 64
        assert all(ch in "0123456789abcdef" for ch in fingerprint)

    def test_whitespace_insensitive(self):
        assert compute_fingerprint("<p>Hello</p>\n  <p>World</p>") == compute_fingerprint(
            "<p>Hello</p> <p>World</p>"
        )

    def test_different_content(self):
        assert compute_fingerprint("<p>Hello</p>") != compute_fingerprint("<p>Bye</p>")

    def test_empty_markup(self):
        assert (
            compute_fingerprint("")
            == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )


class TestNormalizeRequestKey:
    """Tests for normalize_request_key."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("HTTPS://Example.COM/Path", "https://example.com/Path"),
            ("https://example.com/a/", "https://example.com/a"),
            ("https://example.com/", "https://example.com/"),
            ("https://example.com/a#section", "https://example.com/a"),
            ("https://example.com/a?b=1", "https://example.com/a?b=1"),
        ],
    )
    def test_normalization(self, url, expected):
        assert normalize_request_key(url) == expected
