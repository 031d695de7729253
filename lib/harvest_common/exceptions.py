"""
Custom exceptions for the content harvester.

Only ConfigurationError is fatal to a run. Everything else is caught at the
per-URL boundary and turned into a log line plus a defer or a dropped record.
"""


class HarvestError(Exception):
    """Base exception for harvester errors."""


class ConfigurationError(HarvestError):
    """Run configuration is invalid."""


class FetchError(HarvestError):
    """Error during static page fetching."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {message}")


class DocumentValidationError(HarvestError):
    """A content document violates its structural rules."""

    def __init__(self, url: str, errors: list[str]):
        self.url = url
        self.errors = list(errors)
        super().__init__(f"Invalid document for {url}: {'; '.join(self.errors)}")


class StatsInvariantError(HarvestError):
    """Run counters are inconsistent at the fast-path barrier."""
