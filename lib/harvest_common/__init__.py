"""Content harvester library

Two-tier web content harvesting: a fast static-HTML pass with a
browser-rendered fallback, sharing one document schema.
"""

from harvest_common.exceptions import ConfigurationError, HarvestError
from harvest_common.logging_utils import log_summary

__all__ = [
    "ConfigurationError",
    "HarvestError",
    "log_summary",
]
