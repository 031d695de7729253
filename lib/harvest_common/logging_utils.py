"""
Logging helpers for harvester runs.

Provides a structured summary builder for end-of-operation log lines and a
small wrapper around basicConfig used by the command-line entry point.
"""

import logging
import os
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
MAX_SUMMARY_ERROR_LENGTH = 500


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging for command-line use.

    Args:
        level: Log level name. Falls back to LOG_LEVEL, then INFO.
    """
    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    numeric = logging.getLevelName(level_name)
    if not isinstance(numeric, int):
        logger.warning(f"Unknown log level {level_name!r}, using INFO")
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=DEFAULT_LOG_FORMAT)


def _summary_value(value: Any) -> Any:
    """Reduce a field to something a log line can carry, or None to drop it."""
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {
            str(key): item
            for key, item in value.items()
            if isinstance(item, (str, int, float, bool))
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value)
    return None


def log_summary(
    operation: str,
    *,
    success: bool = True,
    duration_ms: float | None = None,
    documents: int | None = None,
    error: str | None = None,
    **fields: Any,
) -> dict[str, Any]:
    """
    Build the structured record logged when a harvest operation finishes.

    The router logs one of these per run with the final RunStats, so a run
    can be audited from its last log line alone.

    Args:
        operation: Name of the operation (e.g., "harvest_run")
        success: False when part of the run was abandoned (e.g., the browser
            could not start)
        duration_ms: Wall-clock duration in milliseconds
        documents: Number of documents pushed to the dataset store
        error: Reason the run was not fully successful (truncated)
        **fields: Extra context. Scalars are kept, mappings such as
            ``stats=RunStats.to_dict()`` keep their scalar entries, URL lists
            and other sequences are reduced to their length, anything else
            is dropped.

    Returns:
        Dictionary suitable for structured logging

    Example:
        ```python
        logger.info(log_summary(
            "harvest_run",
            duration_ms=1520.4,
            documents=12,
            collection="content-harvest",
            stats=stats.to_dict(),
            fallback_urls=fallback.urls,
        ))
        ```
    """
    summary: dict[str, Any] = {
        "operation": operation,
        "success": success,
    }

    if duration_ms is not None:
        summary["duration_ms"] = round(duration_ms, 2)

    if documents is not None:
        summary["documents"] = documents

    if error:
        summary["error"] = error[:MAX_SUMMARY_ERROR_LENGTH]

    for key, value in fields.items():
        reduced = _summary_value(value)
        if reduced is not None:
            summary[key] = reduced

    return summary
