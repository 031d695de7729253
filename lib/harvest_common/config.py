"""
Run configuration loading.

Explicit overrides win over HARVEST_* environment variables, which win over
the HarvestConfig defaults.
"""

import logging
import os
from collections.abc import Mapping
from typing import Any

from harvest_common.exceptions import ConfigurationError
from harvest_common.harvester.models import HarvestConfig

logger = logging.getLogger(__name__)

# Environment variable -> (config field, parser)
ENV_SETTINGS: dict[str, tuple[str, type]] = {
    "HARVEST_MAX_REQUESTS": ("max_requests_per_run", int),
    "HARVEST_HTTP_CONCURRENCY": ("fast_concurrency", int),
    "HARVEST_JS_CONCURRENCY": ("render_concurrency", int),
    "HARVEST_REQUEST_TIMEOUT_S": ("request_timeout_s", float),
    "HARVEST_NAVIGATION_TIMEOUT_MS": ("navigation_timeout_ms", int),
    "HARVEST_LOAD_SETTLE_TIMEOUT_MS": ("load_settle_timeout_ms", int),
    "HARVEST_CONSENT_TIMEOUT_MS": ("consent_timeout_ms", int),
    "HARVEST_MAX_RETRIES": ("max_retries", int),
    "HARVEST_FALLBACK_LIMIT": ("fallback_limit", int),
    "HARVEST_COLLECTION": ("collection", str),
    "HARVEST_COMPLETENESS": ("completeness", str),
    "HARVEST_USER_AGENT": ("user_agent", str),
}


def settings_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Read HARVEST_* settings from the environment.

    Args:
        environ: Mapping to read (defaults to os.environ)

    Returns:
        Dict of config field name to parsed value, for variables that are set

    Raises:
        ConfigurationError: If a numeric variable does not parse
    """
    environ = os.environ if environ is None else environ
    settings: dict[str, Any] = {}
    for var, (field_name, parser) in ENV_SETTINGS.items():
        raw = environ.get(var)
        if raw is None or raw.strip() == "":
            continue
        try:
            settings[field_name] = parser(raw.strip())
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from e
    return settings


def load_config(
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> HarvestConfig:
    """
    Build a HarvestConfig from environment and explicit overrides.

    Overrides whose value is None are ignored so CLI flags that were not
    given fall through to the environment.

    Args:
        overrides: Explicit values, keyed by HarvestConfig field name
        environ: Mapping to read (defaults to os.environ)

    Returns:
        HarvestConfig (not yet validated; the router validates before running)
    """
    settings = settings_from_env(environ)
    for key, value in (overrides or {}).items():
        if value is not None:
            settings[key] = value
    logger.debug(f"Harvest settings provided: {sorted(settings)}")
    return HarvestConfig.from_dict(settings)
