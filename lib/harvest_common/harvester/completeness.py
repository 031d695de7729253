"""
Completeness judging for fast-path extraction results.

A CompletenessSpec names the fields a partial document must carry for the
static result to be accepted. Anything short of that defers the URL to the
rendered pipeline.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Verdict(str, Enum):
    """Outcome of judging a partial document."""

    ACCEPT = "accept"
    DEFER = "defer"


@dataclass(frozen=True)
class CompletenessSpec:
    """
    Named set of required fields.

    Attributes:
        name: Identifier used in configuration
        required_fields: Fields that must be present and non-empty
    """

    name: str
    required_fields: frozenset[str]


GENERAL_HARVEST = CompletenessSpec(
    name="general",
    required_fields=frozenset({"title", "main_text"}),
)

SERVICE_PROBE = CompletenessSpec(
    name="probe",
    required_fields=frozenset({"service_title", "provider", "price_text"}),
)

COMPLETENESS_SPECS: dict[str, CompletenessSpec] = {
    GENERAL_HARVEST.name: GENERAL_HARVEST,
    SERVICE_PROBE.name: SERVICE_PROBE,
}


def get_completeness_spec(name: str) -> CompletenessSpec:
    """
    Look up a completeness spec by name.

    Raises:
        KeyError: If no completeness spec has that name
    """
    return COMPLETENESS_SPECS[name]


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) > 0
    return True


def missing_fields(spec: CompletenessSpec, partial: Mapping[str, Any]) -> list[str]:
    """Required fields that are absent or empty, sorted by name."""
    return sorted(name for name in spec.required_fields if not _is_present(partial.get(name)))


def is_complete(spec: CompletenessSpec, partial: Mapping[str, Any]) -> bool:
    """
    Check whether every required field is present and non-empty.

    Pure and deterministic: the result depends only on the completeness spec and the
    values in ``partial``.

    Args:
        spec: Completeness spec to apply
        partial: Field name to extracted value mapping

    Returns:
        True if the static result is good enough to keep
    """
    return not missing_fields(spec, partial)


def judge(spec: CompletenessSpec, partial: Mapping[str, Any]) -> Verdict:
    """Return ACCEPT when the partial is complete, else DEFER."""
    return Verdict.ACCEPT if is_complete(spec, partial) else Verdict.DEFER
