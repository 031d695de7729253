"""
Run-level statistics.

RunStats is created by the router and handed to each phase. Handlers bump
the counters synchronously between suspension points, so no locking is
needed on a single event loop.
"""

from dataclasses import dataclass
from typing import Any

from harvest_common.exceptions import StatsInvariantError


def rate_percent(part: int, whole: int) -> int:
    """
    Integer percentage of ``part`` in ``whole``, rounding halves up.

    Uses integer arithmetic so 12.5 becomes 13 (Python's round() would give
    12). Returns 0 when ``whole`` is 0.
    """
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


@dataclass
class RunStats:
    """
    Counters for one harvest run.

    Attributes:
        seen: URLs the fast path started processing
        accepted: Fast-path documents that passed the completeness judge
        deferred: Fast-path URLs sent to the fallback list
        rendered: URLs the render pipeline started processing
        skipped: Requests dropped because a phase budget was exhausted
        rendered_rate: Percentage of rendered over accepted + rendered
    """

    seen: int = 0
    accepted: int = 0
    deferred: int = 0
    rendered: int = 0
    skipped: int = 0
    rendered_rate: int = 0

    def check_fast_path_invariant(self) -> None:
        """
        Verify every seen URL was either accepted or deferred.

        Raises:
            StatsInvariantError: If accepted + deferred != seen
        """
        if self.accepted + self.deferred != self.seen:
            raise StatsInvariantError(
                f"Stats mismatch: accepted({self.accepted}) + deferred({self.deferred}) "
                f"!= seen({self.seen})"
            )

    def finalize(self) -> int:
        """Compute rendered_rate once both phases have finished."""
        self.rendered_rate = rate_percent(self.rendered, self.accepted + self.rendered)
        return self.rendered_rate

    def to_dict(self) -> dict[str, Any]:
        return {
            "seen": self.seen,
            "accepted": self.accepted,
            "deferred": self.deferred,
            "rendered": self.rendered,
            "skipped": self.skipped,
            "rendered_rate": self.rendered_rate,
        }
