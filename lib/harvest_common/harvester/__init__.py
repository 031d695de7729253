"""
Harvester pipeline for content documents.

Architecture:
- Fast path: httpx fetch + BeautifulSoup/lxml extraction, judged for completeness
- Render path: Playwright rendering for URLs the fast path deferred
- Router: runs both phases over a shared frontier with a barrier between them
- Extractors: one implementation over the DomAccess capability for both paths
"""

from harvest_common.harvester.completeness import (
    GENERAL_HARVEST,
    SERVICE_PROBE,
    CompletenessSpec,
    Verdict,
    is_complete,
    judge,
)
from harvest_common.harvester.models import (
    Contacts,
    ContentDocument,
    DomStats,
    HarvestConfig,
    Headings,
    Links,
    RenderMode,
)
from harvest_common.harvester.router import HarvestResult, WorkRouter, harvest
from harvest_common.harvester.stats import RunStats

__all__ = [
    "GENERAL_HARVEST",
    "SERVICE_PROBE",
    "CompletenessSpec",
    "Contacts",
    "ContentDocument",
    "DomStats",
    "HarvestConfig",
    "HarvestResult",
    "Headings",
    "Links",
    "RenderMode",
    "RunStats",
    "Verdict",
    "WorkRouter",
    "harvest",
    "is_complete",
    "judge",
]
