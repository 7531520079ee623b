"""공급사/제품별 취약점 통계(Per-vendor and per-product vulnerability statistics).

Counts are recomputed from the associated vulnerabilities on every call. The
cached counter stored on the vendor or product is echoed next to them as
``cachedCount``; the two are not reconciled.

The monthly timeline here always has twelve entries, starting one calendar
year before ``now``, and months without vulnerabilities are reported with a
zero count, unlike the global timeline in :mod:`.timeline`.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from common_lib.errors import ResourceNotFound
from common_lib.logger import get_logger
from common_lib.timestamps import utcnow

from .repository import SearchRepository
from .severity import classify, empty_distribution
from .tables import AffectedProduct, Vulnerability

logger = get_logger(__name__)

TIMELINE_MONTHS = 12


def monthly_window(now: datetime) -> List[Tuple[int, int]]:
    """Twelve ``(year, month)`` pairs starting at the same month one year earlier."""
    year, month = now.year - 1, now.month
    window = []
    for _ in range(TIMELINE_MONTHS):
        window.append((year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return window


def summarize(rows: Iterable[Dict[str, Any]], now: datetime) -> Dict[str, Any]:
    """Severity distribution, average score and 12-month timeline for projected rows."""

    distribution = empty_distribution()
    window = monthly_window(now)
    monthly = {key: 0 for key in window}
    score_total = 0.0
    scored = 0

    for row in rows:
        score: Optional[float] = row.get("score")
        distribution[classify(score).value] += 1
        if score is not None:
            score_total += score
            scored += 1

        published = row.get("published_date")
        if published is not None:
            key = (published.year, published.month)
            if key in monthly:
                monthly[key] += 1

    return {
        "severityDistribution": distribution,
        "avgScore": f"{score_total / scored:.2f}" if scored else 0,
        "timeline": [{"month": f"{year:04d}-{month:02d}", "count": monthly[(year, month)]} for year, month in window],
    }


class EntityStatistics:
    """엔터티 통계 서비스(Entity statistics service)."""

    def __init__(self, repository: SearchRepository) -> None:
        self._repository = repository

    async def _scores_and_dates(self, predicate: Any) -> List[Dict[str, Any]]:
        return await self._repository.project([Vulnerability.score, Vulnerability.published_date], predicate)

    async def vendor_statistics(self, vendor_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        vendor = await self._repository.get_vendor(vendor_id)
        if vendor is None:
            raise ResourceNotFound(resource_type="vendor", identifier=vendor_id)

        rows = await self._scores_and_dates(
            Vulnerability.affected_products.any(AffectedProduct.vendor_id == vendor_id)
        )
        summary = summarize(rows, now or utcnow())
        logger.debug("Vendor %s statistics over %d vulnerabilities", vendor["name"], len(rows))
        return {
            "name": vendor["name"],
            "cachedCount": vendor["vulnerabilityCount"],
            "productCount": vendor["productCount"],
            "firstSeen": vendor["firstSeen"],
            "lastSeen": vendor["lastSeen"],
            **summary,
        }

    async def product_statistics(self, product_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        product = await self._repository.get_product(product_id)
        if product is None:
            raise ResourceNotFound(resource_type="product", identifier=product_id)

        rows = await self._scores_and_dates(
            Vulnerability.affected_products.any(AffectedProduct.product_id == product_id)
        )
        summary = summarize(rows, now or utcnow())

        versions = product["versions"]
        affected = sum(1 for entry in versions if entry["affected"])
        return {
            "name": product["name"],
            "vendor": product["vendorName"],
            "cachedCount": product["vulnerabilityCount"],
            "firstSeen": product["firstSeen"],
            "lastSeen": product["lastSeen"],
            **summary,
            "versionStats": {
                "affected": affected,
                "notAffected": len(versions) - affected,
                "total": len(versions),
            },
        }
