"""검색 서비스 레이어(Search service layer).

Global multi-entity search, filtered vulnerability search and prefix
suggestions. Only the global search fans out; everything else talks to the
repository one call at a time.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Dict, List, Mapping, Optional

from common_lib.errors import InvalidInputError
from common_lib.logger import get_logger

from .filters import (
    compile_filters,
    present_filters,
    product_text_predicate,
    starts_with,
    vendor_text_predicate,
    vulnerability_text_predicate,
)
from .paging import (
    PRODUCT_ORDER,
    VENDOR_ORDER,
    VULNERABILITY_ORDER,
    page_window,
    paged,
    total_pages,
)
from .repository import SearchRepository
from .tables import Product, Vendor, Vulnerability

logger = get_logger(__name__)

SUGGESTION_KINDS = ("all", "vulnerability", "vendor", "product")


def require_text(value: Optional[str], field: str) -> str:
    """Reject a missing or blank search term."""
    if value is None or not value.strip():
        raise InvalidInputError(field=field, reason="a non-empty value is required")
    return value.strip()


async def gather_or_cancel(*aws: Awaitable[Any]) -> List[Any]:
    """Run awaitables concurrently and return their results in order.

    The first failure is re-raised unchanged and the remaining operations are
    cancelled; a caller cancellation is likewise propagated to all of them.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class SearchService:
    """검색 처리 서비스(Search handling service)."""

    def __init__(self, repository: SearchRepository) -> None:
        self._repository = repository

    async def global_search(self, term: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """세 종류 엔터티 동시 검색(Search vulnerabilities, vendors and products at once).

        Each kind is paged on its own axis with the same page/limit; the lists
        are not merged or ranked against each other. ``totalPages`` is derived
        from the grand total.
        """

        term = require_text(term, "q")
        skip, limit = page_window(page, limit)

        vulnerability_predicate = vulnerability_text_predicate(term)
        vendor_predicate = vendor_text_predicate(term)
        product_predicate = product_text_predicate(term)

        repo = self._repository
        (
            vulnerabilities,
            vulnerability_count,
            vendors,
            vendor_count,
            products,
            product_count,
        ) = await gather_or_cancel(
            repo.find_vulnerabilities(vulnerability_predicate, VULNERABILITY_ORDER, skip, limit),
            repo.count(Vulnerability, vulnerability_predicate),
            repo.find_vendors(vendor_predicate, VENDOR_ORDER, skip, limit),
            repo.count(Vendor, vendor_predicate),
            repo.find_products(product_predicate, PRODUCT_ORDER, skip, limit),
            repo.count(Product, product_predicate),
        )

        total = vulnerability_count + vendor_count + product_count
        logger.debug(
            "Global search %r: %d vulnerabilities, %d vendors, %d products",
            term,
            vulnerability_count,
            vendor_count,
            product_count,
        )
        return {
            "results": {
                "vulnerabilities": vulnerabilities,
                "vendors": vendors,
                "products": products,
            },
            "counts": {
                "vulnerabilities": vulnerability_count,
                "vendors": vendor_count,
                "products": product_count,
                "total": total,
            },
            "pagination": {
                "page": page,
                "limit": limit,
                "totalPages": total_pages(total, limit),
            },
        }

    async def advanced_search(
        self,
        filters: Optional[Mapping[str, Any]],
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """다중 조건 취약점 검색(Vulnerability search over combined criteria)."""

        present = present_filters(filters)
        if not present:
            raise InvalidInputError(
                field="filters",
                reason="at least one search filter is required",
                details={"filters": list(filters or {})},
            )
        skip, limit = page_window(page, limit)
        predicate = compile_filters(present)

        total = await self._repository.count(Vulnerability, predicate)
        items = await self._repository.find_vulnerabilities(predicate, VULNERABILITY_ORDER, skip, limit)
        return paged(items, total, page, limit)

    async def suggestions(self, prefix: str, kind: str = "all", limit: int = 10) -> Dict[str, List[Dict[str, Any]]]:
        """자동완성 후보 조회(Prefix suggestions per entity kind).

        Only requested kinds get a key in the result.
        """

        prefix = require_text(prefix, "prefix")
        if kind not in SUGGESTION_KINDS:
            raise InvalidInputError(field="type", reason=f"must be one of {', '.join(SUGGESTION_KINDS)}")
        if limit < 1:
            raise InvalidInputError(field="limit", reason="must be >= 1")

        repo = self._repository
        results: Dict[str, List[Dict[str, Any]]] = {}

        if kind in ("all", "vulnerability"):
            rows = await repo.project(
                [Vulnerability.id, Vulnerability.cve_id],
                starts_with(Vulnerability.cve_id, prefix),
                order_by=[Vulnerability.cve_id],
                limit=limit,
            )
            results["vulnerabilities"] = [{"id": row["id"], "cveId": row["cve_id"]} for row in rows]

        if kind in ("all", "vendor"):
            rows = await repo.project(
                [Vendor.id, Vendor.name],
                starts_with(Vendor.name, prefix),
                order_by=[Vendor.name],
                limit=limit,
            )
            results["vendors"] = [{"id": row["id"], "name": row["name"]} for row in rows]

        if kind in ("all", "product"):
            rows = await repo.project(
                [Product.id, Product.name, Product.vendor_name],
                starts_with(Product.name, prefix),
                order_by=[Product.name, Product.vendor_name],
                limit=limit,
            )
            results["products"] = [
                {"id": row["id"], "name": row["name"], "vendorName": row["vendor_name"]} for row in rows
            ]

        return results
