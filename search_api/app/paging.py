"""페이지 및 정렬 도우미(Paging and ordering helpers)."""
from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from common_lib.errors import InvalidInputError

from .tables import Product, Vendor, Vulnerability

# 기본 정렬(Default orderings); id breaks ties so pages are stable
VULNERABILITY_ORDER = (Vulnerability.published_date.desc().nulls_last(), Vulnerability.id.desc())
VENDOR_ORDER = (Vendor.vulnerability_count.desc(), Vendor.id)
PRODUCT_ORDER = (Product.vulnerability_count.desc(), Product.id)

VULNERABILITY_SORT_FIELDS: Mapping[str, Any] = {
    "publishedDate": Vulnerability.published_date,
    "lastModifiedDate": Vulnerability.last_modified_date,
    "score": Vulnerability.score,
    "cveId": Vulnerability.cve_id,
}
VENDOR_SORT_FIELDS: Mapping[str, Any] = {
    "vulnerabilityCount": Vendor.vulnerability_count,
    "productCount": Vendor.product_count,
    "name": Vendor.name,
    "lastSeen": Vendor.last_seen,
}
PRODUCT_SORT_FIELDS: Mapping[str, Any] = {
    "vulnerabilityCount": Product.vulnerability_count,
    "name": Product.name,
    "lastSeen": Product.last_seen,
}


def page_window(page: int, limit: int) -> Tuple[int, int]:
    """Return ``(skip, limit)`` for a 1-based page."""

    if page < 1:
        raise InvalidInputError(field="page", reason="must be >= 1")
    if limit < 1:
        raise InvalidInputError(field="limit", reason="must be >= 1")
    return (page - 1) * limit, limit


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit)


def paged(items: List[Dict[str, Any]], total: int, page: int, limit: int) -> Dict[str, Any]:
    """Paged-list wire shape."""
    return {
        "items": items,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": total_pages(total, limit),
        },
    }


def resolve_order(
    fields: Mapping[str, Any],
    sort_by: str,
    sort_order: int,
    tie_breaker: Any,
) -> Sequence[Any]:
    """Translate a public sort field and direction (1 or -1) into ORDER BY clauses."""

    column = fields.get(sort_by)
    if column is None:
        raise InvalidInputError(
            field="sortBy",
            reason=f"must be one of {', '.join(fields)}",
            details={"sortBy": sort_by},
        )
    if sort_order not in (1, -1):
        raise InvalidInputError(field="sortOrder", reason="must be 1 or -1")
    if sort_order == -1:
        return (column.desc().nulls_last(), tie_breaker.desc())
    return (column.asc().nulls_last(), tie_breaker.asc())
