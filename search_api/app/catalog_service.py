"""취약점/공급사/제품 조회 서비스(Vulnerability, vendor and product lookups).

Lists keyed by a foreign reference return an empty page for an unknown
reference; only direct single-entity lookups raise ``ResourceNotFound``.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import ColumnElement

from common_lib.errors import ResourceNotFound
from common_lib.logger import get_logger
from common_lib.timestamps import utcnow

from .filters import product_text_predicate, vendor_text_predicate, vulnerability_text_predicate
from .paging import (
    PRODUCT_ORDER,
    PRODUCT_SORT_FIELDS,
    VENDOR_ORDER,
    VENDOR_SORT_FIELDS,
    VULNERABILITY_ORDER,
    VULNERABILITY_SORT_FIELDS,
    page_window,
    paged,
    resolve_order,
)
from .repository import SearchRepository
from .search_service import require_text
from .severity import label_to_range
from .tables import AffectedProduct, Product, Vendor, Vulnerability

logger = get_logger(__name__)

TOP_N = 10


class CatalogService:
    """카탈로그 조회 서비스(Catalogue lookup service)."""

    def __init__(self, repository: SearchRepository, recent_window_days: int = 30) -> None:
        self._repository = repository
        self._recent_window = timedelta(days=recent_window_days)

    async def _vulnerability_page(
        self,
        predicate: Optional[ColumnElement[bool]],
        page: int,
        limit: int,
        order_by: Sequence[Any] = VULNERABILITY_ORDER,
    ) -> Dict[str, Any]:
        skip, limit = page_window(page, limit)
        total = await self._repository.count(Vulnerability, predicate)
        items = await self._repository.find_vulnerabilities(predicate, order_by, skip, limit)
        return paged(items, total, page, limit)

    async def _vendor_page(
        self,
        predicate: Optional[ColumnElement[bool]],
        page: int,
        limit: int,
        order_by: Sequence[Any] = VENDOR_ORDER,
    ) -> Dict[str, Any]:
        skip, limit = page_window(page, limit)
        total = await self._repository.count(Vendor, predicate)
        items = await self._repository.find_vendors(predicate, order_by, skip, limit)
        return paged(items, total, page, limit)

    async def _product_page(
        self,
        predicate: Optional[ColumnElement[bool]],
        page: int,
        limit: int,
        order_by: Sequence[Any] = PRODUCT_ORDER,
    ) -> Dict[str, Any]:
        skip, limit = page_window(page, limit)
        total = await self._repository.count(Product, predicate)
        items = await self._repository.find_products(predicate, order_by, skip, limit)
        return paged(items, total, page, limit)

    # ------------------------------------------------------------------
    # Vulnerabilities
    # ------------------------------------------------------------------
    async def list_vulnerabilities(
        self, page: int = 1, limit: int = 20, sort_by: str = "publishedDate", sort_order: int = -1
    ) -> Dict[str, Any]:
        order_by = resolve_order(VULNERABILITY_SORT_FIELDS, sort_by, sort_order, Vulnerability.id)
        return await self._vulnerability_page(None, page, limit, order_by)

    async def get_vulnerability(self, cve_id: str) -> Dict[str, Any]:
        vulnerability = await self._repository.get_vulnerability(require_text(cve_id, "cveId"))
        if vulnerability is None:
            raise ResourceNotFound(resource_type="vulnerability", identifier=cve_id)
        return vulnerability

    async def vulnerabilities_by_severity(self, label: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """심각도 등급 또는 최소 점수로 조회(List by severity band or minimum score).

        A label that is neither a band nor a number applies no score constraint.
        """
        score_range = label_to_range(label)
        predicate = score_range.to_predicate(Vulnerability.score) if score_range is not None else None
        order_by = (
            Vulnerability.score.desc().nulls_last(),
            Vulnerability.published_date.desc().nulls_last(),
            Vulnerability.id.desc(),
        )
        return await self._vulnerability_page(predicate, page, limit, order_by)

    async def vulnerabilities_by_product(self, product_id: int, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        predicate = Vulnerability.affected_products.any(AffectedProduct.product_id == product_id)
        return await self._vulnerability_page(predicate, page, limit)

    async def vulnerabilities_by_vendor(self, vendor_id: int, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        predicate = Vulnerability.affected_products.any(AffectedProduct.vendor_id == vendor_id)
        return await self._vulnerability_page(predicate, page, limit)

    async def search_vulnerabilities(self, term: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        predicate = vulnerability_text_predicate(require_text(term, "q"))
        return await self._vulnerability_page(predicate, page, limit)

    async def vulnerability_summary(self) -> Dict[str, Any]:
        total = await self._repository.count(Vulnerability)
        by_severity = await self._repository.severity_counts()
        since = utcnow() - self._recent_window
        recent = await self._repository.count(Vulnerability, Vulnerability.published_date >= since)
        return {"total": total, "bySeverity": by_severity, "recentCount": recent}

    # ------------------------------------------------------------------
    # Vendors
    # ------------------------------------------------------------------
    async def list_vendors(
        self, page: int = 1, limit: int = 20, sort_by: str = "vulnerabilityCount", sort_order: int = -1
    ) -> Dict[str, Any]:
        order_by = resolve_order(VENDOR_SORT_FIELDS, sort_by, sort_order, Vendor.id)
        return await self._vendor_page(None, page, limit, order_by)

    async def get_vendor(self, vendor_id: int) -> Dict[str, Any]:
        vendor = await self._repository.get_vendor(vendor_id)
        if vendor is None:
            raise ResourceNotFound(resource_type="vendor", identifier=vendor_id)
        return vendor

    async def get_vendor_by_name(self, name: str) -> Dict[str, Any]:
        vendor = await self._repository.get_vendor_by_name(require_text(name, "name"))
        if vendor is None:
            raise ResourceNotFound(resource_type="vendor", identifier=name)
        return vendor

    async def search_vendors(self, term: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        return await self._vendor_page(vendor_text_predicate(require_text(term, "q")), page, limit)

    async def vendor_products(self, vendor_id: int, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        return await self._product_page(Product.vendor_id == vendor_id, page, limit)

    async def vendor_overview(self) -> Dict[str, Any]:
        repo = self._repository
        total = await repo.count(Vendor)
        top_by_vulnerabilities = await repo.find_vendors(None, VENDOR_ORDER, 0, TOP_N)
        top_by_products = await repo.find_vendors(None, (Vendor.product_count.desc(), Vendor.id), 0, TOP_N)
        recently_affected = await repo.find_vendors(None, (Vendor.last_seen.desc().nulls_last(), Vendor.id), 0, TOP_N)
        return {
            "total": total,
            "topByVulnerabilities": top_by_vulnerabilities,
            "topByProducts": top_by_products,
            "recentlyAffected": recently_affected,
        }

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------
    async def list_products(
        self, page: int = 1, limit: int = 20, sort_by: str = "vulnerabilityCount", sort_order: int = -1
    ) -> Dict[str, Any]:
        order_by = resolve_order(PRODUCT_SORT_FIELDS, sort_by, sort_order, Product.id)
        return await self._product_page(None, page, limit, order_by)

    async def get_product(self, product_id: int) -> Dict[str, Any]:
        product = await self._repository.get_product(product_id)
        if product is None:
            raise ResourceNotFound(resource_type="product", identifier=product_id)
        return product

    async def get_product_by_name(self, vendor_id: int, name: str) -> Dict[str, Any]:
        product = await self._repository.get_product_by_name(vendor_id, require_text(name, "name"))
        if product is None:
            raise ResourceNotFound(
                resource_type="product",
                identifier=name,
                details={"resource_type": "product", "identifier": name, "vendor_id": vendor_id},
            )
        return product

    async def search_products(self, term: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        return await self._product_page(product_text_predicate(require_text(term, "q")), page, limit)

    async def product_vulnerabilities(self, product_id: int, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        return await self.vulnerabilities_by_product(product_id, page, limit)

    async def product_versions(self, product_id: int) -> Dict[str, Any]:
        product = await self.get_product(product_id)
        return {
            "productName": product["name"],
            "vendorName": product["vendorName"],
            "versions": product["versions"],
        }

    async def product_overview(self) -> Dict[str, Any]:
        repo = self._repository
        total = await repo.count(Product)
        top_by_vulnerabilities = await repo.find_products(None, PRODUCT_ORDER, 0, TOP_N)
        recently_affected = await repo.find_products(
            None, (Product.last_seen.desc().nulls_last(), Product.id), 0, TOP_N
        )
        return {
            "total": total,
            "topByVulnerabilities": top_by_vulnerabilities,
            "recentlyAffected": recently_affected,
        }
