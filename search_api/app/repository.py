"""취약점 색인 데이터 접근 계층(Vulnerability index data access layer)."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import ColumnElement, func, select, true
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from common_lib.errors import AppException, ExternalServiceError
from common_lib.logger import get_logger
from common_lib.timestamps import ensure_date, normalize_timestamp

from .severity import classify, empty_distribution, severity_case
from .tables import AffectedProduct, Product, Vendor, Vulnerability

logger = get_logger(__name__)


def vulnerability_to_dict(vuln: Vulnerability) -> Dict[str, Any]:
    return {
        "id": vuln.id,
        "cveId": vuln.cve_id,
        "description": vuln.description,
        "score": vuln.score,
        "severity": classify(vuln.score).value,
        "publishedDate": normalize_timestamp(vuln.published_date),
        "lastModifiedDate": normalize_timestamp(vuln.last_modified_date),
        "weaknesses": [weakness.cwe_id for weakness in vuln.weaknesses],
        "affectedProducts": [
            {
                "productId": assoc.product_id,
                "vendorId": assoc.vendor_id,
                "productName": assoc.product_name,
                "vendorName": assoc.vendor_name,
                "versions": [{"version": v.version, "affected": v.affected} for v in assoc.versions],
            }
            for assoc in vuln.affected_products
        ],
    }


def vendor_to_dict(vendor: Vendor) -> Dict[str, Any]:
    return {
        "id": vendor.id,
        "name": vendor.name,
        "productCount": vendor.product_count,
        "vulnerabilityCount": vendor.vulnerability_count,
        "firstSeen": normalize_timestamp(vendor.first_seen),
        "lastSeen": normalize_timestamp(vendor.last_seen),
    }


def product_to_dict(product: Product, vendor_name: Optional[str] = None) -> Dict[str, Any]:
    """Serialize a product; ``vendor_name`` is the name resolved through the vendor join."""
    return {
        "id": product.id,
        "name": product.name,
        "vendorId": product.vendor_id,
        "vendorName": vendor_name or product.vendor_name,
        "vulnerabilityCount": product.vulnerability_count,
        "firstSeen": normalize_timestamp(product.first_seen),
        "lastSeen": normalize_timestamp(product.last_seen),
        "versions": [{"version": v.version, "affected": v.affected} for v in product.versions],
    }


class SearchRepository:
    """읽기 전용 색인 저장소(Read-only index repository).

    Every operation opens its own session from the factory, so independent
    operations may run concurrently on the same repository instance.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except AppException:
            raise
        except Exception as exc:
            logger.error("Database error in %s: %s", operation, exc, exc_info=exc)
            raise ExternalServiceError(
                service_name="Database",
                reason=f"Failed to execute {operation}",
                details={"operation": operation},
            ) from exc

    # ------------------------------------------------------------------
    # Generic predicate capabilities
    # ------------------------------------------------------------------
    async def count(self, model: Any, predicate: Optional[ColumnElement[bool]] = None) -> int:
        """조건에 맞는 개수(Count entities matching the predicate)."""

        stmt = select(func.count()).select_from(model).where(predicate if predicate is not None else true())
        async with self._session(f"count_{model.__tablename__}") as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def project(
        self,
        columns: Sequence[Any],
        predicate: Optional[ColumnElement[bool]] = None,
        order_by: Sequence[Any] = (),
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """필드 투영 조회(Fetch only the given columns, keyed by column name)."""

        stmt = select(*columns).where(predicate if predicate is not None else true()).order_by(*order_by)
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session("project") as session:
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    # ------------------------------------------------------------------
    # Entity pages
    # ------------------------------------------------------------------
    async def find_vulnerabilities(
        self,
        predicate: Optional[ColumnElement[bool]],
        order_by: Sequence[Any],
        skip: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        stmt = (
            select(Vulnerability)
            .where(predicate if predicate is not None else true())
            .options(
                selectinload(Vulnerability.affected_products).selectinload(AffectedProduct.versions),
                selectinload(Vulnerability.weaknesses),
            )
            .order_by(*order_by)
            .offset(skip)
            .limit(limit)
        )
        async with self._session("find_vulnerabilities") as session:
            result = await session.execute(stmt)
            return [vulnerability_to_dict(vuln) for vuln in result.scalars().all()]

    async def find_vendors(
        self,
        predicate: Optional[ColumnElement[bool]],
        order_by: Sequence[Any],
        skip: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        stmt = (
            select(Vendor)
            .where(predicate if predicate is not None else true())
            .order_by(*order_by)
            .offset(skip)
            .limit(limit)
        )
        async with self._session("find_vendors") as session:
            result = await session.execute(stmt)
            return [vendor_to_dict(vendor) for vendor in result.scalars().all()]

    async def find_products(
        self,
        predicate: Optional[ColumnElement[bool]],
        order_by: Sequence[Any],
        skip: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        stmt = (
            select(Product, Vendor.name)
            .outerjoin(Vendor, Product.vendor_id == Vendor.id)
            .where(predicate if predicate is not None else true())
            .options(selectinload(Product.versions))
            .order_by(*order_by)
            .offset(skip)
            .limit(limit)
        )
        async with self._session("find_products") as session:
            result = await session.execute(stmt)
            return [product_to_dict(product, vendor_name) for product, vendor_name in result.all()]

    # ------------------------------------------------------------------
    # Single-entity lookups (None when absent)
    # ------------------------------------------------------------------
    async def get_vulnerability(self, cve_id: str) -> Optional[Dict[str, Any]]:
        rows = await self.find_vulnerabilities(func.upper(Vulnerability.cve_id) == cve_id.upper(), (), 0, 1)
        return rows[0] if rows else None

    async def get_vendor(self, vendor_id: int) -> Optional[Dict[str, Any]]:
        rows = await self.find_vendors(Vendor.id == vendor_id, (), 0, 1)
        return rows[0] if rows else None

    async def get_vendor_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        rows = await self.find_vendors(func.lower(Vendor.name) == name.lower(), (Vendor.id,), 0, 1)
        return rows[0] if rows else None

    async def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        rows = await self.find_products(Product.id == product_id, (), 0, 1)
        return rows[0] if rows else None

    async def get_product_by_name(self, vendor_id: int, name: str) -> Optional[Dict[str, Any]]:
        predicate = (Product.vendor_id == vendor_id) & (func.lower(Product.name) == name.lower())
        rows = await self.find_products(predicate, (Product.id,), 0, 1)
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------
    async def daily_buckets(self, predicate: Optional[ColumnElement[bool]] = None) -> List[Dict[str, Any]]:
        """일 단위 집계(Group dated vulnerabilities by calendar day).

        Returns ``day``, ``count``, ``scoreTotal`` and ``scored`` (how many rows in
        the day carry a score) so callers can roll days up into coarser buckets
        and still average over scored rows only.
        """

        dated = (
            select(
                func.date(Vulnerability.published_date).label("day"),
                Vulnerability.score.label("score"),
            )
            .where(Vulnerability.published_date.is_not(None))
            .where(predicate if predicate is not None else true())
            .subquery()
        )
        stmt = (
            select(
                dated.c.day,
                func.count().label("count"),
                func.sum(dated.c.score).label("score_total"),
                func.count(dated.c.score).label("scored"),
            )
            .group_by(dated.c.day)
            .order_by(dated.c.day)
        )
        async with self._session("daily_buckets") as session:
            result = await session.execute(stmt)
            return [
                {
                    "day": ensure_date(row.day),
                    "count": int(row.count),
                    "scoreTotal": float(row.score_total) if row.score_total is not None else 0.0,
                    "scored": int(row.scored),
                }
                for row in result.all()
            ]

    async def severity_counts(self, predicate: Optional[ColumnElement[bool]] = None) -> Dict[str, int]:
        """심각도별 개수(Count scored vulnerabilities per severity band inside the database).

        Records without a score are left out; NONE only counts a score of 0.
        """

        banded = (
            select(severity_case(Vulnerability.score).label("band"))
            .where(Vulnerability.score.is_not(None))
            .where(predicate if predicate is not None else true())
            .subquery()
        )
        stmt = select(banded.c.band, func.count().label("count")).group_by(banded.c.band)
        async with self._session("severity_counts") as session:
            result = await session.execute(stmt)
            distribution = empty_distribution()
            for row in result.all():
                distribution[row.band] = int(row.count)
            return distribution
