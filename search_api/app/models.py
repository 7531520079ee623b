"""검색 API 데이터 모델(Search API data models).

Wire names are camelCase; Python attributes stay snake_case and are mapped
through aliases.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VersionEntry(CamelModel):
    version: str
    affected: bool


class AffectedProductItem(CamelModel):
    product_id: int
    vendor_id: int
    product_name: str
    vendor_name: str
    versions: List[VersionEntry] = Field(default_factory=list)


class VulnerabilityItem(CamelModel):
    """취약점 항목(Vulnerability item).

    ``severity`` is derived from ``score`` when the item is built; it is not a
    stored column.
    """

    id: int
    cve_id: str
    description: str
    score: Optional[float] = None
    severity: str
    published_date: Optional[datetime] = None
    last_modified_date: Optional[datetime] = None
    weaknesses: List[str] = Field(default_factory=list)
    affected_products: List[AffectedProductItem] = Field(default_factory=list)


class VendorItem(CamelModel):
    id: int
    name: str
    product_count: int
    vulnerability_count: int
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None


class ProductItem(CamelModel):
    id: int
    name: str
    vendor_id: int
    vendor_name: str
    vulnerability_count: int
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    versions: List[VersionEntry] = Field(default_factory=list)


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class VulnerabilityPage(CamelModel):
    items: List[VulnerabilityItem]
    pagination: Pagination


class VendorPage(CamelModel):
    items: List[VendorItem]
    pagination: Pagination


class ProductPage(CamelModel):
    items: List[ProductItem]
    pagination: Pagination


class SearchResults(CamelModel):
    vulnerabilities: List[VulnerabilityItem]
    vendors: List[VendorItem]
    products: List[ProductItem]


class SearchCounts(CamelModel):
    vulnerabilities: int
    vendors: int
    products: int
    total: int


class SearchPagination(CamelModel):
    page: int
    limit: int
    total_pages: int


class GlobalSearchResponse(CamelModel):
    """전역 검색 응답(Global search response)."""

    results: SearchResults
    counts: SearchCounts
    pagination: SearchPagination


class SearchFilters(CamelModel):
    """고급 검색 조건(Advanced search criteria). Every field is optional."""

    cve_id: Optional[str] = None
    description: Optional[str] = None
    vendor: Optional[str] = None
    product: Optional[str] = None
    severity: Optional[str] = None
    min_score: Optional[float] = Field(default=None, ge=0, le=10)
    max_score: Optional[float] = Field(default=None, ge=0, le=10)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    cwe_id: Optional[str] = None


class TimelinePoint(CamelModel):
    period: str
    count: int
    avg_score: Optional[float] = None


class MonthlyCount(CamelModel):
    month: str
    count: int


class VersionStats(CamelModel):
    affected: int
    not_affected: int
    total: int


class VulnerabilitySummary(CamelModel):
    total: int
    by_severity: Dict[str, int]
    recent_count: int


class VendorStatistics(CamelModel):
    name: str
    cached_count: int
    product_count: int
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    severity_distribution: Dict[str, int]
    avg_score: Union[str, int]
    timeline: List[MonthlyCount]


class ProductStatistics(CamelModel):
    name: str
    vendor: str
    cached_count: int
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    severity_distribution: Dict[str, int]
    avg_score: Union[str, int]
    timeline: List[MonthlyCount]
    version_stats: VersionStats


class ProductVersions(CamelModel):
    product_name: str
    vendor_name: str
    versions: List[VersionEntry]


class VendorOverview(CamelModel):
    total: int
    top_by_vulnerabilities: List[VendorItem]
    top_by_products: List[VendorItem]
    recently_affected: List[VendorItem]


class ProductOverview(CamelModel):
    total: int
    top_by_vulnerabilities: List[ProductItem]
    recently_affected: List[ProductItem]
