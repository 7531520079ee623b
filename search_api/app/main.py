"""검색 API FastAPI 애플리케이션(Search API FastAPI application)."""
from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Annotated, Any, AsyncIterator, Dict, List, Literal, Optional

from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from common_lib.config import get_settings
from common_lib.db import dispose_engine, get_session_factory
from common_lib.errors import AppException
from common_lib.logger import get_logger
from common_lib.observability import request_id_ctx

from .catalog_service import CatalogService
from .models import (
    GlobalSearchResponse,
    ProductItem,
    ProductOverview,
    ProductPage,
    ProductStatistics,
    ProductVersions,
    SearchFilters,
    TimelinePoint,
    VendorItem,
    VendorOverview,
    VendorPage,
    VendorStatistics,
    VulnerabilityItem,
    VulnerabilityPage,
    VulnerabilitySummary,
)
from .repository import SearchRepository
from .search_service import SearchService
from .statistics import EntityStatistics
from .timeline import TimelineAggregator

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await dispose_engine()


limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])

app = FastAPI(title="VulnSearch", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """요청 ID 추적 미들웨어(Middleware for request ID tracking and correlation)."""

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_ctx.reset(token)


app.add_middleware(RequestIDMiddleware)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application exceptions with standardized error format."""
    logger.log(
        exc.log_level,
        "AppException: %s (code=%s)",
        exc.message,
        exc.error_code,
        extra={"details": exc.details, "path": request.url.path},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected errors."""
    logger.error(
        "Unexpected error: %s",
        str(exc),
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "INTERNAL_ERROR", "message": "Unexpected server error"}},
    )


# ----------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------
def get_repository() -> SearchRepository:
    """저장소 의존성(Repository dependency)."""

    return SearchRepository(get_session_factory())


def get_search_service(repository: SearchRepository = Depends(get_repository)) -> SearchService:
    return SearchService(repository)


def get_catalog_service(repository: SearchRepository = Depends(get_repository)) -> CatalogService:
    return CatalogService(repository, recent_window_days=settings.recent_window_days)


def get_timeline_aggregator(repository: SearchRepository = Depends(get_repository)) -> TimelineAggregator:
    return TimelineAggregator(repository)


def get_entity_statistics(repository: SearchRepository = Depends(get_repository)) -> EntityStatistics:
    return EntityStatistics(repository)


PageParam = Annotated[int, Query(ge=1, description="1-based page number")]
LimitParam = Annotated[int, Query(ge=1, le=settings.max_page_size, description="Items per page")]
SortByParam = Annotated[str, Query(alias="sortBy")]
SortOrderParam = Annotated[int, Query(alias="sortOrder", description="1 ascending, -1 descending")]
TermParam = Annotated[Optional[str], Query(description="Free-text term")]


# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------
@app.get("/api/v1/search", response_model=GlobalSearchResponse, tags=["search"])
async def global_search(
    q: TermParam = None,
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    service: SearchService = Depends(get_search_service),
) -> Dict[str, Any]:
    """취약점/공급사/제품 통합 검색(Search vulnerabilities, vendors and products)."""

    return await service.global_search(q, page, limit)


@app.post("/api/v1/search/advanced", response_model=VulnerabilityPage, tags=["search"])
async def advanced_search(
    filters: Optional[SearchFilters] = Body(default=None),
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    service: SearchService = Depends(get_search_service),
) -> Dict[str, Any]:
    """다중 조건 검색(Advanced vulnerability search). At least one filter is required."""

    criteria = filters.model_dump(by_alias=True, exclude_none=True) if filters is not None else {}
    return await service.advanced_search(criteria, page, limit)


@app.get("/api/v1/search/suggestions", tags=["search"])
async def suggestions(
    prefix: Annotated[Optional[str], Query()] = None,
    kind: Annotated[Literal["all", "vulnerability", "vendor", "product"], Query(alias="type")] = "all",
    limit: Annotated[int, Query(ge=1, le=settings.max_page_size)] = settings.suggestion_limit,
    service: SearchService = Depends(get_search_service),
) -> Dict[str, List[Dict[str, Any]]]:
    """자동완성(Autocomplete suggestions). Only the requested kinds appear as keys."""

    return await service.suggestions(prefix, kind, limit)


# ----------------------------------------------------------------------
# Vulnerabilities
# ----------------------------------------------------------------------
@app.get("/api/v1/vulnerabilities", response_model=VulnerabilityPage, tags=["vulnerabilities"])
async def list_vulnerabilities(
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    sort_by: SortByParam = "publishedDate",
    sort_order: SortOrderParam = -1,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.list_vulnerabilities(page, limit, sort_by, sort_order)


@app.get("/api/v1/vulnerabilities/search", response_model=VulnerabilityPage, tags=["vulnerabilities"])
async def search_vulnerabilities(
    q: TermParam = None,
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.search_vulnerabilities(q, page, limit)


@app.get("/api/v1/vulnerabilities/stats/summary", response_model=VulnerabilitySummary, tags=["vulnerabilities"])
async def vulnerability_summary(catalog: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    return await catalog.vulnerability_summary()


@app.get("/api/v1/vulnerabilities/stats/timeline", response_model=List[TimelinePoint], tags=["vulnerabilities"])
async def vulnerability_timeline(
    period: Annotated[Literal["day", "week", "month"], Query()] = "month",
    limit: Annotated[int, Query(ge=1, le=366)] = settings.timeline_limit,
    aggregator: TimelineAggregator = Depends(get_timeline_aggregator),
) -> List[Dict[str, Any]]:
    """게시 기간별 추이(Publication timeline, populated buckets only)."""

    return await aggregator.timeline(period, limit)


@app.get("/api/v1/vulnerabilities/severity/{severity}", response_model=VulnerabilityPage, tags=["vulnerabilities"])
async def vulnerabilities_by_severity(
    severity: str,
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.vulnerabilities_by_severity(severity, page, limit)


@app.get("/api/v1/vulnerabilities/product/{product_id}", response_model=VulnerabilityPage, tags=["vulnerabilities"])
async def vulnerabilities_by_product(
    product_id: int,
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.vulnerabilities_by_product(product_id, page, limit)


@app.get("/api/v1/vulnerabilities/vendor/{vendor_id}", response_model=VulnerabilityPage, tags=["vulnerabilities"])
async def vulnerabilities_by_vendor(
    vendor_id: int,
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.vulnerabilities_by_vendor(vendor_id, page, limit)


@app.get("/api/v1/vulnerabilities/{cve_id}", response_model=VulnerabilityItem, tags=["vulnerabilities"])
async def get_vulnerability(cve_id: str, catalog: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    return await catalog.get_vulnerability(cve_id)


# ----------------------------------------------------------------------
# Vendors
# ----------------------------------------------------------------------
@app.get("/api/v1/vendors", response_model=VendorPage, tags=["vendors"])
async def list_vendors(
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    sort_by: SortByParam = "vulnerabilityCount",
    sort_order: SortOrderParam = -1,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.list_vendors(page, limit, sort_by, sort_order)


@app.get("/api/v1/vendors/search", response_model=VendorPage, tags=["vendors"])
async def search_vendors(
    q: TermParam = None,
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.search_vendors(q, page, limit)


@app.get("/api/v1/vendors/stats/summary", response_model=VendorOverview, tags=["vendors"])
async def vendor_overview(catalog: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    return await catalog.vendor_overview()


@app.get("/api/v1/vendors/name/{name}", response_model=VendorItem, tags=["vendors"])
async def get_vendor_by_name(name: str, catalog: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    return await catalog.get_vendor_by_name(name)


@app.get("/api/v1/vendors/{vendor_id}", response_model=VendorItem, tags=["vendors"])
async def get_vendor(vendor_id: int, catalog: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    return await catalog.get_vendor(vendor_id)


@app.get("/api/v1/vendors/{vendor_id}/products", response_model=ProductPage, tags=["vendors"])
async def vendor_products(
    vendor_id: int,
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.vendor_products(vendor_id, page, limit)


@app.get("/api/v1/vendors/{vendor_id}/stats", response_model=VendorStatistics, tags=["vendors"])
async def vendor_statistics(
    vendor_id: int, statistics: EntityStatistics = Depends(get_entity_statistics)
) -> Dict[str, Any]:
    return await statistics.vendor_statistics(vendor_id)


# ----------------------------------------------------------------------
# Products
# ----------------------------------------------------------------------
@app.get("/api/v1/products", response_model=ProductPage, tags=["products"])
async def list_products(
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    sort_by: SortByParam = "vulnerabilityCount",
    sort_order: SortOrderParam = -1,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.list_products(page, limit, sort_by, sort_order)


@app.get("/api/v1/products/search", response_model=ProductPage, tags=["products"])
async def search_products(
    q: TermParam = None,
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.search_products(q, page, limit)


@app.get("/api/v1/products/stats/summary", response_model=ProductOverview, tags=["products"])
async def product_overview(catalog: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    return await catalog.product_overview()


@app.get("/api/v1/products/vendor/{vendor_id}/name/{name}", response_model=ProductItem, tags=["products"])
async def get_product_by_name(
    vendor_id: int, name: str, catalog: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    return await catalog.get_product_by_name(vendor_id, name)


@app.get("/api/v1/products/{product_id}", response_model=ProductItem, tags=["products"])
async def get_product(product_id: int, catalog: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    return await catalog.get_product(product_id)


@app.get("/api/v1/products/{product_id}/vulnerabilities", response_model=VulnerabilityPage, tags=["products"])
async def product_vulnerabilities(
    product_id: int,
    page: PageParam = 1,
    limit: LimitParam = settings.default_page_size,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    return await catalog.product_vulnerabilities(product_id, page, limit)


@app.get("/api/v1/products/{product_id}/versions", response_model=ProductVersions, tags=["products"])
async def product_versions(product_id: int, catalog: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    return await catalog.product_versions(product_id)


@app.get("/api/v1/products/{product_id}/stats", response_model=ProductStatistics, tags=["products"])
async def product_statistics(
    product_id: int, statistics: EntityStatistics = Depends(get_entity_statistics)
) -> Dict[str, Any]:
    return await statistics.product_statistics(product_id)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """헬스체크 엔드포인트(Health check endpoint)."""

    return {"status": "ok"}
