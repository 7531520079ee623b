"""Tests for catalogue lookups and overviews."""
from datetime import datetime, timedelta

import pytest

from common_lib.errors import InvalidInputError, ResourceNotFound
from common_lib.timestamps import utcnow
from search_api.app.catalog_service import CatalogService
from tests.conftest import make_product, make_vendor, make_vulnerability


class TestVulnerabilities:
    @pytest.mark.asyncio
    async def test_get_by_cve_is_case_insensitive(self, repository, windows_fixture):
        item = await CatalogService(repository).get_vulnerability("cve-2023-1234")

        assert item["cveId"] == "CVE-2023-1234"
        assert item["severity"] == "HIGH"
        assert item["weaknesses"] == ["CWE-120"]
        assert item["affectedProducts"][0]["productName"] == "Windows"
        assert item["publishedDate"] == "2023-05-02T12:00:00"

    @pytest.mark.asyncio
    async def test_get_unknown_cve(self, repository, windows_fixture):
        with pytest.raises(ResourceNotFound) as excinfo:
            await CatalogService(repository).get_vulnerability("CVE-1999-0001")
        assert excinfo.value.status_code == 404

    @pytest.mark.asyncio
    async def test_list_newest_first(self, repository, windows_fixture):
        page = await CatalogService(repository).list_vulnerabilities()
        assert [item["cveId"] for item in page["items"]] == ["CVE-2023-1234", "CVE-2021-41773"]
        assert page["pagination"] == {"total": 2, "page": 1, "limit": 20, "totalPages": 1}

    @pytest.mark.asyncio
    async def test_list_sorted_by_score_ascending(self, repository, windows_fixture):
        page = await CatalogService(repository).list_vulnerabilities(sort_by="score", sort_order=1)
        assert [item["score"] for item in page["items"]] == [7.5, 8.5]

    @pytest.mark.asyncio
    async def test_unknown_sort_field(self, repository):
        with pytest.raises(InvalidInputError):
            await CatalogService(repository).list_vulnerabilities(sort_by="password")

    @pytest.mark.asyncio
    async def test_by_severity_orders_by_score(self, repository, seed):
        await seed(
            make_vulnerability(1, "CVE-2024-0001", 9.1, datetime(2024, 1, 1)),
            make_vulnerability(2, "CVE-2024-0002", 9.9, datetime(2023, 1, 1)),
            make_vulnerability(3, "CVE-2024-0003", 8.9, datetime(2024, 6, 1)),
        )

        page = await CatalogService(repository).vulnerabilities_by_severity("critical")

        assert [item["cveId"] for item in page["items"]] == ["CVE-2024-0002", "CVE-2024-0001"]

    @pytest.mark.asyncio
    async def test_by_severity_numeric_threshold(self, repository, seed):
        await seed(
            make_vulnerability(1, "CVE-2024-0001", 9.1),
            make_vulnerability(2, "CVE-2024-0002", 5.0),
            make_vulnerability(3, "CVE-2024-0003", None),
        )
        page = await CatalogService(repository).vulnerabilities_by_severity("5")
        assert page["pagination"]["total"] == 2

    @pytest.mark.asyncio
    async def test_by_severity_unrecognized_label(self, repository, seed):
        await seed(make_vulnerability(1, "CVE-2024-0001", 9.1), make_vulnerability(2, "CVE-2024-0002", None))
        page = await CatalogService(repository).vulnerabilities_by_severity("urgent")
        # no constraint; unscored records sort last
        assert [item["cveId"] for item in page["items"]] == ["CVE-2024-0001", "CVE-2024-0002"]

    @pytest.mark.asyncio
    async def test_unknown_product_gives_empty_page(self, repository, windows_fixture):
        page = await CatalogService(repository).vulnerabilities_by_product(9999)
        assert page == {"items": [], "pagination": {"total": 0, "page": 1, "limit": 20, "totalPages": 0}}

    @pytest.mark.asyncio
    async def test_by_vendor(self, repository, windows_fixture):
        page = await CatalogService(repository).vulnerabilities_by_vendor(2)
        assert [item["cveId"] for item in page["items"]] == ["CVE-2021-41773"]

    @pytest.mark.asyncio
    async def test_search_matches_description(self, repository, windows_fixture):
        page = await CatalogService(repository).search_vulnerabilities("path TRAVERSAL")
        assert [item["cveId"] for item in page["items"]] == ["CVE-2021-41773"]

    @pytest.mark.asyncio
    async def test_summary(self, repository, seed):
        now = utcnow()
        await seed(
            make_vulnerability(1, "CVE-2024-0001", 9.8, now - timedelta(days=2)),
            make_vulnerability(2, "CVE-2024-0002", 0.0, now - timedelta(days=400)),
            make_vulnerability(3, "CVE-2024-0003", None, None),
            make_vulnerability(4, "CVE-2024-0004", 4.0, now - timedelta(days=10)),
        )

        summary = await CatalogService(repository, recent_window_days=30).vulnerability_summary()

        assert summary == {
            "total": 4,
            "bySeverity": {"CRITICAL": 1, "HIGH": 0, "MEDIUM": 1, "LOW": 0, "NONE": 1},
            "recentCount": 2,
        }


class TestVendors:
    @pytest.mark.asyncio
    async def test_by_name_ignores_case(self, repository, windows_fixture):
        vendor = await CatalogService(repository).get_vendor_by_name("MICROSOFT")
        assert vendor["id"] == 1
        assert vendor["vulnerabilityCount"] == 150

    @pytest.mark.asyncio
    async def test_by_name_is_exact(self, repository, windows_fixture):
        with pytest.raises(ResourceNotFound):
            await CatalogService(repository).get_vendor_by_name("Micro")

    @pytest.mark.asyncio
    async def test_missing_vendor(self, repository):
        with pytest.raises(ResourceNotFound):
            await CatalogService(repository).get_vendor(7)

    @pytest.mark.asyncio
    async def test_list_by_cached_count(self, repository, windows_fixture):
        page = await CatalogService(repository).list_vendors()
        assert [vendor["name"] for vendor in page["items"]] == ["Microsoft", "Apache"]

    @pytest.mark.asyncio
    async def test_products_of_vendor(self, repository, windows_fixture):
        page = await CatalogService(repository).vendor_products(1)
        assert [product["name"] for product in page["items"]] == ["Windows"]
        assert page["items"][0]["versions"] == [
            {"version": "10", "affected": True},
            {"version": "11", "affected": False},
        ]

    @pytest.mark.asyncio
    async def test_overview(self, repository, seed):
        await seed(
            make_vendor(1, "Busy", vulnerability_count=50, product_count=1, last_seen=datetime(2024, 1, 1)),
            make_vendor(2, "Broad", vulnerability_count=5, product_count=40, last_seen=datetime(2025, 1, 1)),
            make_vendor(3, "Dormant", vulnerability_count=1, product_count=1),
        )

        overview = await CatalogService(repository).vendor_overview()

        assert overview["total"] == 3
        assert [v["name"] for v in overview["topByVulnerabilities"]] == ["Busy", "Broad", "Dormant"]
        assert overview["topByProducts"][0]["name"] == "Broad"
        assert [v["name"] for v in overview["recentlyAffected"]] == ["Broad", "Busy", "Dormant"]


class TestProducts:
    @pytest.mark.asyncio
    async def test_by_name_within_vendor(self, repository, windows_fixture):
        catalog = CatalogService(repository)
        product = await catalog.get_product_by_name(1, "windows")
        assert product["id"] == 10
        with pytest.raises(ResourceNotFound):
            await catalog.get_product_by_name(2, "Windows")

    @pytest.mark.asyncio
    async def test_vendor_name_comes_from_vendor(self, repository, seed):
        vendor = make_vendor(1, "Renamed Corp")
        product = make_product(10, vendor, "Thing")
        product.vendor_name = "Old Corp"
        await seed(vendor, product)

        item = await CatalogService(repository).get_product(10)
        assert item["vendorName"] == "Renamed Corp"

    @pytest.mark.asyncio
    async def test_search_uses_current_vendor_name(self, repository, seed):
        vendor = make_vendor(1, "Renamed Corp")
        product = make_product(10, vendor, "Thing")
        product.vendor_name = "Old Corp"
        await seed(vendor, product)
        catalog = CatalogService(repository)

        renamed = await catalog.search_products("renamed")
        stale = await catalog.search_products("old corp")

        assert [item["id"] for item in renamed["items"]] == [10]
        assert renamed["pagination"]["total"] == 1
        assert stale["items"] == []
        assert stale["pagination"]["total"] == 0

    @pytest.mark.asyncio
    async def test_versions(self, repository, windows_fixture):
        versions = await CatalogService(repository).product_versions(10)
        assert versions["productName"] == "Windows"
        assert versions["vendorName"] == "Microsoft"
        assert len(versions["versions"]) == 2

    @pytest.mark.asyncio
    async def test_versions_of_missing_product(self, repository):
        with pytest.raises(ResourceNotFound):
            await CatalogService(repository).product_versions(1)

    @pytest.mark.asyncio
    async def test_search_matches_vendor_name(self, repository, windows_fixture):
        page = await CatalogService(repository).search_products("apache")
        assert [product["name"] for product in page["items"]] == ["HTTP Server"]

    @pytest.mark.asyncio
    async def test_product_vulnerabilities(self, repository, windows_fixture):
        page = await CatalogService(repository).product_vulnerabilities(10)
        assert [item["cveId"] for item in page["items"]] == ["CVE-2023-1234"]

    @pytest.mark.asyncio
    async def test_overview(self, repository, windows_fixture):
        overview = await CatalogService(repository).product_overview()
        assert overview["total"] == 2
        assert overview["topByVulnerabilities"][0]["name"] == "Windows"
        assert len(overview["recentlyAffected"]) == 2
