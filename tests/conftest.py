"""Pytest configuration and shared fixtures."""
from datetime import datetime
from typing import Iterable, Optional, Sequence, Tuple

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common_lib.logger import get_logger
from search_api.app.repository import SearchRepository
from search_api.app.tables import (
    AffectedProduct,
    AffectedVersion,
    Base,
    Product,
    ProductVersion,
    Vendor,
    Vulnerability,
    Weakness,
)

logger = get_logger(__name__)


def make_vendor(
    vendor_id: int,
    name: str,
    vulnerability_count: int = 0,
    product_count: int = 0,
    first_seen: Optional[datetime] = None,
    last_seen: Optional[datetime] = None,
) -> Vendor:
    """Build a vendor row with explicit id."""
    return Vendor(
        id=vendor_id,
        name=name,
        vulnerability_count=vulnerability_count,
        product_count=product_count,
        first_seen=first_seen,
        last_seen=last_seen,
    )


def make_product(
    product_id: int,
    vendor: Vendor,
    name: str,
    versions: Iterable[Tuple[str, bool]] = (),
    vulnerability_count: int = 0,
    last_seen: Optional[datetime] = None,
) -> Product:
    """Build a product owned by ``vendor``; ``versions`` are (version, affected) pairs."""
    return Product(
        id=product_id,
        name=name,
        vendor_id=vendor.id,
        vendor_name=vendor.name,
        vulnerability_count=vulnerability_count,
        last_seen=last_seen,
        versions=[
            ProductVersion(position=index, version=version, affected=affected)
            for index, (version, affected) in enumerate(versions)
        ],
    )


def make_vulnerability(
    vuln_id: int,
    cve_id: str,
    score: Optional[float] = None,
    published: Optional[datetime] = None,
    description: str = "",
    products: Sequence[Product] = (),
    weaknesses: Sequence[str] = (),
    affected_versions: Sequence[str] = (),
) -> Vulnerability:
    """Build a vulnerability associated with ``products`` (names copied from each product)."""
    return Vulnerability(
        id=vuln_id,
        cve_id=cve_id,
        description=description,
        score=score,
        published_date=published,
        affected_products=[
            AffectedProduct(
                position=index,
                product_id=product.id,
                vendor_id=product.vendor_id,
                product_name=product.name,
                vendor_name=product.vendor_name,
                versions=[
                    AffectedVersion(position=pos, version=version, affected=True)
                    for pos, version in enumerate(affected_versions)
                ],
            )
            for index, product in enumerate(products)
        ],
        weaknesses=[Weakness(cwe_id=cwe_id) for cwe_id in weaknesses],
    )


@pytest.fixture
async def session_factory(tmp_path):
    """File-backed SQLite database with the full schema, one per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'index.sqlite'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def repository(session_factory):
    return SearchRepository(session_factory)


@pytest.fixture
def seed(session_factory):
    """Insert rows directly; the service under test never writes."""

    async def _seed(*rows):
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()

    return _seed


@pytest.fixture
async def windows_fixture(seed):
    """One vulnerability, no vendor and one product mention "Windows"."""
    microsoft = make_vendor(1, "Microsoft", vulnerability_count=150, product_count=1)
    apache = make_vendor(2, "Apache", vulnerability_count=20, product_count=1)
    windows = make_product(10, microsoft, "Windows", versions=[("10", True), ("11", False)], vulnerability_count=100)
    httpd = make_product(11, apache, "HTTP Server", versions=[("2.4.49", True)])
    await seed(
        microsoft,
        apache,
        windows,
        httpd,
        make_vulnerability(
            100,
            "CVE-2023-1234",
            score=8.5,
            published=datetime(2023, 5, 2, 12, 0),
            description="Buffer overflow in Windows kernel",
            products=[windows],
            weaknesses=["CWE-120"],
        ),
        make_vulnerability(
            101,
            "CVE-2021-41773",
            score=7.5,
            published=datetime(2021, 10, 5, 9, 30),
            description="Path traversal in Apache HTTP Server 2.4.49",
            products=[httpd],
            weaknesses=["CWE-22"],
        ),
    )
    return {"microsoft": microsoft, "apache": apache, "windows": windows, "httpd": httpd}
