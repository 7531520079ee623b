"""취약점 색인 테이블 정의(Vulnerability index table definitions).

Products reference their vendor, and vulnerabilities reference products and
vendors through ``affected_products`` rows. Each association keeps a copy of
the product/vendor names and a snapshot of the versions affected at the time
the vulnerability was recorded. The ids are authoritative for joins; the names
are display caches.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """선언적 기반 클래스(Declarative base)."""


class Vendor(Base):
    __tablename__ = "vendors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    # Maintained by the ingestion pipeline, advisory only
    product_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    vulnerability_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    first_seen: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_seen: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    products: Mapped[list["Product"]] = relationship("Product", back_populates="vendor")

    def __repr__(self) -> str:
        return f"<Vendor {self.name!r}>"


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    vendor_id: Mapped[int] = mapped_column(ForeignKey("vendors.id"), nullable=False, index=True)
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)

    vulnerability_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    first_seen: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_seen: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    vendor: Mapped[Vendor] = relationship("Vendor", back_populates="products")
    versions: Mapped[list["ProductVersion"]] = relationship(
        "ProductVersion", order_by="ProductVersion.position", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Product {self.vendor_name!r}/{self.name!r}>"


class ProductVersion(Base):
    __tablename__ = "product_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[str] = mapped_column(String(100), nullable=False)
    affected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Vulnerability(Base):
    __tablename__ = "vulnerabilities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # e.g. "CVE-2024-12345"
    cve_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # CVSS base score (0.0 - 10.0); the severity band is always derived from it
    score: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)

    published_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    last_modified_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    affected_products: Mapped[list["AffectedProduct"]] = relationship(
        "AffectedProduct", order_by="AffectedProduct.position", cascade="all, delete-orphan"
    )
    weaknesses: Mapped[list["Weakness"]] = relationship("Weakness", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Vulnerability {self.cve_id!r} score={self.score!r}>"


class Weakness(Base):
    __tablename__ = "vulnerability_weaknesses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    vulnerability_id: Mapped[int] = mapped_column(
        ForeignKey("vulnerabilities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # e.g. "CWE-79"
    cwe_id: Mapped[str] = mapped_column(String(32), nullable=False)


class AffectedProduct(Base):
    __tablename__ = "affected_products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    vulnerability_id: Mapped[int] = mapped_column(
        ForeignKey("vulnerabilities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    vendor_id: Mapped[int] = mapped_column(ForeignKey("vendors.id"), nullable=False, index=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)

    versions: Mapped[list["AffectedVersion"]] = relationship(
        "AffectedVersion", order_by="AffectedVersion.position", cascade="all, delete-orphan"
    )


class AffectedVersion(Base):
    __tablename__ = "affected_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    affected_product_id: Mapped[int] = mapped_column(
        ForeignKey("affected_products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[str] = mapped_column(String(100), nullable=False)
    affected: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
