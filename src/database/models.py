"""
Database Models - Product Catalog

This module defines the relational model behind the catalog API:

Catalog Tables:
- Currency: Currencies products are priced in
- Category / Tag: Named, slugged groupings (many-to-many with products)
- Product: The catalog aggregate root
- ProductVariant: SKU-level size/color/price/stock rows
- ProductImage: Product gallery images

Engagement Tables:
- ProductView: One row per product per calendar month
- ProductViewVisitor: Distinct visitors recorded against a monthly view row
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, List
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ASSOCIATION TABLES
# =============================================================================

product_categories = Table(
    "product_categories",
    Base.metadata,
    Column("product_id", Uuid, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)

product_tags = Table(
    "product_tags",
    Base.metadata,
    Column("product_id", Uuid, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


# =============================================================================
# CATALOG TABLES
# =============================================================================

class Currency(Base):
    """Currency a product is priced in"""
    __tablename__ = "currencies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(3), unique=True, nullable=False)  # ISO 4217
    symbol: Mapped[str] = mapped_column(String(8), nullable=False)

    products: Mapped[List["Product"]] = relationship(back_populates="currency")


class Category(Base):
    """Product category"""
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    products: Mapped[List["Product"]] = relationship(
        secondary=product_categories, back_populates="categories"
    )


class Tag(Base):
    """Free-form product tag"""
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    products: Mapped[List["Product"]] = relationship(
        secondary=product_tags, back_populates="tags"
    )


class Product(Base):
    """
    Product Table

    Aggregate root for the catalog. `total_quantity` is derived from the
    variants and recomputed by the product workflow after every write.
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    currency_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("currencies.id"), nullable=False
    )
    low_on_stock_margin: Mapped[int] = mapped_column(Integer, default=0)
    total_quantity: Mapped[int] = mapped_column(Integer, default=0)

    # Audit
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    currency: Mapped["Currency"] = relationship(back_populates="products")
    product_variants: Mapped[List["ProductVariant"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
    )
    product_images: Mapped[List["ProductImage"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.id",
    )
    categories: Mapped[List["Category"]] = relationship(
        secondary=product_categories, back_populates="products", order_by="Category.id"
    )
    tags: Mapped[List["Tag"]] = relationship(
        secondary=product_tags, back_populates="products", order_by="Tag.id"
    )
    views: Mapped[List["ProductView"]] = relationship(
        back_populates="product", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_products_created_at", "created_at"),
    )


class ProductVariant(Base):
    """
    Product Variant Table

    A purchasable size/color configuration of a product.
    """
    __tablename__ = "product_variants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    size: Mapped[str] = mapped_column(String(50), nullable=False)  # "M", "42", ...
    color: Mapped[Optional[str]] = mapped_column(String(50))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    old_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    quantity: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    product: Mapped["Product"] = relationship(back_populates="product_variants")

    __table_args__ = (
        Index("ix_product_variants_product", "product_id"),
        Index("ix_product_variants_color", "color"),
        Index("ix_product_variants_price", "price"),
    )


class ProductImage(Base):
    """Product gallery image"""
    __tablename__ = "product_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(String(2000), unique=True, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    product: Mapped["Product"] = relationship(back_populates="product_images")

    __table_args__ = (
        Index("ix_product_images_product", "product_id"),
    )


# =============================================================================
# ENGAGEMENT TABLES
# =============================================================================

class ProductView(Base):
    """
    Monthly Product View Table

    Grain: one row per product per calendar month. `period_start` is the first
    day of the month the row was created in and backs the uniqueness rule.
    """
    __tablename__ = "product_views"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    product: Mapped["Product"] = relationship(back_populates="views")
    visitors: Mapped[List["ProductViewVisitor"]] = relationship(
        back_populates="product_view",
        cascade="all, delete-orphan",
        order_by="ProductViewVisitor.id",
    )

    __table_args__ = (
        UniqueConstraint("product_id", "period_start", name="uq_product_views_product_period"),
        Index("ix_product_views_created_at", "created_at"),
    )


class ProductViewVisitor(Base):
    """A distinct visitor fingerprint seen for a monthly view row"""
    __tablename__ = "product_view_visitors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_view_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("product_views.id", ondelete="CASCADE"), nullable=False
    )
    visitor: Mapped[str] = mapped_column(String(1024), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    product_view: Mapped["ProductView"] = relationship(back_populates="visitors")

    __table_args__ = (
        UniqueConstraint("product_view_id", "visitor", name="uq_product_view_visitors_visitor"),
    )
