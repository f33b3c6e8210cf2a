"""
Product Listing Query Builder

Turns the optional listing parameters into an ordered list of SQL predicate
clauses. Each clause is added only when its source parameter is present and
all clauses are combined with AND.

Supported parameters:
- search: case-insensitive substring of the product name
- minPrice + maxPrice: some variant priced inside the range (both required)
- categorySlug / tagSlug: some linked category/tag with that slug
- color: some variant with that color
- latest: newest products first
- page / limit: 1-based page number and page size
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Select, and_, func, select
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from src.database.models import Category, Product, ProductVariant, Tag

DEFAULT_PAGE_SIZE = 16
MAX_PAGE_SIZE = 1000
# keeps offset + limit inside a signed 64-bit integer
MAX_OFFSET = 2 ** 62

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_NUMBER = re.compile(r"^\s*([+-]?\d+(?:\.\d+)?)")
_FALSE_FLAGS = {"false", "0", "no", "off"}


def parse_int(value: Optional[str]) -> Optional[int]:
    """Leading-integer parse of a query string: "12abc" -> 12, "abc" -> None"""
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else None


def parse_number(value: Optional[str]) -> Optional[Decimal]:
    """Leading-decimal parse of a query string: "9.99usd" -> Decimal("9.99")"""
    if value is None:
        return None
    match = _LEADING_NUMBER.match(value)
    return Decimal(match.group(1)) if match else None


def parse_flag(value: Optional[str]) -> bool:
    """Any non-empty value switches a flag on, except the usual spellings of false"""
    if not value:
        return False
    return value.strip().lower() not in _FALSE_FLAGS


@dataclass
class ProductQuery:
    """Parsed product listing parameters"""
    search: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    category_slug: Optional[str] = None
    tag_slug: Optional[str] = None
    color: Optional[str] = None
    page: Optional[int] = None
    limit: Optional[int] = None
    latest: bool = False
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE

    @classmethod
    def from_params(
        cls,
        search: Optional[str] = None,
        min_price: Optional[str] = None,
        max_price: Optional[str] = None,
        category_slug: Optional[str] = None,
        tag_slug: Optional[str] = None,
        color: Optional[str] = None,
        page: Optional[str] = None,
        limit: Optional[str] = None,
        latest: Optional[str] = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> "ProductQuery":
        """Build a query from raw query-string values; blanks count as absent."""
        return cls(
            search=search or None,
            min_price=parse_number(min_price),
            max_price=parse_number(max_price),
            category_slug=category_slug or None,
            tag_slug=tag_slug or None,
            color=color or None,
            page=parse_int(page),
            limit=parse_int(limit),
            latest=parse_flag(latest),
            default_page_size=default_page_size,
            max_page_size=max_page_size,
        )

    @property
    def take(self) -> int:
        if self.limit is None or not 0 < self.limit <= self.max_page_size:
            return self.default_page_size
        return self.limit

    @property
    def skip(self) -> int:
        if self.page is None:
            return 0
        # page 0 and below clamp to the first page, huge pages to an empty one
        return min(max(self.page * self.take - self.take, 0), MAX_OFFSET)

    @property
    def has_price_range(self) -> bool:
        return self.min_price is not None and self.max_price is not None

    def clauses(self) -> List[ColumnElement[bool]]:
        """Predicate clauses, in parameter order, for the present parameters."""
        clauses: List[ColumnElement[bool]] = []

        if self.search:
            clauses.append(Product.name.icontains(self.search, autoescape=True))

        # a lone bound is ignored
        if self.has_price_range:
            clauses.append(
                Product.product_variants.any(
                    and_(
                        ProductVariant.price >= self.min_price,
                        ProductVariant.price <= self.max_price,
                    )
                )
            )

        if self.category_slug:
            clauses.append(Product.categories.any(Category.slug == self.category_slug))

        if self.tag_slug:
            clauses.append(Product.tags.any(Tag.slug == self.tag_slug))

        if self.color:
            clauses.append(Product.product_variants.any(ProductVariant.color == self.color))

        return clauses

    def page_statement(self) -> Select:
        """SELECT for one page of products with variants and images loaded."""
        if self.latest:
            ordering = (Product.created_at.desc(), Product.slug)
        else:
            ordering = (Product.created_at.asc(), Product.slug)

        return (
            select(Product)
            .where(*self.clauses())
            .options(
                selectinload(Product.product_variants),
                selectinload(Product.product_images),
            )
            .order_by(*ordering)
            .offset(self.skip)
            .limit(self.take)
        )

    def count_statement(self) -> Select:
        """SELECT COUNT over the same filter, ignoring pagination."""
        return select(func.count(Product.id)).where(*self.clauses())
