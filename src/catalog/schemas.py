"""
Catalog Request/Response Models

Pydantic models for the product API. Every model speaks camelCase on the wire
(`productVariants`, `lowOnStockMargin`, ...) and snake_case in Python.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
OptionalText = Annotated[str, StringConstraints(strip_whitespace=True)]


class CamelModel(BaseModel):
    """Base model for camelCase JSON payloads"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrmModel(CamelModel):
    """Base model for responses built from ORM rows"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ProductVariantIn(CamelModel):
    """Variant as submitted on create/update. Upserted by SKU."""
    sku: RequiredText
    size: Union[StrictStr, StrictInt, StrictFloat]
    color: Optional[OptionalText] = None
    price: Decimal = Field(ge=0)
    old_price: Optional[Decimal] = Field(default=None, ge=0)
    quantity: int = Field(ge=0)

    @field_validator("size")
    @classmethod
    def size_as_text(cls, v: Union[str, int, float]) -> str:
        """Sizes are stored as text whether they arrive as "XL" or 42"""
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        text = str(v).strip()
        if not text:
            raise ValueError("Size must be a string or a number")
        return text


class ProductImageIn(CamelModel):
    """Image as submitted on create/update. Upserted by URL."""
    url: RequiredText
    is_default: bool = False


class ProductIn(CamelModel):
    """Full product payload accepted by create and update"""
    name: RequiredText
    description: RequiredText
    currency_id: Optional[int] = None
    low_on_stock_margin: int = Field(ge=0)
    categories: List[int] = Field(default_factory=list)
    tags: List[int] = Field(default_factory=list)
    product_variants: List[ProductVariantIn] = Field(min_length=1)
    product_images: List[ProductImageIn] = Field(min_length=1)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class CategoryOut(OrmModel):
    id: int
    name: str
    slug: str


class TagOut(OrmModel):
    id: int
    name: str
    slug: str


class ProductVariantOut(OrmModel):
    id: int
    product_id: UUID
    sku: str
    size: str
    color: Optional[str]
    price: float
    old_price: Optional[float]
    quantity: int


class ProductImageOut(OrmModel):
    id: int
    product_id: UUID
    url: str
    is_default: bool


class ProductSummary(OrmModel):
    """Product as it appears in listings"""
    id: UUID
    slug: str
    name: str
    description: str
    currency_id: int
    low_on_stock_margin: int
    total_quantity: int
    created_at: datetime
    updated_at: datetime
    product_variants: List[ProductVariantOut]
    product_images: List[ProductImageOut]


class ProductDetail(ProductSummary):
    """Product with its category and tag associations"""
    categories: List[CategoryOut]
    tags: List[TagOut]


class MessageResponse(CamelModel):
    success: bool
    message: str


class ProductListResponse(CamelModel):
    success: bool = True
    total: int
    products: List[ProductSummary]


class ProductResponse(CamelModel):
    success: bool = True
    product: ProductDetail


class ProductMutationResponse(CamelModel):
    success: bool = True
    message: str
    product: ProductDetail


class ViewedProduct(OrmModel):
    name: str
    slug: str


class ProductViewSummary(CamelModel):
    """Monthly view row with its distinct visitor count"""
    id: UUID
    product_id: UUID
    created_at: datetime
    product: ViewedProduct
    visitor_count: int


class ProductViewListResponse(CamelModel):
    success: bool = True
    product_views: List[ProductViewSummary]
