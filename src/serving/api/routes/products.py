"""
Products API Endpoints

REST API for the product catalog and monthly product views.
"""

from typing import Optional, Union

import structlog
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.catalog import products as product_workflow
from src.catalog import views as view_workflow
from src.catalog.query import ProductQuery
from src.catalog.schemas import (
    MessageResponse,
    ProductDetail,
    ProductIn,
    ProductListResponse,
    ProductMutationResponse,
    ProductResponse,
    ProductSummary,
    ProductViewListResponse,
)
from src.config.settings import Settings
from src.database.connection import get_db_dependency
from src.serving.api.dependencies import get_app_settings, validate_new_product
from src.serving.cache import products_cache

router = APIRouter()
logger = structlog.get_logger(__name__)

PRODUCT_MISSING = "Product does not exist"


@router.get("", response_model=ProductListResponse)
async def list_products(
    search: Optional[str] = None,
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    category_slug: Optional[str] = Query(None, alias="categorySlug"),
    tag_slug: Optional[str] = Query(None, alias="tagSlug"),
    color: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    latest: Optional[str] = None,
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductListResponse:
    """
    List products with filtering, search and pagination.

    Parameters arrive as raw strings and are parsed leniently; a value that
    does not parse is treated as absent.
    """
    query = ProductQuery.from_params(
        search=search,
        min_price=min_price,
        max_price=max_price,
        category_slug=category_slug,
        tag_slug=tag_slug,
        color=color,
        page=page,
        limit=limit,
        latest=latest,
        default_page_size=settings.catalog.default_page_size,
        max_page_size=settings.catalog.max_page_size,
    )
    products, total = await product_workflow.list_products(db, query)

    return ProductListResponse(
        total=total,
        products=[ProductSummary.model_validate(p) for p in products],
    )


@router.post("/create", response_model=ProductMutationResponse)
async def create_product(
    payload: ProductIn = Depends(validate_new_product),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductMutationResponse:
    """Create a product with its variants, images, categories and tags."""
    product = await product_workflow.create_product(
        db, payload, default_currency_id=settings.catalog.default_currency_id
    )
    return ProductMutationResponse(
        message="New product added",
        product=ProductDetail.model_validate(product),
    )


@router.get("/views", response_model=ProductViewListResponse)
async def list_product_views(
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductViewListResponse:
    """Monthly view rows, newest first, with visitor counts."""
    return ProductViewListResponse(product_views=await view_workflow.list_product_views(db))


@router.get("/{slug}", response_model=Union[ProductResponse, MessageResponse])
async def get_product(
    slug: str,
    db: AsyncSession = Depends(get_db_dependency),
) -> Union[ProductResponse, MessageResponse]:
    """
    Get product details.

    A missing product is reported in the body with `success: false`, not
    with a 404 status.
    """
    cached = await products_cache.get(slug)
    if cached:
        return ProductResponse(product=ProductDetail.model_validate(cached))

    product = await product_workflow.get_product(db, slug)
    if product is None:
        return MessageResponse(success=False, message=PRODUCT_MISSING)

    detail = ProductDetail.model_validate(product)
    await products_cache.set(slug, detail.model_dump(mode="json"))

    return ProductResponse(product=detail)


@router.put("/{slug}", response_model=ProductMutationResponse)
async def update_product(
    slug: str,
    payload: ProductIn,
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductMutationResponse:
    """Update a product; variants and images are upserted, links replaced."""
    product = await product_workflow.update_product(db, slug, payload)
    await products_cache.delete(slug, product.slug)

    return ProductMutationResponse(
        message="Product updated",
        product=ProductDetail.model_validate(product),
    )


@router.delete("/{slug}", response_model=MessageResponse)
async def delete_product(
    slug: str,
    db: AsyncSession = Depends(get_db_dependency),
) -> MessageResponse:
    """Hard-delete a product and everything it owns."""
    await product_workflow.delete_product(db, slug)
    await products_cache.delete(slug)

    return MessageResponse(success=True, message="Product deleted")


@router.api_route("/{slug}/views", methods=["POST", "PUT"], response_model=MessageResponse)
async def record_product_view(
    slug: str,
    request: Request,
    db: AsyncSession = Depends(get_db_dependency),
) -> MessageResponse:
    """Count the calling client as a visitor of the product for this month."""
    visitor = view_workflow.visitor_fingerprint(request.headers.get("user-agent"))
    outcome = await view_workflow.record_view(db, slug, visitor)

    if outcome is None:
        return MessageResponse(success=False, message=PRODUCT_MISSING)
    return MessageResponse(success=True, message=outcome.message)
