"""
Product Workflow

Create, read, update and delete operations on the Product aggregate
(product + variants + images + category/tag links + derived total quantity).

Every function takes the caller's `AsyncSession` and only flushes; the
caller's unit of work decides whether the whole sequence commits or rolls
back, so a failure at any step leaves no partial aggregate behind.
"""

from collections import Counter
from typing import Iterable, List, Optional, Sequence, Tuple, Type, TypeVar
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.catalog.errors import ConflictError, ProductNotFoundError, SlugConflictError, ValidationError
from src.catalog.query import ProductQuery
from src.catalog.schemas import ProductIn
from src.catalog.slugs import slug_error, slugify
from src.database.models import (
    Category,
    Currency,
    Product,
    ProductImage,
    ProductVariant,
    ProductView,
    Tag,
)

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", Category, Tag)

DETAIL_OPTIONS = (
    selectinload(Product.product_variants),
    selectinload(Product.product_images),
    selectinload(Product.categories),
    selectinload(Product.tags),
)


# =============================================================================
# READS
# =============================================================================

async def get_product(session: AsyncSession, slug: str) -> Optional[Product]:
    """Product by slug with variants, images, categories and tags, or None."""
    result = await session.execute(
        select(Product).where(Product.slug == slug).options(*DETAIL_OPTIONS)
    )
    return result.scalar_one_or_none()


async def list_products(session: AsyncSession, query: ProductQuery) -> Tuple[List[Product], int]:
    """
    One page of products plus the total number of matches.

    The page and the count are two separate queries over the same filter.
    """
    result = await session.execute(query.page_statement())
    products = list(result.scalars().all())

    total = (await session.execute(query.count_statement())).scalar() or 0

    logger.debug(
        "Products listed",
        filters=len(query.clauses()),
        skip=query.skip,
        take=query.take,
        returned=len(products),
        total=total,
    )
    return products, total


async def compute_total_quantity(session: AsyncSession, product_id: UUID) -> int:
    """Sum of `quantity` over every variant currently linked to the product."""
    result = await session.execute(
        select(func.coalesce(func.sum(ProductVariant.quantity), 0)).where(
            ProductVariant.product_id == product_id
        )
    )
    return int(result.scalar_one())


async def refresh_total_quantity(session: AsyncSession, product: Product) -> int:
    """Re-read the variants from the store and persist the new total."""
    await session.flush()
    product.total_quantity = await compute_total_quantity(session, product.id)
    await session.flush()
    return product.total_quantity


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def find_duplicates(values: Iterable[str]) -> List[str]:
    """Values that occur more than once, in first-seen order."""
    counts = Counter(values)
    return [value for value, count in counts.items() if count > 1]


async def find_existing_name(session: AsyncSession, name: str) -> bool:
    result = await session.execute(select(Product.id).where(Product.name == name))
    return result.first() is not None


async def find_existing_skus(
    session: AsyncSession,
    skus: Sequence[str],
    exclude_product_id: Optional[UUID] = None,
) -> List[str]:
    """SKUs from `skus` already owned by a (different) product."""
    if not skus:
        return []
    stmt = select(ProductVariant.sku).where(ProductVariant.sku.in_(skus))
    if exclude_product_id is not None:
        stmt = stmt.where(ProductVariant.product_id != exclude_product_id)
    return list((await session.execute(stmt)).scalars().all())


async def find_existing_image_urls(
    session: AsyncSession,
    urls: Sequence[str],
    exclude_product_id: Optional[UUID] = None,
) -> List[str]:
    if not urls:
        return []
    stmt = select(ProductImage.url).where(ProductImage.url.in_(urls))
    if exclude_product_id is not None:
        stmt = stmt.where(ProductImage.product_id != exclude_product_id)
    return list((await session.execute(stmt)).scalars().all())


async def _resolve_currency(session: AsyncSession, currency_id: int) -> int:
    if await session.get(Currency, currency_id) is None:
        raise ValidationError.for_field("currencyId", f"Unknown currency id {currency_id}")
    return currency_id


async def _resolve_links(
    session: AsyncSession,
    model: Type[ModelT],
    ids: Sequence[int],
    field: str,
) -> List[ModelT]:
    """Load categories/tags by id, rejecting ids that do not exist."""
    wanted = list(dict.fromkeys(ids))
    if not wanted:
        return []

    result = await session.execute(select(model).where(model.id.in_(wanted)))
    by_id = {row.id: row for row in result.scalars().all()}

    missing = [i for i in wanted if i not in by_id]
    if missing:
        raise ValidationError.for_field(field, f"Unknown {field} id(s): {', '.join(map(str, missing))}")

    return [by_id[i] for i in wanted]


async def _reload(session: AsyncSession, product_id: UUID) -> Product:
    result = await session.execute(
        select(Product)
        .where(Product.id == product_id)
        .options(*DETAIL_OPTIONS)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


# =============================================================================
# WRITES
# =============================================================================

async def create_product(
    session: AsyncSession,
    payload: ProductIn,
    default_currency_id: int = 1,
) -> Product:
    """
    Create a product with its variants and images.

    Name and SKU uniqueness are checked by the request validation layer
    before this runs. The write happens in three steps inside the caller's
    transaction:

    1. insert the product with nested variants and images
    2. connect the category and tag associations
    3. recompute and store `total_quantity`
    """
    slug = slugify(payload.name)
    unusable = slug_error(slug)
    if unusable:
        raise ValidationError.for_field("name", unusable)

    currency_id = await _resolve_currency(session, payload.currency_id or default_currency_id)

    product = Product(
        name=payload.name,
        slug=slug,
        description=payload.description,
        currency_id=currency_id,
        low_on_stock_margin=payload.low_on_stock_margin,
        product_variants=[ProductVariant(**v.model_dump()) for v in payload.product_variants],
        product_images=[ProductImage(**i.model_dump()) for i in payload.product_images],
        categories=[],
        tags=[],
    )
    session.add(product)
    await session.flush()

    product.categories = await _resolve_links(session, Category, payload.categories, "categories")
    product.tags = await _resolve_links(session, Tag, payload.tags, "tags")
    await session.flush()

    total = await refresh_total_quantity(session, product)

    logger.info(
        "Product created",
        slug=product.slug,
        variants=len(payload.product_variants),
        images=len(payload.product_images),
        total_quantity=total,
    )
    return await _reload(session, product.id)


async def update_product(session: AsyncSession, slug: str, payload: ProductIn) -> Product:
    """
    Replace a product's fields and upsert its children.

    Variants are upserted by SKU and images by URL; children missing from
    the payload are kept. Category and tag sets are replaced, not merged.

    Raises:
        ProductNotFoundError: No product has `slug`
        SlugConflictError: The new name slugifies to another product's slug
        ConflictError: A SKU or image URL belongs to another product
        ValidationError: Unusable name, duplicate SKUs/URLs in the payload or unknown links
    """
    product = await get_product(session, slug)
    if product is None:
        raise ProductNotFoundError(slug)

    new_slug = slugify(payload.name)
    unusable = slug_error(new_slug)
    if unusable:
        raise ValidationError.for_field("name", unusable)

    clash = await session.execute(
        select(Product.id).where(Product.slug == new_slug, Product.id != product.id)
    )
    if clash.first() is not None:
        logger.info("Product update rejected, slug taken", slug=slug, new_slug=new_slug)
        raise SlugConflictError(new_slug)

    skus = [v.sku for v in payload.product_variants]
    urls = [i.url for i in payload.product_images]
    _reject_duplicates(skus, "productVariants", "SKU")
    _reject_duplicates(urls, "productImages", "image url")

    taken_skus = await find_existing_skus(session, skus, exclude_product_id=product.id)
    if taken_skus:
        raise ConflictError(
            "Product with this SKU already exists",
            errors=[{"field": "productVariants", "message": f"SKU {sku} belongs to another product"} for sku in taken_skus],
        )
    taken_urls = await find_existing_image_urls(session, urls, exclude_product_id=product.id)
    if taken_urls:
        raise ConflictError(
            "Product image already exists",
            errors=[{"field": "productImages", "message": f"Image {url} belongs to another product"} for url in taken_urls],
        )

    product.name = payload.name
    product.slug = new_slug
    product.description = payload.description
    if payload.currency_id is not None:
        product.currency_id = await _resolve_currency(session, payload.currency_id)
    product.low_on_stock_margin = payload.low_on_stock_margin

    variants_by_sku = {variant.sku: variant for variant in product.product_variants}
    for variant_in in payload.product_variants:
        variant = variants_by_sku.get(variant_in.sku)
        if variant is None:
            product.product_variants.append(ProductVariant(**variant_in.model_dump()))
        else:
            for field, value in variant_in.model_dump(exclude_unset=True).items():
                setattr(variant, field, value)

    images_by_url = {image.url: image for image in product.product_images}
    for image_in in payload.product_images:
        image = images_by_url.get(image_in.url)
        if image is None:
            product.product_images.append(ProductImage(**image_in.model_dump()))
        else:
            image.is_default = image_in.is_default

    product.categories = await _resolve_links(session, Category, payload.categories, "categories")
    product.tags = await _resolve_links(session, Tag, payload.tags, "tags")
    await session.flush()

    total = await refresh_total_quantity(session, product)

    logger.info("Product updated", slug=slug, new_slug=new_slug, total_quantity=total)
    return await _reload(session, product.id)


async def delete_product(session: AsyncSession, slug: str) -> None:
    """
    Hard-delete a product by slug.

    Variants, images, monthly views and association rows go with it.

    Raises:
        ProductNotFoundError: No product has `slug`
    """
    result = await session.execute(
        select(Product)
        .where(Product.slug == slug)
        .options(
            *DETAIL_OPTIONS,
            selectinload(Product.views).selectinload(ProductView.visitors),
        )
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise ProductNotFoundError(slug)

    await session.delete(product)
    await session.flush()
    logger.info("Product deleted", slug=slug)


def _reject_duplicates(values: Sequence[str], field: str, label: str) -> None:
    duplicates = find_duplicates(values)
    if duplicates:
        raise ValidationError(
            [{"field": field, "message": f"Duplicate {label} {value}"} for value in duplicates]
        )
