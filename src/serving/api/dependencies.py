"""
Request Dependencies

Validation that needs the database runs here, before any handler code, so a
rejected request never reaches a write.
"""

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.catalog.errors import ValidationError
from src.catalog.products import (
    find_duplicates,
    find_existing_image_urls,
    find_existing_name,
    find_existing_skus,
)
from src.catalog.schemas import ProductIn
from src.catalog.slugs import slug_error, slugify
from src.config.settings import Settings, get_settings
from src.database.connection import get_db_dependency
from src.database.models import Product


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was built with."""
    return getattr(request.app.state, "settings", None) or get_settings()


async def validate_new_product(
    payload: ProductIn,
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductIn:
    """
    Uniqueness rules for product creation.

    Rejects a name (or the slug it produces) that is already taken, SKUs or
    image URLs repeated inside the payload, and SKUs or image URLs already
    stored against any product.
    """
    errors = []

    slug = slugify(payload.name)
    unusable = slug_error(slug)
    if unusable:
        errors.append({"field": "name", "message": unusable})
    else:
        slug_taken = (
            await db.execute(select(Product.id).where(Product.slug == slug))
        ).first() is not None
        if slug_taken or await find_existing_name(db, payload.name):
            errors.append({"field": "name", "message": "Product already exists"})

    skus = [variant.sku for variant in payload.product_variants]
    for sku in find_duplicates(skus):
        errors.append({"field": "productVariants", "message": f"Duplicate SKU {sku}"})
    for sku in await find_existing_skus(db, skus):
        errors.append({"field": "productVariants", "message": f"Product with this SKU already exists: {sku}"})

    urls = [image.url for image in payload.product_images]
    for url in find_duplicates(urls):
        errors.append({"field": "productImages", "message": f"Duplicate image url {url}"})
    for url in await find_existing_image_urls(db, urls):
        errors.append({"field": "productImages", "message": f"Product image already exists: {url}"})

    if errors:
        raise ValidationError(errors)
    return payload
