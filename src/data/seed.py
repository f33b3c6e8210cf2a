"""
Demo Catalog Seeder

Creates the reference rows the product API expects (currencies, categories,
tags) and a Faker-generated catalog pushed through the product workflow.

Usage:
    python -m src.data.seed --products 50
    python -m src.data.seed --database-url sqlite+aiosqlite:///./catalog.db --create-tables
"""

import argparse
import asyncio
import random
from decimal import Decimal
from typing import Dict, List, Optional

import structlog
from faker import Faker
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.catalog.products import create_product, find_existing_name
from src.catalog.schemas import ProductImageIn, ProductIn, ProductVariantIn
from src.catalog.slugs import slugify
from src.config import get_settings
from src.config.logging import configure_logging
from src.database.connection import Database
from src.database.models import Category, Currency, Tag

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CURRENCIES = [
    ("USD", "$"),
    ("EUR", "€"),
    ("GBP", "£"),
]

CATEGORIES = ["Shirts", "Pants", "Dresses", "Shoes", "Jackets", "Accessories"]

TAGS = ["new", "sale", "bestseller", "organic cotton", "limited edition"]

SIZES = ["XS", "S", "M", "L", "XL", 38, 40, 42, 44]
COLORS = ["black", "white", "navy", "red", "olive", "beige"]


# =============================================================================
# GENERATORS
# =============================================================================

class ProductPayloadGenerator:
    """Generate realistic product payloads"""

    def __init__(self, seed: Optional[int] = 42):
        self.fake = Faker()
        self.random = random.Random(seed)
        if seed is not None:
            Faker.seed(seed)

    def generate(self, category_ids: List[int], tag_ids: List[int]) -> ProductIn:
        name = f"{self.fake.unique.color_name()} {self.fake.word().title()} {self.random.choice(CATEGORIES).rstrip('s')}"
        slug = slugify(name)
        base_price = Decimal(str(round(self.random.uniform(15, 250), 2)))

        sizes = self.random.sample(SIZES, k=self.random.randint(1, 4))
        colors = self.random.sample(COLORS, k=self.random.randint(1, 2))

        variants = []
        for color in colors:
            for size in sizes:
                on_sale = self.random.random() < 0.2
                variants.append(ProductVariantIn(
                    sku=f"{slug[:12].upper()}-{color[:3].upper()}-{size}-{self.fake.unique.random_number(digits=5)}",
                    size=size,
                    color=color,
                    price=base_price * Decimal("0.8") if on_sale else base_price,
                    old_price=base_price if on_sale else None,
                    quantity=self.random.randint(0, 120),
                ))

        images = [
            ProductImageIn(
                url=f"https://picsum.photos/seed/{slug}-{i}/800/1000",
                is_default=i == 0,
            )
            for i in range(self.random.randint(1, 4))
        ]

        return ProductIn(
            name=name,
            description=self.fake.paragraph(nb_sentences=3),
            low_on_stock_margin=self.random.choice([5, 10, 20]),
            categories=self.random.sample(category_ids, k=min(len(category_ids), self.random.randint(1, 2))),
            tags=self.random.sample(tag_ids, k=min(len(tag_ids), self.random.randint(0, 2))),
            product_variants=variants,
            product_images=images,
        )


# =============================================================================
# LOADERS
# =============================================================================

async def seed_currencies(session: AsyncSession) -> Dict[str, int]:
    """Ensure reference currencies exist; returns code -> id."""
    existing = {c.code: c for c in (await session.execute(select(Currency))).scalars().all()}
    for code, symbol in CURRENCIES:
        if code not in existing:
            currency = Currency(code=code, symbol=symbol)
            session.add(currency)
            existing[code] = currency
    await session.flush()
    return {code: currency.id for code, currency in existing.items()}


async def seed_named(session: AsyncSession, model, names: List[str]) -> List[int]:
    """Ensure categories/tags with these names exist; returns their ids."""
    existing = {row.slug: row for row in (await session.execute(select(model))).scalars().all()}
    for name in names:
        slug = slugify(name)
        if slug not in existing:
            row = model(name=name, slug=slug)
            session.add(row)
            existing[slug] = row
    await session.flush()
    return [existing[slugify(name)].id for name in names]


async def seed_catalog(database: Database, products: int = 50, seed: Optional[int] = 42) -> int:
    """
    Seed reference data and `products` demo products.

    Returns:
        Number of products created
    """
    async with database.session() as session:
        currencies = await seed_currencies(session)
        category_ids = await seed_named(session, Category, CATEGORIES)
        tag_ids = await seed_named(session, Tag, TAGS)

    logger.info(
        "Reference data seeded",
        currencies=len(currencies),
        categories=len(category_ids),
        tags=len(tag_ids),
    )

    generator = ProductPayloadGenerator(seed=seed)
    created = 0
    for _ in range(products):
        payload = generator.generate(category_ids, tag_ids)
        async with database.session() as session:
            if await find_existing_name(session, payload.name):
                continue
            await create_product(session, payload, default_currency_id=currencies["USD"])
        created += 1

    logger.info("Demo catalog seeded", products=created)
    return created


async def main(args: argparse.Namespace) -> None:
    settings = get_settings()
    configure_logging(settings=settings)

    database = Database(args.database_url or settings.database.async_url, echo=settings.database.echo)
    await database.connect()
    try:
        if args.create_tables:
            await database.create_all()
        await seed_catalog(database, products=args.products, seed=args.seed)
    finally:
        await database.disconnect()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the product catalog with demo data")
    parser.add_argument("--products", type=int, default=50, help="Number of demo products (default: 50)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducible data")
    parser.add_argument("--database-url", default=None, help="Async database URL (defaults to settings)")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first")

    asyncio.run(main(parser.parse_args()))
