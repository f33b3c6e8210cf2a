"""
Unit Tests - Product Workflow
"""
from datetime import datetime

import pytest
from sqlalchemy import func, select

from src.catalog.errors import ConflictError, ProductNotFoundError, SlugConflictError, ValidationError
from src.catalog.products import (
    compute_total_quantity,
    create_product,
    delete_product,
    find_duplicates,
    get_product,
    update_product,
)
from src.catalog.schemas import ProductIn
from src.catalog.views import record_view
from src.database.models import (
    ProductImage,
    ProductVariant,
    ProductView,
    ProductViewVisitor,
    product_categories,
)


async def count(session, table) -> int:
    return (await session.execute(select(func.count()).select_from(table))).scalar_one()


class TestCreateProduct:
    """Tests for product creation"""

    async def test_create_derives_slug_and_total(self, session, catalog, make_payload):
        """Test slug and total quantity on a new product"""
        payload = ProductIn.model_validate(
            make_payload(quantities=(5, 7, 3), categories=[catalog["shirts"]], tags=[catalog["new"]])
        )

        product = await create_product(session, payload)

        assert product.slug == "classic-tee"
        assert product.total_quantity == 15
        assert product.currency_id == catalog["usd"]
        assert [c.slug for c in product.categories] == ["shirts"]
        assert [t.slug for t in product.tags] == ["new"]
        assert [v.size for v in product.product_variants] == ["M", "42", "M"]

    async def test_create_with_no_links(self, session, make_payload):
        """Test that categories and tags are optional"""
        product = await create_product(session, ProductIn.model_validate(make_payload()))

        assert product.categories == []
        assert product.tags == []

    async def test_unknown_category_writes_nothing(self, database, catalog, make_payload):
        """Test that a failing step rolls back the whole creation"""
        payload = ProductIn.model_validate(make_payload(categories=[999]))

        with pytest.raises(ValidationError) as exc_info:
            async with database.session() as session:
                await create_product(session, payload)

        assert exc_info.value.errors[0]["field"] == "categories"
        async with database.session() as session:
            assert await get_product(session, "classic-tee") is None
            assert await count(session, ProductVariant) == 0

    async def test_unknown_currency(self, session, make_payload):
        """Test that an unknown currency id is rejected"""
        payload = ProductIn.model_validate(make_payload(currencyId=42))

        with pytest.raises(ValidationError):
            await create_product(session, payload)

    async def test_unusable_name(self, session, make_payload):
        """Test that a name without a usable slug is rejected"""
        with pytest.raises(ValidationError) as exc_info:
            await create_product(session, ProductIn.model_validate(make_payload(name="!!!")))

        assert exc_info.value.errors[0]["field"] == "name"


class TestUpdateProduct:
    """Tests for product updates"""

    async def test_upsert_variants_by_sku(self, session, make_payload):
        """Test that existing SKUs are updated, new SKUs added, absent SKUs kept"""
        await create_product(session, ProductIn.model_validate(make_payload(quantities=(5, 7))))

        payload = make_payload(quantities=(10,))
        payload["productVariants"].append(
            {"sku": "classic-tee-new", "size": "L", "price": "21.00", "quantity": 4}
        )
        product = await update_product(session, "classic-tee", ProductIn.model_validate(payload))

        by_sku = {v.sku: v for v in product.product_variants}
        assert set(by_sku) == {"classic-tee-0", "classic-tee-1", "classic-tee-new"}
        assert by_sku["classic-tee-0"].quantity == 10
        assert by_sku["classic-tee-1"].quantity == 7
        assert product.total_quantity == 21
        assert product.total_quantity == await compute_total_quantity(session, product.id)

    async def test_upsert_images_by_url(self, session, make_payload):
        """Test that images are matched by URL"""
        await create_product(session, ProductIn.model_validate(make_payload()))

        payload = make_payload()
        payload["productImages"] = [
            {"url": "https://img.example.com/classic-tee.jpg", "isDefault": False},
            {"url": "https://img.example.com/classic-tee-back.jpg", "isDefault": True},
        ]
        product = await update_product(session, "classic-tee", ProductIn.model_validate(payload))

        assert [(i.url.rsplit("/", 1)[-1], i.is_default) for i in product.product_images] == [
            ("classic-tee.jpg", False),
            ("classic-tee-back.jpg", True),
        ]

    async def test_links_are_replaced(self, session, catalog, make_payload):
        """Test that category and tag sets are replaced, not merged"""
        await create_product(
            session,
            ProductIn.model_validate(make_payload(categories=[catalog["shirts"]], tags=[catalog["new"]])),
        )

        product = await update_product(
            session,
            "classic-tee",
            ProductIn.model_validate(make_payload(categories=[catalog["pants"]], tags=[])),
        )

        assert [c.slug for c in product.categories] == ["pants"]
        assert product.tags == []
        assert await count(session, product_categories) == 1

    async def test_rename_changes_slug(self, session, make_payload):
        """Test that the slug follows the name"""
        await create_product(session, ProductIn.model_validate(make_payload()))

        payload = make_payload()
        payload["name"] = "Classic Tee V2"
        product = await update_product(session, "classic-tee", ProductIn.model_validate(payload))

        assert product.slug == "classic-tee-v2"
        assert await get_product(session, "classic-tee") is None

    async def test_missing_product(self, session, make_payload):
        """Test update of an unknown slug"""
        with pytest.raises(ProductNotFoundError):
            await update_product(session, "nope", ProductIn.model_validate(make_payload()))

    async def test_slug_conflict_changes_nothing(self, database, catalog, make_payload):
        """Test that renaming onto another product's slug is rejected"""
        async with database.session() as session:
            await create_product(session, ProductIn.model_validate(make_payload(name="Classic Tee")))
            await create_product(session, ProductIn.model_validate(make_payload(name="Denim Jacket")))

        payload = make_payload(name="Denim Jacket", quantities=(99,))
        payload["productVariants"][0]["sku"] = "classic-tee-0"

        with pytest.raises(SlugConflictError):
            async with database.session() as session:
                await update_product(session, "classic-tee", ProductIn.model_validate(payload))

        async with database.session() as session:
            product = await get_product(session, "classic-tee")
            assert product.name == "Classic Tee"
            assert product.total_quantity == 12

    async def test_sku_of_another_product(self, session, make_payload):
        """Test that a SKU owned by another product is rejected"""
        await create_product(session, ProductIn.model_validate(make_payload(name="Classic Tee")))
        await create_product(session, ProductIn.model_validate(make_payload(name="Denim Jacket")))

        payload = make_payload(name="Classic Tee")
        payload["productVariants"][0]["sku"] = "denim-jacket-0"

        with pytest.raises(ConflictError):
            await update_product(session, "classic-tee", ProductIn.model_validate(payload))

    async def test_duplicate_skus_in_payload(self, session, make_payload):
        """Test that the same SKU twice in one payload is rejected"""
        await create_product(session, ProductIn.model_validate(make_payload()))

        payload = make_payload()
        payload["productVariants"][1]["sku"] = "classic-tee-0"

        with pytest.raises(ValidationError):
            await update_product(session, "classic-tee", ProductIn.model_validate(payload))


class TestDeleteProduct:
    """Tests for product deletion"""

    async def test_delete_cascades(self, session, catalog, make_payload):
        """Test that children, links and views go with the product"""
        await create_product(
            session, ProductIn.model_validate(make_payload(categories=[catalog["shirts"]]))
        )
        await record_view(session, "classic-tee", "agent-a", now=datetime(2024, 3, 5))

        await delete_product(session, "classic-tee")

        assert await get_product(session, "classic-tee") is None
        assert await count(session, ProductVariant) == 0
        assert await count(session, ProductImage) == 0
        assert await count(session, ProductView) == 0
        assert await count(session, ProductViewVisitor) == 0
        assert await count(session, product_categories) == 0

    async def test_delete_missing(self, session):
        """Test deletion of an unknown slug"""
        with pytest.raises(ProductNotFoundError):
            await delete_product(session, "nope")


class TestFindDuplicates:
    """Tests for find_duplicates"""

    def test_reports_each_duplicate_once(self):
        """Test first-seen order and single reporting"""
        assert find_duplicates(["a", "b", "a", "c", "b", "a"]) == ["a", "b"]

    def test_no_duplicates(self):
        """Test unique input"""
        assert find_duplicates(["a", "b"]) == []
