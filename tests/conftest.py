"""
Test Suite Configuration
"""
import pytest
from typing import AsyncGenerator, Callable, Dict

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.catalog.slugs import slugify
from src.config.settings import CatalogSettings, RedisSettings, SecuritySettings, Settings
from src.database.connection import Database
from src.database.models import Category, Currency, Tag
from src.serving.api.main import create_api_app


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
        redis=RedisSettings(enabled=False),
        security=SecuritySettings(RATE_LIMIT_ENABLED=False),
        catalog=CatalogSettings(static_dir=str(tmp_path / "public")),
    )


@pytest.fixture
async def database() -> AsyncGenerator[Database, None]:
    """Fresh in-memory SQLite database per test"""
    database = Database("sqlite+aiosqlite://")
    await database.connect()
    await database.create_all()

    yield database

    await database.disconnect()


@pytest.fixture
async def catalog(database: Database) -> Dict[str, int]:
    """Reference rows: one currency, two categories, two tags"""
    async with database.session() as session:
        rows = {
            "usd": Currency(code="USD", symbol="$"),
            "shirts": Category(name="Shirts", slug="shirts"),
            "pants": Category(name="Pants", slug="pants"),
            "new": Tag(name="New", slug="new"),
            "sale": Tag(name="Sale", slug="sale"),
        }
        session.add_all(rows.values())
        await session.flush()
        ids = {key: row.id for key, row in rows.items()}

    return ids


@pytest.fixture
async def session(database: Database, catalog: Dict[str, int]) -> AsyncGenerator[AsyncSession, None]:
    """Unit of work over the seeded database"""
    async with database.session() as session:
        yield session


@pytest.fixture
def make_payload() -> Callable[..., dict]:
    """
    Build a camelCase product payload.

    Variants get SKUs derived from the product name, alternating sizes
    "M" and 42, one variant per entry in `quantities`.
    """
    def _make(
        name: str = "Classic Tee",
        price: str = "19.99",
        color: str = "black",
        quantities=(5, 7),
        categories=(),
        tags=(),
        **overrides,
    ) -> dict:
        slug = slugify(name)
        payload = {
            "name": name,
            "description": f"{name}, soft and durable",
            "lowOnStockMargin": 3,
            "categories": list(categories),
            "tags": list(tags),
            "productVariants": [
                {
                    "sku": f"{slug}-{i}",
                    "size": "M" if i % 2 == 0 else 42,
                    "color": color,
                    "price": price,
                    "quantity": quantity,
                }
                for i, quantity in enumerate(quantities)
            ],
            "productImages": [{"url": f"https://img.example.com/{slug}.jpg", "isDefault": True}],
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def app(test_settings: Settings, database: Database, catalog: Dict[str, int]):
    """API application bound to the test database"""
    return create_api_app(settings=test_settings, database=database)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client talking to the app in-process"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
