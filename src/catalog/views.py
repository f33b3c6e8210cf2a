"""
Monthly Product View Tracking

Records at most one view per distinct visitor per calendar month per product.

State per (product, month):
    no row -> row without the visitor -> row with the visitor

The visitor identifier is a client fingerprint (the raw User-Agent string),
not an account identity, so distinct people sharing a browser build count
once and one person switching browsers counts twice.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.catalog.schemas import ProductViewSummary, ViewedProduct
from src.database.models import Product, ProductView, ProductViewVisitor, utcnow

logger = structlog.get_logger(__name__)

UNKNOWN_VISITOR = "unknown"
MAX_VISITOR_LENGTH = 1024


class ViewOutcome(str, Enum):
    """Result of recording a view"""
    FIRST = "first"
    NEW = "new"
    REPEAT = "repeat"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    ViewOutcome.FIRST: "First product view this month",
    ViewOutcome.NEW: "New product view this month",
    ViewOutcome.REPEAT: "Product already viewed by client this month",
}


def month_window(now: datetime) -> Tuple[datetime, datetime]:
    """Half-open `[start of month, start of next month)` around `now`."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    next_start = (start + timedelta(days=32)).replace(day=1)
    return start, next_start


def visitor_fingerprint(user_agent: Optional[str]) -> str:
    if not user_agent or not user_agent.strip():
        return UNKNOWN_VISITOR
    return user_agent.strip()[:MAX_VISITOR_LENGTH]


async def record_view(
    session: AsyncSession,
    slug: str,
    visitor: str,
    now: Optional[datetime] = None,
) -> Optional[ViewOutcome]:
    """
    Record that `visitor` viewed the product `slug` during the current month.

    Args:
        session: Caller's unit of work
        slug: Product slug
        visitor: Visitor fingerprint
        now: Clock override, naive UTC

    Returns:
        The outcome, or None when no product has `slug`
    """
    product_id = (
        await session.execute(select(Product.id).where(Product.slug == slug))
    ).scalar_one_or_none()
    if product_id is None:
        return None

    now = now or utcnow()
    start, end = month_window(now)

    view = (
        await session.execute(
            select(ProductView)
            .where(
                ProductView.product_id == product_id,
                ProductView.created_at >= start,
                ProductView.created_at < end,
            )
            .order_by(ProductView.created_at)
        )
    ).scalars().first()

    if view is None:
        session.add(
            ProductView(
                product_id=product_id,
                period_start=start.date(),
                created_at=now,
                visitors=[ProductViewVisitor(visitor=visitor, created_at=now)],
            )
        )
        await session.flush()
        logger.info("Product view recorded", slug=slug, outcome=ViewOutcome.FIRST.value)
        return ViewOutcome.FIRST

    seen = (
        await session.execute(
            select(ProductViewVisitor.id).where(
                ProductViewVisitor.product_view_id == view.id,
                ProductViewVisitor.visitor == visitor,
            )
        )
    ).first()
    if seen is not None:
        return ViewOutcome.REPEAT

    session.add(ProductViewVisitor(product_view_id=view.id, visitor=visitor, created_at=now))
    await session.flush()
    logger.info("Product view recorded", slug=slug, outcome=ViewOutcome.NEW.value)
    return ViewOutcome.NEW


async def list_product_views(session: AsyncSession) -> List[ProductViewSummary]:
    """Every monthly view row, newest first, with its distinct visitor count."""
    visitor_count = (
        select(func.count(ProductViewVisitor.id))
        .where(ProductViewVisitor.product_view_id == ProductView.id)
        .correlate(ProductView)
        .scalar_subquery()
    )
    result = await session.execute(
        select(ProductView, visitor_count.label("visitor_count"))
        .options(selectinload(ProductView.product))
        .order_by(ProductView.created_at.desc())
    )

    return [
        ProductViewSummary(
            id=view.id,
            product_id=view.product_id,
            created_at=view.created_at,
            product=ViewedProduct.model_validate(view.product),
            visitor_count=count,
        )
        for view, count in result.all()
    ]
