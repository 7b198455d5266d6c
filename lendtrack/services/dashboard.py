"""Inventory analytics for the dashboard."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.models import Category, Item, ItemStatus, LendingLog

logger = logging.getLogger(__name__)


@dataclass
class TopBorrower:
    name: str
    email: str
    count: int


@dataclass
class Analytics:
    """Item counts by status and by category, plus the busiest borrower.

    Every status appears in ``status_distribution``, zero included. Only
    categories that hold at least one item appear in
    ``category_distribution``.
    """

    status_distribution: dict[str, int] = field(default_factory=dict)
    category_distribution: dict[str, int] = field(default_factory=dict)
    top_borrower: TopBorrower | None = None


async def get_analytics(db: AsyncSession) -> Analytics:
    analytics = Analytics(
        status_distribution={status.value: 0 for status in ItemStatus}
    )

    status_rows = await db.execute(
        select(Item.status, func.count(Item.id)).group_by(Item.status)
    )
    for status, count in status_rows.all():
        analytics.status_distribution[status] = int(count)

    category_rows = await db.execute(
        select(Category.name, func.count(Item.id))
        .join(Item, Item.category_id == Category.id)
        .group_by(Category.id, Category.name)
        .order_by(Category.name)
    )
    analytics.category_distribution = {
        name: int(count) for name, count in category_rows.all()
    }

    # Counted from open loans of items that are actually out, grouped by
    # account rather than by the name snapshot.
    loan_count = func.count(LendingLog.id)
    top_row = (
        await db.execute(
            select(
                LendingLog.borrower_id,
                func.max(LendingLog.borrower_name),
                func.max(LendingLog.borrower_email),
                loan_count,
            )
            .join(Item, Item.id == LendingLog.item_id)
            .where(
                LendingLog.date_returned.is_(None),
                Item.status == ItemStatus.LENT.value,
            )
            .group_by(LendingLog.borrower_id)
            .order_by(loan_count.desc(), func.max(LendingLog.borrower_name))
            .limit(1)
        )
    ).first()
    if top_row is not None:
        _borrower_id, name, email, count = top_row
        analytics.top_borrower = TopBorrower(name=name, email=email, count=int(count))

    logger.debug("Computed dashboard analytics: %s", analytics)
    return analytics
