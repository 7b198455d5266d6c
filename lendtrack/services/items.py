"""Item lookup and the maintenance side of the item state machine."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.database import unit_of_work
from lendtrack.errors import Conflict, NotFound
from lendtrack.models import Category, Item, ItemStatus, LendingLog

logger = logging.getLogger(__name__)

# Transitions allowed outside of lend/return.
_MANUAL_STATUSES = {ItemStatus.AVAILABLE, ItemStatus.MAINTENANCE}


def _validate_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned or len(cleaned) > 100:
        raise ValueError("Item name must be between 1 and 100 characters")
    return cleaned


async def get_item(db: AsyncSession, item_id: uuid.UUID) -> Item:
    item = await db.get(Item, item_id)
    if item is None:
        raise NotFound("Item", item_id)
    return item


async def create_item(
    db: AsyncSession,
    *,
    name: str,
    category_id: uuid.UUID,
    description: str | None = None,
) -> Item:
    """Create an available item in an existing category."""
    cleaned = _validate_name(name)

    async with unit_of_work(db):
        if await db.get(Category, category_id) is None:
            raise NotFound("Category", category_id)
        item = Item(
            name=cleaned,
            description=description,
            category_id=category_id,
            status=ItemStatus.AVAILABLE.value,
        )
        db.add(item)
        await db.flush()

    logger.info("Created item %s (%s)", item.id, item.name)
    return item


async def set_item_status(
    db: AsyncSession, item_id: uuid.UUID, status: ItemStatus
) -> Item:
    """Toggle an item between Available and Maintenance.

    Lent is entered and left only through lending, so it is neither a
    valid target nor a valid source here.
    """
    if status not in _MANUAL_STATUSES:
        raise Conflict("Items become lent only by lending them", status=status.value)

    async with unit_of_work(db):
        result = await db.execute(
            select(Item)
            .where(Item.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFound("Item", item_id)
        if item.status == ItemStatus.LENT.value:
            raise Conflict(
                "Item is currently lent; return it first", status=item.status
            )
        item.status = status.value

    logger.info("Item %s set to %s", item_id, status.value)
    return item


async def delete_item(db: AsyncSession, item_id: uuid.UUID) -> None:
    """Delete an item that is not lent and has no lending history."""
    async with unit_of_work(db):
        result = await db.execute(
            select(Item).where(Item.id == item_id).with_for_update()
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFound("Item", item_id)
        if item.status == ItemStatus.LENT.value:
            raise Conflict("Cannot delete an item that is currently lent")

        history_count = (
            await db.execute(
                select(func.count())
                .select_from(LendingLog)
                .where(LendingLog.item_id == item_id)
            )
        ).scalar_one()
        if history_count:
            raise Conflict(
                "Cannot delete an item with lending history",
                history_count=int(history_count),
            )

        await db.delete(item)

    logger.info("Deleted item %s", item_id)


async def list_items(
    db: AsyncSession,
    *,
    status: ItemStatus | None = None,
    category_id: uuid.UUID | None = None,
) -> list[Item]:
    """Items by name, optionally narrowed to one status and/or category."""
    query = select(Item)
    if status is not None:
        query = query.where(Item.status == status.value)
    if category_id is not None:
        query = query.where(Item.category_id == category_id)
    result = await db.execute(query.order_by(Item.name, Item.id))
    return list(result.scalars())


async def update_item(
    db: AsyncSession,
    item_id: uuid.UUID,
    *,
    name: str | None = None,
    description: str | None = None,
    category_id: uuid.UUID | None = None,
) -> Item:
    """Edit an item's descriptive fields.

    Status and borrower are not editable here; they belong to lending and
    :func:`set_item_status`. An empty ``description`` clears it.
    """
    cleaned_name = _validate_name(name) if name is not None else None

    async with unit_of_work(db):
        result = await db.execute(
            select(Item)
            .where(Item.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFound("Item", item_id)

        if cleaned_name is not None:
            item.name = cleaned_name
        if description is not None:
            item.description = description.strip() or None
        if category_id is not None and category_id != item.category_id:
            if await db.get(Category, category_id) is None:
                raise NotFound("Category", category_id)
            item.category_id = category_id

    logger.info("Updated item %s", item_id)
    return item
