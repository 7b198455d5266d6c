"""Category administration with audit logging."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.database import unit_of_work
from lendtrack.errors import Conflict, NotFound
from lendtrack.models import (
    CATEGORY_NAME_MAX_LENGTH,
    AdminAction,
    AuditEntityType,
    Category,
    Item,
    category_name_key,
)
from lendtrack.services.audit import log_action

logger = logging.getLogger(__name__)


def normalize_category_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned or len(cleaned) > CATEGORY_NAME_MAX_LENGTH:
        raise ValueError(
            f"Category name must be between 1 and {CATEGORY_NAME_MAX_LENGTH} "
            "characters"
        )
    return cleaned


async def _find_by_name(
    db: AsyncSession, name: str, *, exclude_id: uuid.UUID | None = None
) -> Category | None:
    query = select(Category).where(Category.name_key == category_name_key(name))
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    result = await db.execute(query)
    return result.scalars().first()


async def count_items(db: AsyncSession, category_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(Item).where(Item.category_id == category_id)
    )
    return int(result.scalar_one())


async def list_categories(db: AsyncSession) -> list[tuple[Category, int]]:
    """All categories by name, each with the number of items using it."""
    item_count = func.count(Item.id)
    result = await db.execute(
        select(Category, item_count)
        .outerjoin(Item, Item.category_id == Category.id)
        .group_by(Category.id)
        .order_by(Category.name)
    )
    return [(category, int(count)) for category, count in result.all()]


async def get_category(db: AsyncSession, category_id: uuid.UUID) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFound("Category", category_id)
    return category


async def create_category(
    db: AsyncSession, name: str, acting_admin_id: uuid.UUID
) -> Category:
    """Create a category; names are unique regardless of case."""
    cleaned = normalize_category_name(name)
    try:
        async with unit_of_work(db):
            if await _find_by_name(db, cleaned) is not None:
                raise Conflict("Category name already exists", name=cleaned)

            category = Category(name=cleaned)
            db.add(category)
            await db.flush()

            await log_action(
                db,
                admin_user_id=acting_admin_id,
                action=AdminAction.CREATE_CATEGORY,
                entity_type=AuditEntityType.CATEGORY,
                entity_id=category.id,
                details={"name": category.name},
            )
    except IntegrityError as exc:
        raise Conflict("Category name already exists", name=cleaned) from exc

    return category


async def update_category(
    db: AsyncSession,
    category_id: uuid.UUID,
    name: str,
    acting_admin_id: uuid.UUID,
) -> Category:
    """Rename a category, recording the old and new name."""
    cleaned = normalize_category_name(name)
    try:
        async with unit_of_work(db):
            result = await db.execute(
                select(Category).where(Category.id == category_id).with_for_update()
            )
            category = result.scalar_one_or_none()
            if category is None:
                raise NotFound("Category", category_id)

            old_name = category.name
            if old_name == cleaned:
                return category

            if await _find_by_name(db, cleaned, exclude_id=category.id) is not None:
                raise Conflict("Category name already exists", name=cleaned)

            category.name = cleaned
            await db.flush()

            await log_action(
                db,
                admin_user_id=acting_admin_id,
                action=AdminAction.UPDATE_CATEGORY,
                entity_type=AuditEntityType.CATEGORY,
                entity_id=category.id,
                details={"oldName": old_name, "newName": category.name},
            )
    except IntegrityError as exc:
        raise Conflict("Category name already exists", name=cleaned) from exc

    return category


async def delete_category(
    db: AsyncSession, category_id: uuid.UUID, acting_admin_id: uuid.UUID
) -> None:
    """Delete a category that no item references.

    Raises:
        NotFound: no such category.
        Conflict: items still use the category; ``item_count`` is attached.
    """
    try:
        async with unit_of_work(db):
            result = await db.execute(
                select(Category).where(Category.id == category_id).with_for_update()
            )
            category = result.scalar_one_or_none()
            if category is None:
                raise NotFound("Category", category_id)

            item_count = await count_items(db, category.id)
            if item_count > 0:
                logger.info(
                    "Refusing to delete category %s: %d item(s) assigned",
                    category_id,
                    item_count,
                )
                raise Conflict(
                    f"Cannot delete category with {item_count} assigned item(s)",
                    item_count=item_count,
                )

            name = category.name
            await db.delete(category)
            await db.flush()

            await log_action(
                db,
                admin_user_id=acting_admin_id,
                action=AdminAction.DELETE_CATEGORY,
                entity_type=AuditEntityType.CATEGORY,
                entity_id=category_id,
                details={"name": name, "itemCount": 0},
            )
    except IntegrityError as exc:
        raise Conflict("Category is still referenced by items") from exc
