"""Lending transactions: lend, return and per-item history.

An item's ``status``, its ``current_borrower_id`` and its open ledger row
form one piece of state. Both operations here change all three inside a
single unit of work, and the status write is a compare-and-set on the item
row (``WHERE status = <expected>``) issued after the row was read
``FOR UPDATE``. Two concurrent lends of the same item therefore cannot both
succeed; the partial unique index on open ledger rows backs this up at the
storage level.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.database import unit_of_work
from lendtrack.errors import Conflict, DataIntegrityViolation, NotFound
from lendtrack.models import Item, ItemStatus, LendingLog, User, utcnow

logger = logging.getLogger(__name__)

_NOT_LENDABLE = {
    ItemStatus.LENT.value: "Item is already lent",
    ItemStatus.MAINTENANCE.value: "Item is under maintenance",
}


async def _lock_item(db: AsyncSession, item_id: uuid.UUID) -> Item:
    result = await db.execute(
        select(Item)
        .where(Item.id == item_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise NotFound("Item", item_id)
    return item


async def _open_loans(
    db: AsyncSession, item_id: uuid.UUID, *, lock: bool = False
) -> list[LendingLog]:
    query = select(LendingLog).where(
        LendingLog.item_id == item_id,
        LendingLog.date_returned.is_(None),
    )
    if lock:
        query = query.with_for_update()
    result = await db.execute(query.execution_options(populate_existing=True))
    return list(result.scalars())


async def _swap_status(
    db: AsyncSession,
    item: Item,
    *,
    expected: ItemStatus,
    new: ItemStatus,
    borrower_id: uuid.UUID | None,
) -> None:
    """Move ``item`` from ``expected`` to ``new`` or raise Conflict."""
    result = await db.execute(
        update(Item)
        .where(Item.id == item.id, Item.status == expected.value)
        .values(status=new.value, current_borrower_id=borrower_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise Conflict(
            "Item status changed concurrently, retry the operation",
            item_id=str(item.id),
        )
    await db.refresh(item)


def _as_utc(value: datetime) -> datetime:
    """Naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _integrity_violation(message: str, **context: object) -> DataIntegrityViolation:
    logger.error("Data integrity violation: %s (%s)", message, context)
    return DataIntegrityViolation(message, **context)


async def lend_item(
    db: AsyncSession,
    item_id: uuid.UUID,
    user_id: uuid.UUID,
    condition_notes: str | None = None,
) -> LendingLog:
    """Lend an available item to an active user.

    Raises:
        NotFound: the item or the borrower does not exist.
        Conflict: the item is lent or under maintenance.
        DataIntegrityViolation: an available item already has an open loan.
    """
    try:
        async with unit_of_work(db):
            item = await _lock_item(db, item_id)

            if not item.can_be_lent():
                raise Conflict(
                    _NOT_LENDABLE.get(item.status, "Item is not available"),
                    status=item.status,
                )

            if await _open_loans(db, item.id):
                raise _integrity_violation(
                    "Available item has an open lending record",
                    item_id=str(item.id),
                )

            user = await db.get(User, user_id)
            if user is None or not user.is_active:
                raise NotFound("User", user_id)

            await _swap_status(
                db,
                item,
                expected=ItemStatus.AVAILABLE,
                new=ItemStatus.LENT,
                borrower_id=user.id,
            )

            log = LendingLog(
                item_id=item.id,
                borrower_id=user.id,
                borrower_name=user.name,
                borrower_email=user.email,
                date_lent=utcnow(),
                condition_notes=condition_notes,
            )
            db.add(log)
            await db.flush()
    except IntegrityError as exc:
        logger.warning("Concurrent lend of item %s rejected: %s", item_id, exc)
        raise Conflict("Item is already lent") from exc

    logger.info("Lent item %s to user %s (log %s)", item_id, user_id, log.id)
    return log


async def return_item(
    db: AsyncSession,
    item_id: uuid.UUID,
    return_condition_notes: str | None = None,
) -> LendingLog:
    """Close the open loan of a lent item and make it available again.

    Returning an item that is not lent is always rejected, never a no-op.

    Raises:
        NotFound: the item does not exist.
        Conflict: the item is not currently lent.
        DataIntegrityViolation: the item is Lent but its ledger disagrees.
    """
    async with unit_of_work(db):
        item = await _lock_item(db, item_id)
        if not item.can_be_returned():
            raise Conflict("Item is not currently lent", status=item.status)

        open_loans = await _open_loans(db, item.id, lock=True)
        if not open_loans:
            raise _integrity_violation(
                "Lent item has no open lending record", item_id=str(item.id)
            )
        if len(open_loans) > 1:
            raise _integrity_violation(
                "Lent item has several open lending records",
                item_id=str(item.id),
                open_loans=len(open_loans),
            )
        log = open_loans[0]
        if item.current_borrower_id != log.borrower_id:
            raise _integrity_violation(
                "Current borrower does not match the open lending record",
                item_id=str(item.id),
                current_borrower_id=str(item.current_borrower_id),
                log_borrower_id=str(log.borrower_id),
            )

        log.date_returned = utcnow()
        log.return_condition_notes = return_condition_notes
        await db.flush()

        await _swap_status(
            db,
            item,
            expected=ItemStatus.LENT,
            new=ItemStatus.AVAILABLE,
            borrower_id=None,
        )

    logger.info("Returned item %s (log %s)", item_id, log.id)
    return log


async def get_item_history(
    db: AsyncSession,
    item_id: uuid.UUID,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[LendingLog]:
    """All ledger rows of an item, most recent first.

    ``start`` and ``end`` bound ``date_lent`` inclusively and are compared
    as instants, whatever their offset; naive bounds are read as UTC.
    Unknown items simply have no history.
    """
    query = select(LendingLog).where(LendingLog.item_id == item_id)
    if start is not None:
        query = query.where(LendingLog.date_lent >= _as_utc(start))
    if end is not None:
        query = query.where(LendingLog.date_lent <= _as_utc(end))
    result = await db.execute(
        query.order_by(LendingLog.date_lent.desc(), LendingLog.id.desc())
    )
    return list(result.scalars())


async def list_active_loans(db: AsyncSession) -> list[LendingLog]:
    """Open ledger rows across all items, most recent first."""
    result = await db.execute(
        select(LendingLog)
        .where(LendingLog.date_returned.is_(None))
        .order_by(LendingLog.date_lent.desc())
    )
    return list(result.scalars())


async def list_lent_items(db: AsyncSession) -> list[Item]:
    """Items currently out, by name."""
    result = await db.execute(
        select(Item).where(Item.status == ItemStatus.LENT.value).order_by(Item.name)
    )
    return list(result.scalars())
