import asyncio
import uuid
from datetime import UTC, datetime, timedelta, timezone
from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from lendtrack.errors import Conflict, DataIntegrityViolation, NotFound
from lendtrack.models import Item, ItemStatus, LendingLog, User, UserRole
from lendtrack.services import lending
from lendtrack.services.users import update_user


async def _count_logs(session_factory: Any, item_id: Any) -> int:
    async with session_factory() as db:
        result = await db.execute(
            select(func.count())
            .select_from(LendingLog)
            .where(LendingLog.item_id == item_id)
        )
        return int(result.scalar_one())


async def _open_log_count(session_factory: Any, item_id: Any) -> int:
    async with session_factory() as db:
        result = await db.execute(
            select(func.count())
            .select_from(LendingLog)
            .where(LendingLog.item_id == item_id, LendingLog.date_returned.is_(None))
        )
        return int(result.scalar_one())


async def _add_user(session_factory: Any, name: str, email: str) -> Any:
    async with session_factory() as db:
        user = User(name=name, email=email, role=UserRole.STANDARD.value)
        db.add(user)
        await db.commit()
        return user.id


@pytest.mark.asyncio
async def test_lend_marks_item_lent_and_snapshots_borrower(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        log = await lending.lend_item(db, item_id, borrower_id, "good condition")

    assert log.borrower_id == borrower_id
    assert log.borrower_name == "Bob Borrower"
    assert log.borrower_email == "bob@example.com"
    assert log.condition_notes == "good condition"
    assert log.date_returned is None

    async with session_factory() as db:
        item = await db.get(Item, item_id)
        assert item is not None
        assert item.status == ItemStatus.LENT.value
        assert item.current_borrower_id == borrower_id

    assert await _open_log_count(session_factory, item_id) == 1


@pytest.mark.asyncio
async def test_lend_twice_conflicts_without_second_log(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db
    other_id = await _add_user(session_factory, "Carol", "carol@example.com")

    async with session_factory() as db:
        await lending.lend_item(db, item_id, borrower_id, "good condition")

    async with session_factory() as db:
        with pytest.raises(Conflict) as excinfo:
            await lending.lend_item(db, item_id, other_id)

    assert excinfo.value.public_message == "Item is already lent"
    assert await _count_logs(session_factory, item_id) == 1

    async with session_factory() as db:
        item = await db.get(Item, item_id)
        assert item is not None
        assert item.current_borrower_id == borrower_id


@pytest.mark.asyncio
async def test_lend_item_under_maintenance_conflicts(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        item = await db.get(Item, item_id)
        assert item is not None
        item.status = ItemStatus.MAINTENANCE.value
        await db.commit()

    async with session_factory() as db:
        with pytest.raises(Conflict) as excinfo:
            await lending.lend_item(db, item_id, borrower_id)

    assert excinfo.value.context["status"] == ItemStatus.MAINTENANCE.value
    assert await _count_logs(session_factory, item_id) == 0


@pytest.mark.asyncio
async def test_lend_unknown_item_is_not_found(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, _item_id = seeded_db

    async with session_factory() as db:
        with pytest.raises(NotFound):
            await lending.lend_item(db, uuid.uuid4(), borrower_id)


@pytest.mark.asyncio
async def test_lend_to_unknown_user_rolls_back(seeded_db: Any) -> None:
    session_factory, _admin_id, _borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        with pytest.raises(NotFound):
            await lending.lend_item(db, item_id, uuid.uuid4())

    async with session_factory() as db:
        item = await db.get(Item, item_id)
        assert item is not None
        assert item.status == ItemStatus.AVAILABLE.value
        assert item.current_borrower_id is None

    assert await _count_logs(session_factory, item_id) == 0


@pytest.mark.asyncio
async def test_lend_to_deactivated_user_is_not_found(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        user = await db.get(User, borrower_id)
        assert user is not None
        user.is_active = False
        await db.commit()

    async with session_factory() as db:
        with pytest.raises(NotFound):
            await lending.lend_item(db, item_id, borrower_id)

    assert await _count_logs(session_factory, item_id) == 0


@pytest.mark.asyncio
async def test_failure_after_status_write_leaves_no_partial_state(
    seeded_db: Any, monkeypatch: pytest.MonkeyPatch
) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    def broken_clock() -> datetime:
        raise RuntimeError("storage unavailable")

    # The ledger timestamp is taken after the item row has been updated.
    monkeypatch.setattr(lending, "utcnow", broken_clock)

    async with session_factory() as db:
        with pytest.raises(RuntimeError):
            await lending.lend_item(db, item_id, borrower_id)

    async with session_factory() as db:
        item = await db.get(Item, item_id)
        assert item is not None
        assert item.status == ItemStatus.AVAILABLE.value
        assert item.current_borrower_id is None

    assert await _count_logs(session_factory, item_id) == 0


@pytest.mark.asyncio
async def test_return_closes_open_loan_and_keeps_lend_notes(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        await lending.lend_item(db, item_id, borrower_id, "good condition")

    before_return = datetime.now(UTC)
    async with session_factory() as db:
        log = await lending.return_item(db, item_id, "minor scratch")

    assert log.date_returned is not None
    assert log.date_returned >= before_return
    assert log.condition_notes == "good condition"
    assert log.return_condition_notes == "minor scratch"

    async with session_factory() as db:
        item = await db.get(Item, item_id)
        assert item is not None
        assert item.status == ItemStatus.AVAILABLE.value
        assert item.current_borrower_id is None

    assert await _open_log_count(session_factory, item_id) == 0


@pytest.mark.asyncio
async def test_return_of_available_item_is_rejected(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        with pytest.raises(Conflict) as excinfo:
            await lending.return_item(db, item_id)
    assert excinfo.value.public_message == "Item is not currently lent"

    async with session_factory() as db:
        await lending.lend_item(db, item_id, borrower_id)
    async with session_factory() as db:
        first = await lending.return_item(db, item_id, "fine")

    async with session_factory() as db:
        with pytest.raises(Conflict):
            await lending.return_item(db, item_id, "again")

    async with session_factory() as db:
        history = await lending.get_item_history(db, item_id)
    assert len(history) == 1
    assert history[0].id == first.id
    assert history[0].return_condition_notes == "fine"


@pytest.mark.asyncio
async def test_return_unknown_item_is_not_found(seeded_db: Any) -> None:
    session_factory, *_ = seeded_db

    async with session_factory() as db:
        with pytest.raises(NotFound) as excinfo:
            await lending.return_item(db, uuid.uuid4())
    assert excinfo.value.public_context == {}


@pytest.mark.asyncio
async def test_return_of_lent_item_without_ledger_row_is_integrity_violation(
    seeded_db: Any,
) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        item = await db.get(Item, item_id)
        assert item is not None
        item.status = ItemStatus.LENT.value
        item.current_borrower_id = borrower_id
        await db.commit()

    async with session_factory() as db:
        with pytest.raises(DataIntegrityViolation) as excinfo:
            await lending.return_item(db, item_id)

    assert excinfo.value.public_message == "Internal data integrity error"
    assert "no open lending record" in excinfo.value.message

    async with session_factory() as db:
        item = await db.get(Item, item_id)
        assert item is not None
        assert item.status == ItemStatus.LENT.value


@pytest.mark.asyncio
async def test_lend_of_available_item_with_open_row_is_integrity_violation(
    seeded_db: Any,
) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        db.add(
            LendingLog(
                item_id=item_id,
                borrower_id=borrower_id,
                borrower_name="Bob Borrower",
                borrower_email="bob@example.com",
            )
        )
        await db.commit()

    async with session_factory() as db:
        with pytest.raises(DataIntegrityViolation):
            await lending.lend_item(db, item_id, borrower_id)

    async with session_factory() as db:
        item = await db.get(Item, item_id)
        assert item is not None
        assert item.status == ItemStatus.AVAILABLE.value


@pytest.mark.asyncio
async def test_database_rejects_second_open_loan(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    def open_log() -> LendingLog:
        return LendingLog(
            item_id=item_id,
            borrower_id=borrower_id,
            borrower_name="Bob Borrower",
            borrower_email="bob@example.com",
        )

    async with session_factory() as db:
        db.add(open_log())
        await db.commit()

    async with session_factory() as db:
        db.add(open_log())
        with pytest.raises(IntegrityError):
            await db.commit()


@pytest.mark.asyncio
async def test_round_trip_history_is_most_recent_first(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db
    other_id = await _add_user(session_factory, "Carol", "carol@example.com")

    async with session_factory() as db:
        first = await lending.lend_item(db, item_id, borrower_id)
    async with session_factory() as db:
        await lending.return_item(db, item_id)
    async with session_factory() as db:
        second = await lending.lend_item(db, item_id, other_id)

    async with session_factory() as db:
        history = await lending.get_item_history(db, item_id)

    assert [log.id for log in history] == [second.id, first.id]
    assert history[0].date_returned is None
    assert history[1].date_returned is not None
    assert history[0].borrower_name == "Carol"


@pytest.mark.asyncio
async def test_history_date_range_is_inclusive(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        await lending.lend_item(db, item_id, borrower_id)

    async with session_factory() as db:
        (stored,) = await lending.get_item_history(db, item_id)
        lent_at = stored.date_lent

        exact = await lending.get_item_history(db, item_id, start=lent_at, end=lent_at)
        later = await lending.get_item_history(
            db, item_id, start=lent_at + timedelta(seconds=1)
        )
        earlier = await lending.get_item_history(
            db, item_id, end=lent_at - timedelta(seconds=1)
        )

    assert [log.id for log in exact] == [stored.id]
    assert later == []
    assert earlier == []


@pytest.mark.asyncio
async def test_history_of_unknown_item_is_empty(seeded_db: Any) -> None:
    session_factory, *_ = seeded_db

    async with session_factory() as db:
        assert await lending.get_item_history(db, uuid.uuid4()) == []


@pytest.mark.asyncio
async def test_borrower_snapshot_survives_user_edit(seeded_db: Any) -> None:
    session_factory, admin_id, borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        await lending.lend_item(db, item_id, borrower_id)

    async with session_factory() as db:
        await update_user(
            db,
            borrower_id,
            acting_admin_id=admin_id,
            name="Robert Borrower",
            email="robert@example.com",
        )

    async with session_factory() as db:
        (log,) = await lending.get_item_history(db, item_id)

    assert log.borrower_name == "Bob Borrower"
    assert log.borrower_email == "bob@example.com"


@pytest.mark.asyncio
async def test_active_loans_and_lent_items(seeded_db: Any) -> None:
    session_factory, _admin_id, borrower_id, category_id, item_id = seeded_db

    async with session_factory() as db:
        spare = Item(name="Ladder", category_id=category_id)
        db.add(spare)
        await db.commit()
        spare_id = spare.id

    async with session_factory() as db:
        log = await lending.lend_item(db, item_id, borrower_id)

    async with session_factory() as db:
        active = await lending.list_active_loans(db)
        lent = await lending.list_lent_items(db)

    assert [entry.id for entry in active] == [log.id]
    assert [item.id for item in lent] == [item_id]
    assert spare_id not in {item.id for item in lent}


@pytest.mark.asyncio
async def test_history_bounds_with_utc_offset_compare_as_instants(
    seeded_db: Any,
) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = seeded_db

    async with session_factory() as db:
        log = await lending.lend_item(db, item_id, borrower_id)

    # The same instant as date_lent, written in a +02:00 zone.
    cest = timezone(timedelta(hours=2))
    lent_at_cest = log.date_lent.astimezone(cest)
    assert lent_at_cest.hour != log.date_lent.astimezone(UTC).hour

    async with session_factory() as db:
        exact = await lending.get_item_history(
            db, item_id, start=lent_at_cest, end=lent_at_cest
        )
        before = await lending.get_item_history(
            db, item_id, end=lent_at_cest - timedelta(seconds=1)
        )

    assert [entry.id for entry in exact] == [log.id]
    assert before == []


@pytest.mark.asyncio
async def test_concurrent_lends_of_one_item_admit_exactly_one(file_db: Any) -> None:
    session_factory, _admin_id, borrower_id, _category_id, item_id = file_db
    other_id = await _add_user(session_factory, "Carol", "carol@example.com")

    async def attempt(user_id: Any) -> LendingLog | Conflict:
        async with session_factory() as db:
            try:
                return await lending.lend_item(db, item_id, user_id)
            except Conflict as exc:
                return exc

    results = await asyncio.gather(attempt(borrower_id), attempt(other_id))

    logs = [result for result in results if isinstance(result, LendingLog)]
    conflicts = [result for result in results if isinstance(result, Conflict)]
    assert len(logs) == 1
    assert len(conflicts) == 1
    assert await _count_logs(session_factory, item_id) == 1

    async with session_factory() as db:
        item = await db.get(Item, item_id)
        assert item is not None
        assert item.status == ItemStatus.LENT.value
        assert item.current_borrower_id == logs[0].borrower_id
