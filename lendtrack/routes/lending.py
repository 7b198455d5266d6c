"""Lend/return endpoints and lending history."""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.database import get_db
from lendtrack.models import User
from lendtrack.routes.auth import require_auth
from lendtrack.schemas import LendingLogOut, LendRequest, ReturnRequest
from lendtrack.services import lending

router: APIRouter = APIRouter(tags=["lending"])


@router.post("/items/{item_id}/lend", response_model=LendingLogOut)
async def lend(
    item_id: uuid.UUID,
    payload: LendRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_auth),
) -> LendingLogOut:
    """Lend an item to a user."""
    log = await lending.lend_item(
        db, item_id, payload.user_id, condition_notes=payload.condition_notes
    )
    return LendingLogOut.model_validate(log)


@router.post("/items/{item_id}/return", response_model=LendingLogOut)
async def return_(
    item_id: uuid.UUID,
    payload: ReturnRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_auth),
) -> LendingLogOut:
    """Return a lent item."""
    log = await lending.return_item(
        db, item_id, return_condition_notes=payload.return_condition_notes
    )
    return LendingLogOut.model_validate(log)


@router.get("/items/{item_id}/history", response_model=list[LendingLogOut])
async def history(
    item_id: uuid.UUID,
    start: datetime | None = None,
    end: datetime | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_auth),
) -> list[LendingLogOut]:
    """Lending history of an item, most recent first."""
    logs = await lending.get_item_history(db, item_id, start=start, end=end)
    return [LendingLogOut.model_validate(log) for log in logs]


@router.get("/lending/active", response_model=list[LendingLogOut])
async def active_loans(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_auth),
) -> list[LendingLogOut]:
    """All loans that have not been returned yet."""
    logs = await lending.list_active_loans(db)
    return [LendingLogOut.model_validate(log) for log in logs]
