"""Item endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.database import get_db
from lendtrack.models import ItemStatus, User
from lendtrack.routes.auth import require_admin, require_auth
from lendtrack.schemas import ItemCreate, ItemOut, ItemStatusUpdate, ItemUpdate
from lendtrack.services import items, lending

router: APIRouter = APIRouter(prefix="/items", tags=["items"])


@router.get("/lent", response_model=list[ItemOut])
async def lent_items(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_auth),
) -> list[ItemOut]:
    """Items currently out on loan."""
    return [ItemOut.model_validate(item) for item in await lending.list_lent_items(db)]


@router.get("", response_model=list[ItemOut])
async def list_items(
    item_status: ItemStatus | None = Query(default=None, alias="status"),
    category_id: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_auth),
) -> list[ItemOut]:
    """All items by name, optionally filtered by status and category."""
    result = await items.list_items(
        db, status=item_status, category_id=category_id
    )
    return [ItemOut.model_validate(item) for item in result]


@router.post("", response_model=ItemOut, status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: ItemCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> ItemOut:
    item = await items.create_item(
        db,
        name=payload.name,
        category_id=payload.category_id,
        description=payload.description,
    )
    return ItemOut.model_validate(item)


@router.get("/{item_id}", response_model=ItemOut)
async def get_item(
    item_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_auth),
) -> ItemOut:
    return ItemOut.model_validate(await items.get_item(db, item_id))


@router.patch("/{item_id}", response_model=ItemOut)
async def update_item(
    item_id: uuid.UUID,
    payload: ItemUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> ItemOut:
    item = await items.update_item(
        db,
        item_id,
        name=payload.name,
        description=payload.description,
        category_id=payload.category_id,
    )
    return ItemOut.model_validate(item)


@router.post("/{item_id}/status", response_model=ItemOut)
async def set_status(
    item_id: uuid.UUID,
    payload: ItemStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> ItemOut:
    """Move an item in or out of maintenance."""
    item = await items.set_item_status(db, item_id, payload.status)
    return ItemOut.model_validate(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Response:
    await items.delete_item(db, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
