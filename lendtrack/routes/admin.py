"""Admin management routes for categories, users and the audit log."""

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.database import get_db
from lendtrack.models import AuditEntityType, Category, User, UserRole
from lendtrack.routes.auth import require_admin
from lendtrack.schemas import CategoryIn, CategoryOut, UserCreate, UserOut, UserUpdate
from lendtrack.services import audit, categories, users

router: APIRouter = APIRouter(prefix="/admin", tags=["admin"])


def _category_out(category: Category, item_count: int | None = None) -> CategoryOut:
    out = CategoryOut.model_validate(category)
    out.item_count = item_count
    return out


@router.get("/categories", response_model=list[CategoryOut])
async def list_categories(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> list[CategoryOut]:
    """All categories with their item counts."""
    rows = await categories.list_categories(db)
    return [_category_out(category, count) for category, count in rows]


@router.post(
    "/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED
)
async def create_category(
    payload: CategoryIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> CategoryOut:
    category = await categories.create_category(db, payload.name, current_user.id)
    return _category_out(category, 0)


@router.put("/categories/{category_id}", response_model=CategoryOut)
async def update_category(
    category_id: uuid.UUID,
    payload: CategoryIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> CategoryOut:
    category = await categories.update_category(
        db, category_id, payload.name, current_user.id
    )
    return _category_out(category, await categories.count_items(db, category.id))


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Response:
    await categories.delete_category(db, category_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users", response_model=list[UserOut])
async def list_users(
    role: UserRole | None = None,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> list[UserOut]:
    result = await users.list_users(db, role=role, include_inactive=include_inactive)
    return [UserOut.model_validate(user) for user in result]


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> UserOut:
    user = await users.create_user(
        db,
        name=payload.name,
        email=payload.email,
        role=payload.role,
        acting_admin_id=current_user.id,
    )
    return UserOut.model_validate(user)


@router.patch("/users/{user_id}", response_model=UserOut)
async def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> UserOut:
    user = await users.update_user(
        db,
        user_id,
        acting_admin_id=current_user.id,
        name=payload.name,
        email=payload.email,
        role=payload.role,
    )
    return UserOut.model_validate(user)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Response:
    """Deactivate a user account."""
    await users.delete_user(db, user_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/audit-logs")
async def audit_logs(
    entity_type: AuditEntityType | None = None,
    entity_id: uuid.UUID | None = None,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> list[dict[str, object]]:
    """Recent privileged actions, newest first."""
    entries = await audit.list_audit_logs(
        db, entity_type=entity_type, entity_id=entity_id, limit=limit
    )
    return [audit.serialize_audit_log(entry) for entry in entries]
