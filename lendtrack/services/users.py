"""User administration and the at-least-one-administrator invariant.

Every check that guards the invariant reads the administrator rows with
``FOR UPDATE``, in id order, inside the same unit of work as the write it
guards, so two concurrent demotions or deletions cannot each see "another
admin remains" and together remove the last one.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import ColumnElement, and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.config import config
from lendtrack.database import AsyncSessionLocal, unit_of_work
from lendtrack.errors import Conflict, Forbidden, NotFound
from lendtrack.models import AdminAction, AuditEntityType, User, UserRole
from lendtrack.services.audit import build_field_changes, log_action

logger = logging.getLogger(__name__)


def _validate_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned or len(cleaned) > 100:
        raise ValueError("User name must be between 1 and 100 characters")
    return cleaned


def _validate_email(email: str) -> str:
    cleaned = User.normalize_email(email)
    local, _, domain = cleaned.partition("@")
    if not local or "." not in domain or len(cleaned) > 255:
        raise ValueError("Must be a valid email address")
    return cleaned


def _snapshot(user: User) -> dict[str, object]:
    return {"name": user.name, "email": user.email, "role": user.role}


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User", user_id)
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(
        select(User).where(User.email == User.normalize_email(email))
    )
    return result.scalar_one_or_none()


async def list_users(
    db: AsyncSession,
    *,
    role: UserRole | None = None,
    include_inactive: bool = False,
) -> list[User]:
    query = select(User)
    if role is not None:
        query = query.where(User.role == role.value)
    if not include_inactive:
        query = query.where(User.is_active.is_(True))
    result = await db.execute(query.order_by(User.name, User.email))
    return list(result.scalars())


def _active_admin_filter() -> tuple[ColumnElement[bool], ...]:
    return (
        User.role == UserRole.ADMINISTRATOR.value,
        User.is_active.is_(True),
    )


async def count_active_admins(db: AsyncSession, *, lock: bool = False) -> int:
    """Count active administrators, optionally locking their rows in id order."""
    if lock:
        result = await db.execute(
            select(User.id)
            .where(*_active_admin_filter())
            .order_by(User.id)
            .with_for_update()
        )
        return len(result.all())
    result = await db.execute(
        select(func.count()).select_from(User).where(*_active_admin_filter())
    )
    return int(result.scalar_one())


async def _lock_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _lock_user_and_admins(
    db: AsyncSession, user_id: uuid.UUID
) -> tuple[User | None, int]:
    """Lock the target and all active administrators in one id-ordered pass.

    Returns the target (or None) and the number of active administrators.
    """
    result = await db.execute(
        select(User)
        .where(or_(User.id == user_id, and_(*_active_admin_filter())))
        .order_by(User.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    rows = list(result.scalars())
    target = next((row for row in rows if row.id == user_id), None)
    admin_count = sum(1 for row in rows if row.is_admin and row.is_active)
    return target, admin_count


async def create_user(
    db: AsyncSession,
    *,
    name: str,
    email: str,
    role: UserRole,
    acting_admin_id: uuid.UUID,
) -> User:
    """Create an account; emails are unique, deactivated accounts included."""
    cleaned_name = _validate_name(name)
    cleaned_email = _validate_email(email)
    try:
        async with unit_of_work(db):
            if await get_user_by_email(db, cleaned_email) is not None:
                raise Conflict("Email address already exists", email=cleaned_email)

            user = User(name=cleaned_name, email=cleaned_email, role=role.value)
            db.add(user)
            await db.flush()

            await log_action(
                db,
                admin_user_id=acting_admin_id,
                action=AdminAction.CREATE_USER,
                entity_type=AuditEntityType.USER,
                entity_id=user.id,
                details=_snapshot(user),
            )
    except IntegrityError as exc:
        raise Conflict("Email address already exists", email=cleaned_email) from exc

    return user


async def update_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    acting_admin_id: uuid.UUID,
    name: str | None = None,
    email: str | None = None,
    role: UserRole | None = None,
) -> User:
    """Edit name, email and/or role.

    Raises:
        NotFound: no such active user.
        Conflict: the new email belongs to another account.
        Forbidden: the change would demote the acting admin or the last
            active administrator.
    """
    cleaned_name = _validate_name(name) if name is not None else None
    cleaned_email = _validate_email(email) if email is not None else None
    try:
        async with unit_of_work(db):
            admin_count = 0
            if role is not None:
                user, admin_count = await _lock_user_and_admins(db, user_id)
            else:
                user = await _lock_user(db, user_id)
            if user is None or not user.is_active:
                raise NotFound("User", user_id)

            before = _snapshot(user)

            if cleaned_name is not None:
                user.name = cleaned_name

            if cleaned_email is not None and cleaned_email != user.email:
                existing = await get_user_by_email(db, cleaned_email)
                if existing is not None and existing.id != user.id:
                    raise Conflict(
                        "Email address already exists", email=cleaned_email
                    )
                user.email = cleaned_email

            if role is not None and role.value != user.role:
                if user.is_admin:
                    if user.id == acting_admin_id:
                        raise Forbidden("Cannot remove your own administrator role")
                    if admin_count <= 1:
                        raise Forbidden("Cannot demote the last administrator")
                user.role = role.value

            changes = build_field_changes(before, _snapshot(user))
            if not changes:
                return user

            await db.flush()
            await log_action(
                db,
                admin_user_id=acting_admin_id,
                action=AdminAction.UPDATE_USER,
                entity_type=AuditEntityType.USER,
                entity_id=user.id,
                details={"changes": changes, **_snapshot(user)},
            )
    except IntegrityError as exc:
        raise Conflict("Email address already exists", email=cleaned_email) from exc

    return user


async def delete_user(
    db: AsyncSession, user_id: uuid.UUID, acting_admin_id: uuid.UUID
) -> User:
    """Deactivate an account.

    Checks run in this order, each one stopping the operation:

    1. deleting yourself is Forbidden, even as the only administrator;
    2. an unknown or already deactivated user is NotFound;
    3. deleting the last active administrator is Forbidden.
    """
    if user_id == acting_admin_id:
        raise Forbidden("Cannot delete your own account")

    async with unit_of_work(db):
        user, admin_count = await _lock_user_and_admins(db, user_id)
        if user is None or not user.is_active:
            raise NotFound("User", user_id)

        if user.is_admin and admin_count <= 1:
            logger.warning("Refusing to delete last administrator %s", user_id)
            raise Forbidden("Cannot delete the last administrator")

        user.is_active = False
        await db.flush()

        await log_action(
            db,
            admin_user_id=acting_admin_id,
            action=AdminAction.DELETE_USER,
            entity_type=AuditEntityType.USER,
            entity_id=user.id,
            details=_snapshot(user),
        )

    logger.info("Deactivated user %s", user_id)
    return user


async def ensure_initial_admin() -> User | None:
    """Create the configured first administrator on an empty install."""
    email = config.INITIAL_ADMIN_EMAIL
    if not email:
        return None

    async with AsyncSessionLocal() as session:
        try:
            async with unit_of_work(session):
                # Any existing user means the install is already set up.
                existing_any = await session.execute(select(User.id).limit(1))
                if existing_any.scalar_one_or_none() is not None:
                    return None

                user = User(
                    name=_validate_name(config.INITIAL_ADMIN_NAME),
                    email=_validate_email(email),
                    role=UserRole.ADMINISTRATOR.value,
                    is_active=True,
                )
                session.add(user)
        except IntegrityError:
            # Another worker bootstrapped the same install first.
            logger.info("Initial administrator already created elsewhere")
            return None

        logger.info("Created initial administrator %s", user.email)
        return user
