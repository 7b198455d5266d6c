import uuid
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from lendtrack.database import get_db, use_immediate_transactions
from lendtrack.main import app
from lendtrack.models import Base, Category, Item, User, UserRole
from lendtrack.routes.auth import get_current_user, require_auth

SeededDB = tuple[
    async_sessionmaker[AsyncSession],
    uuid.UUID,
    uuid.UUID,
    uuid.UUID,
    uuid.UUID,
]


async def _seed(engine: AsyncEngine) -> SeededDB:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as session:
        admin = User(
            name="Ada Admin",
            email="admin@example.com",
            role=UserRole.ADMINISTRATOR.value,
        )
        borrower = User(name="Bob Borrower", email="bob@example.com")
        category = Category(name="Tools")
        session.add_all([admin, borrower, category])
        await session.flush()

        item = Item(name="Cordless Drill", category_id=category.id)
        session.add(item)
        await session.commit()

        return (session_factory, admin.id, borrower.id, category.id, item.id)


@pytest.fixture
async def seeded_db() -> SeededDB:
    """In-memory database with one admin, one borrower, a category and an item."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    yield await _seed(engine)
    await engine.dispose()


@pytest.fixture
async def file_db(tmp_path: Path) -> SeededDB:
    """Same seed data in a file database, so sessions get separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'lendtrack.db'}")
    use_immediate_transactions(engine)
    yield await _seed(engine)
    await engine.dispose()


@pytest.fixture
async def empty_file_db(tmp_path: Path) -> async_sessionmaker[AsyncSession]:
    """Schema only, no rows."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    use_immediate_transactions(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


class AuthUser:
    def __init__(self, user_id: uuid.UUID, email: str, is_admin: bool) -> None:
        self.id = user_id
        self.email = email
        self.is_admin = is_admin


@pytest.fixture
async def test_client(
    seeded_db: SeededDB,
) -> tuple[
    AsyncClient,
    async_sessionmaker[AsyncSession],
    uuid.UUID,
    uuid.UUID,
    uuid.UUID,
    uuid.UUID,
]:
    session_factory, admin_id, borrower_id, category_id, item_id = seeded_db

    async def override_get_db():
        async with session_factory() as session:
            yield session

    auth_user = AuthUser(admin_id, "admin@example.com", is_admin=True)

    async def override_auth() -> AuthUser:
        return auth_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[require_auth] = override_auth
    app.dependency_overrides[get_current_user] = override_auth

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, session_factory, admin_id, borrower_id, category_id, item_id

    app.dependency_overrides.clear()
