"""Session token utilities."""

import uuid
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.config import config
from lendtrack.models import User


def create_access_token(
    user_id: uuid.UUID, expires_delta: timedelta | None = None
) -> str:
    """Create a JWT whose subject is the user id."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode: dict[str, object] = {
        "sub": str(user_id),
        "exp": datetime.now(UTC) + expires_delta,
    }
    encoded_jwt: str = jwt.encode(
        to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM
    )
    return encoded_jwt


def decode_access_token(token: str) -> uuid.UUID | None:
    """Decode a JWT and return the user id, or None when invalid."""
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        subject = payload.get("sub")
        return uuid.UUID(subject) if subject else None
    except (JWTError, ValueError):
        return None


async def get_active_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Resolve a token subject to an active account."""
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user
