"""Session cookie handling and request identity dependencies."""

from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.config import config
from lendtrack.database import get_db
from lendtrack.models import User
from lendtrack.utils.auth import decode_access_token, get_active_user

router: APIRouter = APIRouter(prefix="/auth", tags=["auth"])


class SessionRequest(BaseModel):
    token: str


async def get_current_user(
    session_token: Annotated[str | None, Cookie()] = None,
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Get current user from session token."""
    if not session_token:
        return None

    user_id = decode_access_token(session_token)
    if user_id is None:
        return None

    return await get_active_user(db, user_id)


async def require_auth(
    current_user: User | None = Depends(get_current_user),
) -> User:
    """Require authentication."""
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return current_user


async def require_admin(current_user: User = Depends(require_auth)) -> User:
    """Require an administrator."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return current_user


@router.post("/session", status_code=status.HTTP_204_NO_CONTENT)
async def open_session(
    payload: SessionRequest,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Exchange a token issued by ``lendtrack token`` for a session cookie."""
    user_id = decode_access_token(payload.token)
    user = await get_active_user(db, user_id) if user_id else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.set_cookie(
        key="session_token",
        value=payload.token,
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return response


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout() -> Response:
    """Drop the session cookie."""
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(
        key="session_token",
        secure=config.SESSION_COOKIE_SECURE,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/me")
async def me(current_user: User = Depends(require_auth)) -> dict[str, str]:
    """Get current user info."""
    return {
        "id": str(current_user.id),
        "email": current_user.email,
        "role": "administrator" if current_user.is_admin else "standard user",
    }
