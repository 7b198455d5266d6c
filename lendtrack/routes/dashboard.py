"""Dashboard endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lendtrack.database import get_db
from lendtrack.models import User
from lendtrack.routes.auth import require_auth
from lendtrack.schemas import AnalyticsOut
from lendtrack.services import dashboard

router: APIRouter = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/analytics", response_model=AnalyticsOut)
async def analytics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_auth),
) -> AnalyticsOut:
    """Item counts by status and category, and the top current borrower."""
    return AnalyticsOut.model_validate(await dashboard.get_analytics(db))
