# GET /api/stats

from fastapi import APIRouter, Depends, HTTPException, Query, status
from email_tracker.core.config import Settings, get_settings
from email_tracker.core.database import Database, get_database
from email_tracker.services.analytics import AnalyticsService
from email_tracker.schemas.analytics import UserStatsResponse
import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/api", tags=["analytics"])


@router.get("/stats", response_model=UserStatsResponse)
async def get_stats(
        user_email: str = Query(..., alias="userEmail", min_length=1, description="Owner address"),
        db: Database = Depends(get_database),
        settings: Settings = Depends(get_settings)
):
    """
    Aggregate engagement for one owner.

    - **userEmail**: owner address (unauthenticated, see module notes in api/emails.py)

    Also returns opens per day for the trailing week, oldest first. Days
    without opens are omitted.
    """
    if not user_email.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userEmail is required")

    try:
        return await AnalyticsService(db).get_user_stats(user_email, trend_days=settings.trend_days)
    except Exception as e:
        logger.error("stats_query_failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch stats")
