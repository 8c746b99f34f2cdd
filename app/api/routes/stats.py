from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.rate_limit import enforce_api_rate_limit
from app.db.connection import get_db
from app.schemas.stats import AnalyticsReport, InjectionStats
from app.services.analytics_service import AnalyticsService
from app.services.stats_service import StatsService
from app.utils.validators import normalize_user_filter

router = APIRouter(dependencies=[Depends(enforce_api_rate_limit)])


@router.get("/stats", response_model=InjectionStats, tags=["Statistics"])
def get_stats(
    days: int | None = Query(None, description="Window length in days (default APP_STATS_DAYS)."),
    user_name: str | None = Query(None),
    db: Session = Depends(get_db),
) -> InjectionStats:
    """Compliance statistics for the last ``days`` local calendar days.

    Results are cached briefly; ``cached`` tells whether this response
    came from the cache.
    """
    return StatsService(db).get_stats(days=days, user_name=normalize_user_filter(user_name))


@router.get("/analytics", response_model=AnalyticsReport, tags=["Analytics"])
def get_analytics(
    days: int = Query(30, description="Window length in days."),
    user_name: str | None = Query(None),
    db: Session = Depends(get_db),
) -> AnalyticsReport:
    """Time-of-day, weekday and trend patterns plus generated insights."""
    return AnalyticsService(db).report(days=days, user_name=normalize_user_filter(user_name))
