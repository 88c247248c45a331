# cartflow/routers/admin_stats.py
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from cartflow.core.auth import require_admin
from cartflow.core.config import get_settings
from cartflow.database import get_session
from cartflow.repositories.stats_repo import StatsRepository
from cartflow.schemas.stats import CartStats
from cartflow.services.stats_service import StatsService

router = APIRouter(prefix="/admin/stats", tags=["Admin Stats"])

settings = get_settings()

repo = StatsRepository()
service = StatsService(repo, top_n=settings.STATS_TOP_N)


@router.get(
    "/carts",
    response_model=CartStats,
    dependencies=[Depends(require_admin)],
)
def get_cart_stats(
    period: Literal["24h", "7d", "14d", "30d", "365d"] = "7d",
    status_filter: str = Query(default="processed", alias="status"),
    session: Session = Depends(get_session),
):
    """
    Cart statistics for the admin dashboard.

    Query params (optional):
      - period: 24h | 7d | 14d | 30d | 365d, defaults to 7d
      - status: cart status to aggregate, defaults to processed

    Only accessible to users with role='admin'.
    """
    return service.get_cart_stats(
        session=session,
        period=period,
        status_filter=status_filter,
    )
