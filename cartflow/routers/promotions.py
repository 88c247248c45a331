# cartflow/routers/promotions.py
import uuid
from typing import Literal

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from cartflow.core.auth import get_current_user, require_admin, require_auth
from cartflow.core.config import get_settings
from cartflow.core.visibility import prices_visible
from cartflow.database import get_session
from cartflow.models.user import User
from cartflow.repositories.product_repo import ProductRepository
from cartflow.repositories.promotion_repo import PromotionRepository
from cartflow.repositories.usage_repo import UsageRepository
from cartflow.repositories.user_repo import UserRepository
from cartflow.schemas.promotion import (
    PromotionCreate,
    PromotionList,
    PromotionRead,
    PromotionUpdate,
    PromotionUsageReport,
    ResolvedPromotion,
)
from cartflow.services.promotion_service import PromotionService

router = APIRouter(prefix="/promotions", tags=["Promotions"])

settings = get_settings()

repo = PromotionRepository()
usage_repo = UsageRepository()
user_repo = UserRepository()
product_repo = ProductRepository()
service = PromotionService(
    repo,
    usage_repo,
    user_repo,
    product_repo,
    history_limit=settings.USAGE_HISTORY_LIMIT,
)


# -------- Public / customer endpoints --------


@router.get("/my", response_model=list[PromotionRead])
def list_my_promotions(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Promotions currently discounting the user's purchases
    (their company's plus global ones).
    """
    return service.list_live_for_user(session, current_user)


@router.get("/resolve", response_model=ResolvedPromotion)
def resolve_promotion(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Promotion applied to a product right now for the caller's company.

    Guests only see global promotions. Prices follow PRICE_VISIBILITY.
    """
    company_id = current_user.company_id if current_user else None
    show = prices_visible(settings.PRICE_VISIBILITY, current_user)
    return service.resolve_for_product(session, product_id, company_id, show_prices=show)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=PromotionList,
    dependencies=[Depends(require_admin)],
)
def list_promotions(
    session: Session = Depends(get_session),
    company_id: uuid.UUID | None = None,
    page: int = 1,
    limit: int = 50,
):
    return service.list_promotions(session, company_id, page, limit)


@router.post(
    "",
    response_model=PromotionRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_promotion(
    payload: PromotionCreate,
    session: Session = Depends(get_session),
):
    """
    Create a promotion (admin only).

    Rules:
      - discount_percentage between 0 and 100
      - no company => applies to every company
      - applies_to_all_products=false with empty product_ids and
        category_ids matches nothing
    """
    return service.create_promotion(session, payload)


@router.get(
    "/{promotion_id}",
    response_model=PromotionRead,
    dependencies=[Depends(require_admin)],
)
def get_promotion(
    promotion_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_promotion(session, promotion_id)


@router.put(
    "/{promotion_id}",
    response_model=PromotionRead,
    dependencies=[Depends(require_admin)],
)
def update_promotion(
    promotion_id: uuid.UUID,
    payload: PromotionUpdate,
    session: Session = Depends(get_session),
):
    """
    Partial update; only provided fields are changed.
    """
    return service.update_promotion(session, promotion_id, payload)


@router.delete(
    "/{promotion_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_promotion(
    promotion_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Delete a promotion. Recorded usage rows are kept.
    """
    service.delete_promotion(session, promotion_id)


@router.get(
    "/{promotion_id}/usage",
    response_model=PromotionUsageReport,
    dependencies=[Depends(require_admin)],
)
def get_promotion_usage(
    promotion_id: uuid.UUID,
    period: Literal["24h", "7d", "14d", "30d", "365d"] = "30d",
    session: Session = Depends(get_session),
):
    """
    Usage of a promotion over a period (admin only).

      - 24h => hourly buckets
      - Nd  => daily buckets
    """
    return service.usage_report(session, promotion_id, period)
