# cartflow/repositories/usage_repo.py
import uuid
from datetime import datetime

from sqlmodel import Session, select

from cartflow.models.usage import PromotionUsage


class UsageRepository:
    """
    Promotion usage ledger. Append and read only: there is deliberately no
    update or delete here.
    """

    def record(self, session: Session, usage: PromotionUsage) -> PromotionUsage:
        """Append a row; the caller's transaction commits it."""
        session.add(usage)
        session.flush()
        return usage

    def list_for_cart(self, session: Session, cart_id: uuid.UUID) -> list[PromotionUsage]:
        stmt = select(PromotionUsage).where(PromotionUsage.cart_id == cart_id)
        return list(session.exec(stmt).all())

    def list_for_promotion(
        self,
        session: Session,
        promotion_id: uuid.UUID,
        since: datetime | None = None,
    ) -> list[PromotionUsage]:
        stmt = select(PromotionUsage).where(PromotionUsage.promotion_id == promotion_id)
        if since is not None:
            stmt = stmt.where(PromotionUsage.applied_at >= since)
        stmt = stmt.order_by(PromotionUsage.applied_at.desc())
        return list(session.exec(stmt).all())
