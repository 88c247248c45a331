# cartflow/repositories/promotion_repo.py
import uuid
from datetime import datetime

from sqlalchemy import func, or_
from sqlmodel import Session, select

from cartflow.models.promotion import Promotion


class PromotionRepository:
    """
    Data access layer for promotions.

    Promotions are read-mostly and shared by every cart; reads take no locks
    and see the last committed value.
    """

    def get_by_id(self, session: Session, promotion_id: uuid.UUID) -> Promotion | None:
        return session.get(Promotion, promotion_id)

    def list_all(
        self,
        session: Session,
        company_id: uuid.UUID | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Promotion]:
        stmt = select(Promotion)
        if company_id is not None:
            stmt = stmt.where(Promotion.company_id == company_id)
        stmt = stmt.order_by(Promotion.created_at.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def count(self, session: Session, company_id: uuid.UUID | None = None) -> int:
        stmt = select(func.count()).select_from(Promotion)
        if company_id is not None:
            stmt = stmt.where(Promotion.company_id == company_id)
        return int(session.exec(stmt).one() or 0)

    def list_live(
        self,
        session: Session,
        company_id: uuid.UUID | None,
        at: datetime,
    ) -> list[Promotion]:
        """
        Coarse pre-filter: enabled promotions that are global or scoped to
        `company_id` and whose dates cover `at`. The resolver re-checks
        every rule on the result.
        """
        scope = Promotion.company_id.is_(None)
        if company_id is not None:
            scope = or_(scope, Promotion.company_id == company_id)
        stmt = select(Promotion).where(
            Promotion.is_active == True,
            Promotion.start_date <= at,
            or_(Promotion.end_date.is_(None), Promotion.end_date >= at),
            scope,
        )
        return list(session.exec(stmt).all())

    def create(self, session: Session, promotion: Promotion) -> Promotion:
        session.add(promotion)
        session.commit()
        session.refresh(promotion)
        return promotion

    def update(self, session: Session, promotion: Promotion) -> Promotion:
        session.add(promotion)
        session.commit()
        session.refresh(promotion)
        return promotion

    def delete(self, session: Session, promotion: Promotion) -> None:
        session.delete(promotion)
        session.commit()
