# cartflow/services/promotion_service.py
import logging
import math
import uuid
from datetime import datetime
from decimal import Decimal

from sqlmodel import Session

from cartflow.core.clock import as_utc, utcnow
from cartflow.core.errors import NotFound, ValidationError
from cartflow.core.money import ZERO, percent_of, quantize_display, validate_percentage
from cartflow.models.promotion import Promotion
from cartflow.models.user import User
from cartflow.repositories.product_repo import ProductRepository
from cartflow.repositories.promotion_repo import PromotionRepository
from cartflow.repositories.usage_repo import UsageRepository
from cartflow.repositories.user_repo import UserRepository
from cartflow.schemas.cart import Pagination
from cartflow.schemas.promotion import (
    PromotionCreate,
    PromotionList,
    PromotionRead,
    PromotionUpdate,
    PromotionUsageRead,
    PromotionUsageReport,
    ResolvedPromotion,
    UsageBucket,
)
from cartflow.services.periods import window_for
from cartflow.services.promotion_resolver import (
    is_applicable,
    promotion_state,
    resolve,
)

logger = logging.getLogger(__name__)


class PromotionService:
    """
    Promotion administration, catalog-side resolution and usage reporting.

    Applicability is always computed by the resolver; nothing about a
    promotion is ever stored on a cart.
    """

    def __init__(
        self,
        repo: PromotionRepository,
        usage_repo: UsageRepository,
        user_repo: UserRepository,
        product_repo: ProductRepository,
        history_limit: int = 50,
    ):
        self.repo = repo
        self.usage_repo = usage_repo
        self.user_repo = user_repo
        self.product_repo = product_repo
        self.history_limit = history_limit

    # ---- internal helpers ----

    def _get(self, session: Session, promotion_id: uuid.UUID) -> Promotion:
        promotion = self.repo.get_by_id(session, promotion_id)
        if not promotion:
            raise NotFound("Promotion not found", promotion_id=str(promotion_id))
        return promotion

    def _check_company(self, session: Session, company_id: uuid.UUID | None) -> None:
        if company_id is not None and not self.user_repo.get_company(session, company_id):
            raise NotFound("Company not found", company_id=str(company_id))

    def _check_dates(self, start: datetime, end: datetime | None) -> None:
        if end is not None and as_utc(end) < as_utc(start):
            raise ValidationError("end_date must be after start_date", field="end_date")

    def to_read(self, promotion: Promotion, at: datetime | None = None) -> PromotionRead:
        return PromotionRead(
            id=promotion.id,
            company_id=promotion.company_id,
            name=promotion.name,
            description=promotion.description,
            discount_percentage=promotion.discount_percentage,
            start_date=promotion.start_date,
            end_date=promotion.end_date,
            is_active=promotion.is_active,
            applies_to_all_products=promotion.applies_to_all_products,
            product_ids=[uuid.UUID(p) for p in promotion.product_ids or ()],
            category_ids=[uuid.UUID(c) for c in promotion.category_ids or ()],
            state=promotion_state(promotion, at or utcnow()).value,
            created_at=promotion.created_at,
            updated_at=promotion.updated_at,
        )

    # ---- Admin CRUD ----

    def list_promotions(
        self,
        session: Session,
        company_id: uuid.UUID | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> PromotionList:
        page = max(page, 1)
        limit = max(min(limit, 100), 1)
        rows = self.repo.list_all(session, company_id, skip=(page - 1) * limit, limit=limit)
        total = self.repo.count(session, company_id)
        now = utcnow()
        return PromotionList(
            promotions=[self.to_read(p, now) for p in rows],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit),
            ),
        )

    def get_promotion(self, session: Session, promotion_id: uuid.UUID) -> PromotionRead:
        return self.to_read(self._get(session, promotion_id))

    def create_promotion(self, session: Session, payload: PromotionCreate) -> PromotionRead:
        """
        Rules:
          - discount_percentage in 0..100
          - company (if given) must exist
          - end_date, if set, not before start_date
        """
        pct = validate_percentage(payload.discount_percentage)
        self._check_company(session, payload.company_id)
        now = utcnow()
        start = payload.start_date or now
        self._check_dates(start, payload.end_date)

        promotion = Promotion(
            company_id=payload.company_id,
            name=payload.name,
            description=payload.description,
            discount_percentage=pct,
            start_date=start,
            end_date=payload.end_date,
            is_active=payload.is_active,
            applies_to_all_products=payload.applies_to_all_products,
            product_ids=[str(p) for p in payload.product_ids],
            category_ids=[str(c) for c in payload.category_ids],
            created_at=now,
            updated_at=now,
        )
        promotion = self.repo.create(session, promotion)
        logger.info("Promotion %s created (%s%%)", promotion.id, pct)
        return self.to_read(promotion)

    def update_promotion(
        self,
        session: Session,
        promotion_id: uuid.UUID,
        payload: PromotionUpdate,
    ) -> PromotionRead:
        promotion = self._get(session, promotion_id)
        data = payload.model_dump(exclude_unset=True)

        if "discount_percentage" in data:
            if data["discount_percentage"] is None:
                raise ValidationError("discount_percentage cannot be null")
            data["discount_percentage"] = validate_percentage(data["discount_percentage"])
        if "company_id" in data:
            self._check_company(session, data["company_id"])
        if "product_ids" in data:
            data["product_ids"] = [str(p) for p in data["product_ids"] or ()]
        if "category_ids" in data:
            data["category_ids"] = [str(c) for c in data["category_ids"] or ()]
        for required in ("name", "start_date", "is_active", "applies_to_all_products"):
            if required in data and data[required] is None:
                raise ValidationError(f"{required} cannot be null", field=required)

        self._check_dates(
            data.get("start_date", promotion.start_date),
            data.get("end_date", promotion.end_date),
        )

        for key, value in data.items():
            setattr(promotion, key, value)
        promotion.updated_at = utcnow()
        promotion = self.repo.update(session, promotion)
        return self.to_read(promotion)

    def delete_promotion(self, session: Session, promotion_id: uuid.UUID) -> None:
        promotion = self._get(session, promotion_id)
        self.repo.delete(session, promotion)
        logger.info("Promotion %s deleted", promotion_id)

    # ---- Customer-facing ----

    def list_live_for_user(self, session: Session, user: User) -> list[PromotionRead]:
        """
        Promotions currently discounting purchases of the user's company,
        global ones included.
        """
        now = utcnow()
        rows = self.repo.list_live(session, user.company_id, now)
        live = [p for p in rows if is_applicable(p, now, user.company_id)]
        live.sort(key=lambda p: as_utc(p.created_at), reverse=True)
        return [self.to_read(p, now) for p in live]

    def resolve_for_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        company_id: uuid.UUID | None,
        show_prices: bool = True,
    ) -> ResolvedPromotion:
        """
        Which promotion discounts this product for `company_id` right now,
        with the discounted unit price.
        """
        product = self.product_repo.get_by_id(session, product_id)
        if not product:
            raise NotFound("Product not found", product_id=str(product_id))

        now = utcnow()
        promotions = self.repo.list_live(session, company_id, now)
        match = resolve(
            promotions,
            product.id,
            product.category_id,
            company_id,
            now,
            sub_category_ref=product.sub_category_id,
        )
        pct = match.discount_percentage if match else ZERO
        price = Decimal(product.price)
        return ResolvedPromotion(
            product_id=product.id,
            promotion=self.to_read(match.promotion, now) if match else None,
            discount_percentage=pct,
            price_visible=show_prices,
            unit_price=quantize_display(price) if show_prices else None,
            discounted_price=(
                quantize_display(price - percent_of(price, pct)) if show_prices else None
            ),
        )

    # ---- Usage report ----

    def usage_report(
        self,
        session: Session,
        promotion_id: uuid.UUID,
        period: str = "30d",
    ) -> PromotionUsageReport:
        """
        Ledger-backed usage of one promotion over a period: totals, a
        bucketed chart (hourly for 24h, daily otherwise, empty buckets
        kept) and the most recent usage rows. The window never starts
        before the promotion itself.
        """
        promotion = self._get(session, promotion_id)
        now = utcnow()
        window = window_for(period, now, not_before=promotion.start_date)

        records = [
            r
            for r in self.usage_repo.list_for_promotion(session, promotion.id, since=window.start)
            if window.contains(r.applied_at)
        ]

        carts: list[set] = [set() for _ in window.bucket_starts]
        discount = [ZERO] * len(window.bucket_starts)
        for r in records:
            index = window.bucket_index(r.applied_at)
            if index is None:
                continue
            carts[index].add(r.cart_id)
            discount[index] += r.discount_amount

        chart = [
            UsageBucket(
                start=start,
                label=window.label(start),
                usage=len(carts[i]),
                discount=quantize_display(discount[i]),
            )
            for i, start in enumerate(window.bucket_starts)
        ]

        recent = records[: self.history_limit]
        users = self.user_repo.get_many(session, [r.user_id for r in recent])
        history = []
        for r in recent:
            user = users.get(r.user_id)
            history.append(
                PromotionUsageRead(
                    cart_id=r.cart_id,
                    user_id=r.user_id,
                    user_name=user.display_name if user else None,
                    email=user.email if user else None,
                    product_id=r.product_id,
                    discount_amount=quantize_display(r.discount_amount),
                    cart_total=quantize_display(r.cart_total),
                    applied_at=r.applied_at,
                    cart_status_at_query=r.cart_status_at_query,
                )
            )

        return PromotionUsageReport(
            promotion=self.to_read(promotion, now),
            period=period,
            total_usage=len({r.cart_id for r in records}),
            total_discount=quantize_display(sum((r.discount_amount for r in records), ZERO)),
            chart=chart,
            history=history,
        )
