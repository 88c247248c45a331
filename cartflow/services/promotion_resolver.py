# cartflow/services/promotion_resolver.py
"""
Decides which promotion, if any, discounts a product.

Pure functions over already-loaded promotions; nothing here touches the
database, so the same code serves live cart settlement, checkout and the
catalog price display.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable

from cartflow.core.clock import as_utc
from cartflow.models.promotion import Promotion


class PromotionState(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass(frozen=True)
class PromotionMatch:
    promotion: Promotion
    discount_percentage: Decimal

    @property
    def promotion_id(self) -> uuid.UUID:
        return self.promotion.id


def _ref(value: uuid.UUID | str | None) -> str | None:
    return None if value is None else str(value)


def promotion_state(promotion: Promotion, at: datetime) -> PromotionState:
    """Temporal state only; the is_active kill switch is reported separately."""
    at = as_utc(at)
    if at < as_utc(promotion.start_date):
        return PromotionState.UPCOMING
    end = as_utc(promotion.end_date)
    if end is not None and at > end:
        return PromotionState.EXPIRED
    return PromotionState.ACTIVE


def in_scope(promotion: Promotion, company_ref: uuid.UUID | str | None) -> bool:
    """A company-scoped promotion only applies to purchases of that company."""
    if promotion.company_id is None:
        return True
    return company_ref is not None and str(promotion.company_id) == str(company_ref)


def is_applicable(
    promotion: Promotion,
    at: datetime,
    company_ref: uuid.UUID | str | None,
) -> bool:
    if not promotion.is_active:
        return False
    if promotion_state(promotion, at) != PromotionState.ACTIVE:
        return False
    return in_scope(promotion, company_ref)


def matches_product(
    promotion: Promotion,
    product_ref: uuid.UUID | str,
    category_ref: uuid.UUID | str | None = None,
    sub_category_ref: uuid.UUID | str | None = None,
) -> bool:
    if promotion.applies_to_all_products:
        return True

    product_ids = {str(p) for p in promotion.product_ids or ()}
    if str(product_ref) in product_ids:
        return True

    category_ids = {str(c) for c in promotion.category_ids or ()}
    for ref in (_ref(category_ref), _ref(sub_category_ref)):
        if ref is not None and ref in category_ids:
            return True
    return False


def _percentage(promotion: Promotion) -> Decimal:
    value = promotion.discount_percentage
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _precedence(promotion: Promotion) -> tuple:
    # Highest percentage, then most recently created, then id for a total order
    return (
        _percentage(promotion),
        as_utc(promotion.created_at),
        str(promotion.id),
    )


def candidates(
    promotions: Iterable[Promotion],
    product_ref: uuid.UUID | str,
    category_ref: uuid.UUID | str | None,
    company_ref: uuid.UUID | str | None,
    at: datetime,
    sub_category_ref: uuid.UUID | str | None = None,
) -> list[Promotion]:
    """Every promotion that could discount the product, best first."""
    found = [
        p
        for p in promotions
        if is_applicable(p, at, company_ref)
        and matches_product(p, product_ref, category_ref, sub_category_ref)
    ]
    return sorted(found, key=_precedence, reverse=True)


def resolve(
    promotions: Iterable[Promotion],
    product_ref: uuid.UUID | str,
    category_ref: uuid.UUID | str | None,
    company_ref: uuid.UUID | str | None,
    at: datetime,
    sub_category_ref: uuid.UUID | str | None = None,
) -> PromotionMatch | None:
    """
    Pick the single promotion discounting a product at `at`, or None.

    Discounts never stack: when several promotions match, the winner is the
    one with the highest percentage; ties go to the most recently created.
    """
    ranked = candidates(
        promotions, product_ref, category_ref, company_ref, at, sub_category_ref
    )
    if not ranked:
        return None
    best = ranked[0]
    return PromotionMatch(
        promotion=best,
        discount_percentage=_percentage(best),
    )
