# cartflow/schemas/promotion.py
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

from cartflow.schemas.cart import Pagination


class PromotionCreate(SQLModel):
    """
    Admin payload for a new promotion.

      - company_id None => global promotion
      - start_date defaults to now, end_date None => open-ended
      - product_ids / category_ids only matter when
        applies_to_all_products is false
    """

    model_config = ConfigDict(extra="forbid")

    company_id: uuid.UUID | None = None
    name: str
    description: str | None = None
    discount_percentage: Decimal
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True
    applies_to_all_products: bool = True
    product_ids: list[uuid.UUID] = []
    category_ids: list[uuid.UUID] = []

    @field_validator("name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class PromotionUpdate(SQLModel):
    """
    Partial update; only provided fields change.
    """

    model_config = ConfigDict(extra="forbid")

    company_id: uuid.UUID | None = None
    name: str | None = None
    description: str | None = None
    discount_percentage: Decimal | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool | None = None
    applies_to_all_products: bool | None = None
    product_ids: list[uuid.UUID] | None = None
    category_ids: list[uuid.UUID] | None = None


class PromotionRead(SQLModel):
    id: uuid.UUID
    company_id: uuid.UUID | None
    name: str
    description: str | None
    discount_percentage: Decimal
    start_date: datetime
    end_date: datetime | None
    is_active: bool
    applies_to_all_products: bool
    product_ids: list[uuid.UUID]
    category_ids: list[uuid.UUID]
    state: str
    created_at: datetime
    updated_at: datetime


class PromotionList(SQLModel):
    promotions: list[PromotionRead]
    pagination: Pagination


class ResolvedPromotion(SQLModel):
    """
    Catalog price display. Prices are None when the visibility policy hides
    them from the caller.
    """

    product_id: uuid.UUID
    promotion: PromotionRead | None = None
    discount_percentage: Decimal
    price_visible: bool
    unit_price: Decimal | None = None
    discounted_price: Decimal | None = None


class PromotionUsageRead(SQLModel):
    cart_id: uuid.UUID
    user_id: uuid.UUID
    user_name: str | None = None
    email: str | None = None
    product_id: uuid.UUID
    discount_amount: Decimal
    cart_total: Decimal
    applied_at: datetime
    cart_status_at_query: str


class UsageBucket(SQLModel):
    start: datetime
    label: str
    usage: int
    discount: Decimal


class PromotionUsageReport(SQLModel):
    promotion: PromotionRead
    period: str
    total_usage: int
    total_discount: Decimal
    chart: list[UsageBucket]
    history: list[PromotionUsageRead]
