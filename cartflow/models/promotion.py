# cartflow/models/promotion.py
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field

from cartflow.core.clock import utcnow


class Promotion(SQLModel, table=True):
    """
    Percentage discount, global or scoped to one company.

    When `applies_to_all_products` is false, `product_ids` and
    `category_ids` (UUID strings) are the only applicability surface.
    """

    __tablename__ = "promotions"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    company_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="companies.id",
        index=True,
        description="None means global",
    )

    name: str = Field(max_length=150)
    description: str | None = None

    discount_percentage: Decimal = Field(
        ge=0,
        le=100,
        max_digits=5,
        decimal_places=2,
    )

    start_date: datetime = Field(default_factory=utcnow, index=True)
    end_date: datetime | None = Field(default=None, index=True)

    is_active: bool = Field(default=True, index=True)

    applies_to_all_products: bool = Field(default=True)

    product_ids: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    category_ids: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
