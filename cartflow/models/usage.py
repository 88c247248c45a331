# cartflow/models/usage.py
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from cartflow.core.clock import utcnow


class PromotionUsage(SQLModel, table=True):
    """
    Ledger row: one promotion discounted one cart line at submission.

    Append-only. Ids are plain references so deleting a promotion or a
    cart leaves the audit trail intact.
    """

    __tablename__ = "promotion_usages"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_usage_cart_product"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    promotion_id: uuid.UUID = Field(index=True)
    cart_id: uuid.UUID = Field(index=True)
    user_id: uuid.UUID = Field(index=True)
    company_id: uuid.UUID | None = Field(default=None, index=True)
    product_id: uuid.UUID

    discount_amount: Decimal = Field(max_digits=12, decimal_places=2)
    cart_total: Decimal = Field(max_digits=12, decimal_places=2)

    applied_at: datetime = Field(default_factory=utcnow, index=True)

    cart_status_at_query: str
