# cartflow/models/cart.py
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, UniqueConstraint, text
from sqlmodel import SQLModel, Field

from cartflow.core.clock import utcnow

# Statuses in which a user may hold at most one cart
ACTIVE_STATUS_SQL = "status IN ('building', 'submitted')"


class Cart(SQLModel, table=True):
    """
    Cart / order aggregate for one owner.

    `total` is the persisted settlement snapshot, rounded to cents. `version` is the
    optimistic-lock counter bumped on every write.
    """

    __tablename__ = "carts"
    __table_args__ = (
        Index(
            "uq_carts_one_active_per_user",
            "user_id",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_SQL),
            postgresql_where=text(ACTIVE_STATUS_SQL),
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # building | submitted | processed | cancelled | finished
    status: str = Field(
        default="building",
        index=True,
        description="Cart lifecycle status",
    )

    notes: str | None = None

    order_reference: str | None = Field(
        default=None,
        max_length=100,
        description="Customer purchase-order reference",
    )

    total: Decimal = Field(
        default=Decimal("0"),
        max_digits=12,
        decimal_places=2,
    )

    version: int = Field(default=1)

    created_at: datetime = Field(
        default_factory=utcnow,
        index=True,
    )
    updated_at: datetime = Field(default_factory=utcnow)


class CartItem(SQLModel, table=True):
    """
    Line inside a cart. One row per (cart, product).

    `product_id` is a plain reference: the product may be deleted from the
    catalog without making the cart unreadable.
    """

    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_items_cart_product"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    cart_id: uuid.UUID = Field(
        foreign_key="carts.id",
        index=True,
    )

    product_id: uuid.UUID = Field(index=True)

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    unit_price: Decimal = Field(
        max_digits=12,
        decimal_places=2,
        description="Price when added to cart",
    )

    line_reference: str | None = Field(default=None, max_length=100)

    position: int = Field(default=0, ge=0)
