# cartflow/schemas/cart.py
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel


def _blank_to_none(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    return v or None


class CartItemInput(SQLModel):
    """
    One requested line. Quantity is checked by the service so a bad value
    comes back as a validation_error rather than a schema error.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int
    line_reference: str | None = None

    @field_validator("line_reference")
    @classmethod
    def normalize_reference(cls, v: str | None) -> str | None:
        return _blank_to_none(v)


class CartCreate(SQLModel):
    """
    Payload for creating a cart (self-checkout or admin on behalf of a user).

      - submit: move straight to 'submitted' (checkout)
      - replace_active: admin confirmation to cancel the user's active cart
    """

    model_config = ConfigDict(extra="forbid")

    items: list[CartItemInput]
    notes: str | None = None
    order_reference: str | None = None
    submit: bool = False
    replace_active: bool = False

    @field_validator("notes", "order_reference")
    @classmethod
    def normalize_text(cls, v: str | None) -> str | None:
        return _blank_to_none(v)


class CartSync(SQLModel):
    """
    Owner's building cart, saved as a whole. Empty items discard it.
    """

    model_config = ConfigDict(extra="forbid")

    items: list[CartItemInput] = []
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        return _blank_to_none(v)


class CartUpdate(SQLModel):
    """
    Replace items and/or notes. Omitted fields are left alone; a line with
    quantity 0 is dropped. `expected_version` enables the optimistic check.
    """

    model_config = ConfigDict(extra="forbid")

    items: list[CartItemInput] | None = None
    notes: str | None = None
    order_reference: str | None = None
    expected_version: int | None = None


class CartItemAdd(SQLModel):
    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = 1


class CartItemQuantity(SQLModel):
    model_config = ConfigDict(extra="forbid")

    quantity: int


class CartStatusUpdate(SQLModel):
    """
    Status change. Accepts canonical names or the French labels
    (en_cours, demande, traité, annulé, fini).
    """

    model_config = ConfigDict(extra="forbid")

    status: str
    expected_version: int | None = None


class CartItemRead(SQLModel):
    """
    Settled line. Money fields are None when prices are hidden from the viewer.
    """

    product_id: uuid.UUID
    product_name: str | None = None
    quantity: int
    line_reference: str | None = None
    unit_price: Decimal | None = None
    line_gross: Decimal | None = None
    line_discount: Decimal | None = None
    line_net: Decimal | None = None
    promotion_id: uuid.UUID | None = None
    discount_percentage: Decimal | None = None
    missing: bool = False


class CartRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    status: str
    status_label: str
    notes: str | None = None
    order_reference: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime
    items: list[CartItemRead]
    item_count: int
    # persisted snapshot
    total: Decimal | None = None
    # live settlement
    gross_total: Decimal | None = None
    discount_total: Decimal | None = None
    grand_total: Decimal | None = None
    missing_products: list[uuid.UUID] = []


class CartSummary(SQLModel):
    """
    Short view of a cart, carried by the active-cart conflict signal.
    """

    id: uuid.UUID
    status: str
    item_count: int
    total: Decimal
    created_at: datetime


class ActiveCartCheck(SQLModel):
    has_active_cart: bool
    cart: CartRead | None = None


class Pagination(SQLModel):
    page: int
    limit: int
    total: int
    pages: int


class CartList(SQLModel):
    carts: list[CartRead]
    pagination: Pagination


class PendingCount(SQLModel):
    count: int
