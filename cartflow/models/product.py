# cartflow/models/product.py
import uuid
from datetime import datetime
from decimal import Decimal

from sqlmodel import SQLModel, Field

from cartflow.core.clock import utcnow


class Category(SQLModel, table=True):
    """
    Catalog category. A category with a parent is a sub-category.
    """

    __tablename__ = "categories"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(max_length=100)

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
    )

    parent_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="categories.id",
        index=True,
    )


class Product(SQLModel, table=True):
    """
    Catalog product, read by the cart engine for prices and categories.

    Catalog CRUD lives elsewhere; only the fields settlement needs are
    modelled here.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=200,
        index=True,
    )

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
    )

    price: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        max_digits=12,
        decimal_places=2,
        description="Current unit price",
    )

    category_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="categories.id",
        index=True,
    )

    sub_category_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="categories.id",
        index=True,
    )

    is_active: bool = Field(
        default=True,
        index=True,
    )

    created_at: datetime = Field(default_factory=utcnow)
