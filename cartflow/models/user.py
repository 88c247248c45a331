# cartflow/models/user.py
import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field

from cartflow.core.clock import utcnow


class Company(SQLModel, table=True):
    """
    Client company. Users belong to at most one company; promotions may be
    scoped to one.
    """

    __tablename__ = "companies"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=150,
        index=True,
    )

    code: str | None = Field(
        default=None,
        max_length=50,
        description="Short internal code",
    )

    created_at: datetime = Field(default_factory=utcnow)


class User(SQLModel, table=True):
    """
    Persistent user profile, mirrored from the identity provider.

    Identity:
      - id: matches the JWT "sub" claim

    Role:
      - "user" | "admin"
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    email: str = Field(
        unique=True,
        index=True,
    )

    first_name: str | None = Field(default=None, max_length=80)
    last_name: str | None = Field(default=None, max_length=80)

    role: str = Field(
        default="user",
        index=True,
        description="Application role: user | admin",
    )

    company_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="companies.id",
        index=True,
    )

    created_at: datetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        full = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full or self.email

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
