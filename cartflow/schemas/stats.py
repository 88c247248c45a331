# cartflow/schemas/stats.py
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict
from sqlmodel import SQLModel


class StatsSummary(SQLModel):
    """
    Totals over the whole selected period.
    """
    model_config = ConfigDict(extra="forbid")

    total_carts: int
    total_amount: Decimal
    average_cart: Decimal


class StatsBucket(SQLModel):
    """
    One hour (24h period) or one UTC day. Empty buckets are included.
    """
    model_config = ConfigDict(extra="forbid")

    start: datetime
    label: str
    count: int
    total: Decimal
    average: Decimal


class TopCompany(SQLModel):
    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    name: str
    count: int
    total: Decimal


class TopClient(SQLModel):
    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    name: str
    email: str
    count: int
    total: Decimal


class CartStats(SQLModel):
    """
    Full payload for the cart statistics page.
    """
    model_config = ConfigDict(extra="forbid")

    period: str
    status: str
    status_label: str
    summary: StatsSummary
    daily_stats: list[StatsBucket]
    top_companies: list[TopCompany]
    top_clients: list[TopClient]
