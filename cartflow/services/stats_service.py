# cartflow/services/stats_service.py
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlmodel import Session

from cartflow.core.clock import utcnow
from cartflow.core.money import ZERO, quantize_display
from cartflow.repositories.stats_repo import StatsRepository
from cartflow.schemas.stats import (
    CartStats,
    StatsBucket,
    StatsSummary,
    TopClient,
    TopCompany,
)
from cartflow.services.periods import window_for
from cartflow.services.status_machine import CartStatus, parse_status


@dataclass
class _Tally:
    id: uuid.UUID
    name: str
    email: str = ""
    count: int = 0
    total: Decimal = ZERO


def _average(total: Decimal, count: int) -> Decimal:
    return quantize_display(total / count) if count else quantize_display(ZERO)


def _ranked(tallies: dict, limit: int) -> list[_Tally]:
    # summed total desc, then count desc, then name for a stable order
    return sorted(
        tallies.values(),
        key=lambda t: (-t.total, -t.count, t.name),
    )[:limit]


class StatsService:
    """
    Period statistics over carts in one status.
    """

    def __init__(self, repo: StatsRepository, top_n: int = 10):
        self.repo = repo
        self.top_n = top_n

    def get_cart_stats(
        self,
        session: Session,
        period: str = "7d",
        status_filter: str = CartStatus.PROCESSED.value,
    ) -> CartStats:
        """
        Aggregate carts whose status matches `status_filter` and whose
        creation time falls in the period window.

          - 24h  => 24 hourly buckets ending with the current hour
          - Nd   => N daily (UTC) buckets ending today
          - every bucket is emitted, empty ones with zeros
          - top companies / clients are ranked over the whole window
        """
        cart_status = parse_status(status_filter)
        window = window_for(period, utcnow())
        rows = self.repo.carts_in_window(session, cart_status.value, window.start, window.end)

        counts = [0] * len(window.bucket_starts)
        totals = [ZERO] * len(window.bucket_starts)
        companies: dict[uuid.UUID, _Tally] = {}
        clients: dict[uuid.UUID, _Tally] = {}
        total_carts = 0
        total_amount = ZERO

        for cart, user, company in rows:
            index = window.bucket_index(cart.created_at)
            if index is None:
                continue
            amount = Decimal(cart.total or 0)
            counts[index] += 1
            totals[index] += amount
            total_carts += 1
            total_amount += amount

            if user is not None:
                client = clients.setdefault(
                    user.id,
                    _Tally(id=user.id, name=user.display_name, email=user.email),
                )
                client.count += 1
                client.total += amount
            if company is not None:
                tally = companies.setdefault(company.id, _Tally(id=company.id, name=company.name))
                tally.count += 1
                tally.total += amount

        daily_stats = [
            StatsBucket(
                start=start,
                label=window.label(start),
                count=counts[i],
                total=quantize_display(totals[i]),
                average=_average(totals[i], counts[i]),
            )
            for i, start in enumerate(window.bucket_starts)
        ]

        return CartStats(
            period=period,
            status=cart_status.value,
            status_label=cart_status.label,
            summary=StatsSummary(
                total_carts=total_carts,
                total_amount=quantize_display(total_amount),
                average_cart=_average(total_amount, total_carts),
            ),
            daily_stats=daily_stats,
            top_companies=[
                TopCompany(id=t.id, name=t.name, count=t.count, total=quantize_display(t.total))
                for t in _ranked(companies, self.top_n)
            ],
            top_clients=[
                TopClient(
                    id=t.id,
                    name=t.name,
                    email=t.email,
                    count=t.count,
                    total=quantize_display(t.total),
                )
                for t in _ranked(clients, self.top_n)
            ],
        )
