# cartflow/repositories/stats_repo.py
from datetime import datetime

from sqlmodel import Session, select

from cartflow.models.cart import Cart
from cartflow.models.user import Company, User


class StatsRepository:
    """
    Read-only queries feeding the cart statistics.

    Bucketing happens in the service so the same code runs on Postgres and
    SQLite; this layer only narrows the rows.
    """

    def carts_in_window(
        self,
        session: Session,
        status: str,
        start: datetime,
        end: datetime,
    ) -> list[tuple[Cart, User | None, Company | None]]:
        """
        Carts with `status` created in [start, end], with owner and company.
        """
        stmt = (
            select(Cart, User, Company)
            .join(User, User.id == Cart.user_id, isouter=True)
            .join(Company, Company.id == User.company_id, isouter=True)
            .where(
                Cart.status == status,
                Cart.created_at >= start,
                Cart.created_at <= end,
            )
            .order_by(Cart.created_at)
        )
        return list(session.exec(stmt).all())
