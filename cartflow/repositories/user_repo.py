# cartflow/repositories/user_repo.py
import uuid
from typing import Iterable

from sqlalchemy import or_
from sqlmodel import Session, select

from cartflow.models.user import Company, User


class UserRepository:
    """
    Read access to users and companies.

    Responsibilities:
      - Pure DB operations (queries)
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def get_many(
        self,
        session: Session,
        user_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, User]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        stmt = select(User).where(User.id.in_(ids))
        return {u.id: u for u in session.exec(stmt).all()}

    def search_ids(self, session: Session, term: str) -> list[uuid.UUID]:
        """Ids of users whose first name, last name or email contains `term`."""
        pattern = f"%{term}%"
        stmt = select(User.id).where(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )
        return list(session.exec(stmt).all())

    def ids_for_company(self, session: Session, company_id: uuid.UUID) -> list[uuid.UUID]:
        stmt = select(User.id).where(User.company_id == company_id)
        return list(session.exec(stmt).all())

    def get_company(self, session: Session, company_id: uuid.UUID) -> Company | None:
        return session.get(Company, company_id)

    def get_companies(
        self,
        session: Session,
        company_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, Company]:
        ids = list({cid for cid in company_ids if cid is not None})
        if not ids:
            return {}
        stmt = select(Company).where(Company.id.in_(ids))
        return {c.id: c for c in session.exec(stmt).all()}
