# cartflow/repositories/cart_repo.py
import uuid
from typing import Any, Iterable

from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from cartflow.models.cart import Cart, CartItem
from cartflow.services.status_machine import ACTIVE_STATUSES


class CartRepository:
    """
    Data access layer for carts and cart_items.

    NOTE:
      - No commits here; every cart write is one transaction owned by the
        service (settlement, status and ledger rows commit together).
      - Cart header changes go through `guarded_update`, never through
        attribute assignment on a loaded Cart.
    """

    # ---- Carts ----

    def get_by_id(self, session: Session, cart_id: uuid.UUID) -> Cart | None:
        return session.get(Cart, cart_id)

    def get_active_for_user(self, session: Session, user_id: uuid.UUID) -> Cart | None:
        stmt = select(Cart).where(
            Cart.user_id == user_id,
            Cart.status.in_([s.value for s in ACTIVE_STATUSES]),
        )
        return session.exec(stmt).first()

    def get_for_user_with_status(
        self,
        session: Session,
        user_id: uuid.UUID,
        status: str,
    ) -> Cart | None:
        stmt = select(Cart).where(Cart.user_id == user_id, Cart.status == status)
        return session.exec(stmt).first()

    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[Cart]:
        stmt = (
            select(Cart)
            .where(Cart.user_id == user_id)
            .order_by(Cart.created_at.desc())
        )
        return list(session.exec(stmt).all())

    def list_for_users(
        self,
        session: Session,
        user_ids: Iterable[uuid.UUID],
    ) -> list[Cart]:
        ids = list(user_ids)
        if not ids:
            return []
        stmt = (
            select(Cart)
            .where(Cart.user_id.in_(ids))
            .order_by(Cart.created_at.desc())
        )
        return list(session.exec(stmt).all())

    def _filtered(
        self,
        stmt,
        status: str | None,
        search: str | None,
        user_ids: list[uuid.UUID] | None,
    ):
        if status:
            stmt = stmt.where(Cart.status == status)
        if search:
            conditions = [Cart.notes.ilike(f"%{search}%")]
            if user_ids:
                conditions.append(Cart.user_id.in_(user_ids))
            stmt = stmt.where(or_(*conditions))
        return stmt

    def list_all(
        self,
        session: Session,
        status: str | None = None,
        search: str | None = None,
        user_ids: list[uuid.UUID] | None = None,
        skip: int = 0,
        limit: int = 10,
        newest_first: bool = True,
    ) -> list[Cart]:
        order = Cart.created_at.desc() if newest_first else Cart.created_at.asc()
        stmt = self._filtered(select(Cart), status, search, user_ids)
        stmt = stmt.order_by(order).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def count_all(
        self,
        session: Session,
        status: str | None = None,
        search: str | None = None,
        user_ids: list[uuid.UUID] | None = None,
    ) -> int:
        stmt = self._filtered(select(func.count()).select_from(Cart), status, search, user_ids)
        return int(session.exec(stmt).one() or 0)

    def add(self, session: Session, cart: Cart) -> Cart:
        """
        Insert a Cart without committing. Flushing here surfaces the
        one-active-cart unique index violation as IntegrityError.
        """
        session.add(cart)
        session.flush()
        return cart

    def guarded_update(
        self,
        session: Session,
        cart_id: uuid.UUID,
        expected_version: int,
        values: dict[str, Any],
    ) -> bool:
        """
        UPDATE carts ... SET version = version + 1
        WHERE id = :cart_id AND version = :expected_version

        Returns False when another writer got there first.
        """
        stmt = (
            update(Cart)
            .where(Cart.id == cart_id, Cart.version == expected_version)
            .values(**values, version=Cart.version + 1)
        )
        result = session.connection().execute(stmt)
        return result.rowcount == 1

    def delete(self, session: Session, cart: Cart) -> None:
        for item in self.list_items(session, cart.id):
            session.delete(item)
        session.flush()
        session.delete(cart)
        session.flush()

    # ---- Cart items ----

    def list_items(self, session: Session, cart_id: uuid.UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.cart_id == cart_id)
            .order_by(CartItem.position)
        )
        return list(session.exec(stmt).all())

    def items_for_carts(
        self,
        session: Session,
        cart_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, list[CartItem]]:
        ids = list(cart_ids)
        grouped: dict[uuid.UUID, list[CartItem]] = {cid: [] for cid in ids}
        if not ids:
            return grouped
        stmt = (
            select(CartItem)
            .where(CartItem.cart_id.in_(ids))
            .order_by(CartItem.cart_id, CartItem.position)
        )
        for item in session.exec(stmt).all():
            grouped[item.cart_id].append(item)
        return grouped

    def replace_items(
        self,
        session: Session,
        cart_id: uuid.UUID,
        items: list[CartItem],
    ) -> list[CartItem]:
        for old in self.list_items(session, cart_id):
            session.delete(old)
        # old rows must be gone before the (cart_id, product_id) rows return
        session.flush()
        for position, item in enumerate(items):
            item.cart_id = cart_id
            item.position = position
        session.add_all(items)
        session.flush()
        return items
