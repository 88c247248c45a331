# cartflow/services/cart_service.py
import logging
import math
import uuid
from datetime import datetime
from typing import Any, Iterable

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from cartflow.core.clock import utcnow
from cartflow.core.errors import (
    ConcurrencyConflict,
    ConflictActiveCart,
    NotFound,
    ValidationError,
)
from cartflow.core.money import money_str, quantize_display, to_money
from cartflow.models.cart import Cart, CartItem
from cartflow.models.product import Product
from cartflow.models.promotion import Promotion
from cartflow.models.usage import PromotionUsage
from cartflow.models.user import User
from cartflow.repositories.cart_repo import CartRepository
from cartflow.repositories.product_repo import ProductRepository
from cartflow.repositories.promotion_repo import PromotionRepository
from cartflow.repositories.usage_repo import UsageRepository
from cartflow.repositories.user_repo import UserRepository
from cartflow.schemas.cart import (
    ActiveCartCheck,
    CartCreate,
    CartItemAdd,
    CartItemInput,
    CartItemQuantity,
    CartItemRead,
    CartList,
    CartRead,
    CartStatusUpdate,
    CartSummary,
    CartSync,
    CartUpdate,
    Pagination,
    PendingCount,
)
from cartflow.services.settlement import Settlement, SettlementLine, settle
from cartflow.services.status_machine import (
    Actor,
    CartStatus,
    check_transition,
    ensure_editable,
    parse_status,
)

logger = logging.getLogger(__name__)


def actor_for(user: User) -> Actor:
    return Actor.ADMIN if user.is_admin else Actor.OWNER


def _copy_items(items: Iterable[CartItem]) -> list[CartItem]:
    return [
        CartItem(
            product_id=it.product_id,
            quantity=it.quantity,
            unit_price=it.unit_price,
            line_reference=it.line_reference,
        )
        for it in items
    ]


def mask_prices(read: CartRead) -> CartRead:
    """Blank every money field of an already built CartRead."""
    hidden = dict.fromkeys(("total", "gross_total", "discount_total", "grand_total"))
    items = [
        it.model_copy(
            update=dict.fromkeys(
                ("unit_price", "line_gross", "line_discount", "line_net", "discount_percentage")
            )
        )
        for it in read.items
    ]
    return read.model_copy(update={**hidden, "items": items})


class CartService:
    """
    Business logic for the cart / order lifecycle.

    Responsibilities:
      - snapshot unit prices from the catalog when a line is first added
      - settle totals through the promotion resolver on every item change
      - enforce the status state machine and who may edit what
      - keep at most one active cart per user (guard + unique index)
      - record promotion usage when a cart is submitted
      - commit each operation as a single transaction
    """

    def __init__(
        self,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        promotion_repo: PromotionRepository,
        usage_repo: UsageRepository,
        user_repo: UserRepository,
    ):
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.promotion_repo = promotion_repo
        self.usage_repo = usage_repo
        self.user_repo = user_repo

    # ---- internal helpers ----

    def _get_cart(self, session: Session, cart_id: uuid.UUID) -> Cart:
        cart = self.cart_repo.get_by_id(session, cart_id)
        if not cart:
            raise NotFound("Cart not found", cart_id=str(cart_id))
        return cart

    def _get_user(self, session: Session, user_id: uuid.UUID) -> User:
        user = self.user_repo.get_by_id(session, user_id)
        if not user:
            raise NotFound("User not found", user_id=str(user_id))
        return user

    def _ensure_access(self, cart: Cart, viewer: User) -> None:
        if not viewer.is_admin and cart.user_id != viewer.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )

    def _normalize_lines(
        self,
        lines: Iterable[CartItemInput],
        drop_zero: bool,
    ) -> list[CartItemInput]:
        """
        One line per product, in first-seen order. Repeated products are
        merged (the latest non-empty line_reference wins); quantity 0 drops
        the line when `drop_zero`, negatives never pass.
        """
        merged: dict[uuid.UUID, CartItemInput] = {}
        for line in lines:
            if line.quantity < 0 or (line.quantity == 0 and not drop_zero):
                raise ValidationError(
                    "Quantity must be at least 1",
                    product_id=str(line.product_id),
                    quantity=line.quantity,
                )
            if line.quantity == 0:
                merged.pop(line.product_id, None)
                continue
            previous = merged.get(line.product_id)
            if previous is not None:
                line = previous.model_copy(
                    update={
                        "quantity": previous.quantity + line.quantity,
                        "line_reference": line.line_reference or previous.line_reference,
                    }
                )
            merged[line.product_id] = line
        return list(merged.values())

    def _build_items(
        self,
        session: Session,
        lines: list[CartItemInput],
        previous: dict[uuid.UUID, CartItem] | None = None,
    ) -> list[CartItem]:
        """
        Turn requested lines into CartItems. Lines already in the cart keep
        their add-time price; new lines snapshot the current catalog price.
        """
        previous = previous or {}
        new_ids = [line.product_id for line in lines if line.product_id not in previous]
        products = self.product_repo.resolve_products(session, new_ids)

        missing = [str(pid) for pid in new_ids if pid not in products]
        if missing:
            raise NotFound("One or more products no longer exist", product_ids=missing)
        inactive = [str(pid) for pid in new_ids if not products[pid].is_active]
        if inactive:
            raise ValidationError("One or more products are inactive", product_ids=inactive)

        items: list[CartItem] = []
        for line in lines:
            kept = previous.get(line.product_id)
            if kept is not None:
                unit_price = kept.unit_price
                reference = line.line_reference or kept.line_reference
            else:
                unit_price = to_money(products[line.product_id].price, "price")
                reference = line.line_reference
            items.append(
                CartItem(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    line_reference=reference,
                )
            )
        return items

    def _settle(
        self,
        session: Session,
        company_id: uuid.UUID | None,
        items: list[CartItem],
        at: datetime,
        promotions: list[Promotion] | None = None,
    ) -> tuple[Settlement, dict[uuid.UUID, Product]]:
        products = self.product_repo.resolve_products(session, [it.product_id for it in items])
        lines = []
        for it in items:
            product = products.get(it.product_id)
            lines.append(
                SettlementLine(
                    product_id=it.product_id,
                    quantity=it.quantity,
                    unit_price=it.unit_price,
                    category_id=product.category_id if product else None,
                    sub_category_id=product.sub_category_id if product else None,
                    missing=product is None,
                )
            )
        if promotions is None:
            promotions = self.promotion_repo.list_live(session, company_id, at)
        return settle(lines, promotions, company_id, at), products

    def _check_submittable(self, items: list[CartItem], settlement: Settlement) -> None:
        if not items:
            raise ValidationError("Cart must contain at least one product")
        if settlement.missing_products:
            raise ValidationError(
                "Cart contains products that no longer exist",
                product_ids=[str(pid) for pid in settlement.missing_products],
            )

    def _summary(self, session: Session, cart: Cart) -> dict[str, Any]:
        summary = CartSummary(
            id=cart.id,
            status=cart.status,
            item_count=len(self.cart_repo.list_items(session, cart.id)),
            total=quantize_display(cart.total),
            created_at=cart.created_at,
        )
        return summary.model_dump(mode="json")

    def _conflict(self, session: Session, user_id: uuid.UUID) -> ConflictActiveCart:
        active = self.cart_repo.get_active_for_user(session, user_id)
        return ConflictActiveCart(self._summary(session, active) if active else {})

    def _write(
        self,
        session: Session,
        cart: Cart,
        values: dict[str, Any],
        expected_version: int | None = None,
    ) -> None:
        if expected_version is not None and expected_version != cart.version:
            raise ConcurrencyConflict(
                "Cart was modified by someone else; reload and retry",
                cart_id=str(cart.id),
                expected_version=expected_version,
                current_version=cart.version,
            )
        cart_id, version = cart.id, cart.version
        if not self.cart_repo.guarded_update(session, cart_id, version, values):
            session.rollback()
            logger.warning("Rejected stale write on cart %s (version %s)", cart_id, version)
            raise ConcurrencyConflict(
                "Cart was modified by someone else; reload and retry",
                cart_id=str(cart_id),
                expected_version=version,
            )

    def _record_usage(
        self,
        session: Session,
        cart_id: uuid.UUID,
        owner: User,
        settlement: Settlement,
        at: datetime,
    ) -> int:
        lines = settlement.discounted_lines()
        for line in lines:
            self.usage_repo.record(
                session,
                PromotionUsage(
                    promotion_id=line.promotion_id,
                    cart_id=cart_id,
                    user_id=owner.id,
                    company_id=owner.company_id,
                    product_id=line.product_id,
                    discount_amount=quantize_display(line.discount),
                    cart_total=settlement.rounded_total,
                    applied_at=at,
                    cart_status_at_query=CartStatus.SUBMITTED.value,
                ),
            )
        if lines:
            logger.info(
                "Recorded %d promotion usage(s) for cart %s (discount %s)",
                len(lines),
                cart_id,
                money_str(settlement.discount_total),
            )
        return len(lines)

    def _save(
        self,
        session: Session,
        cart: Cart,
        owner: User,
        at: datetime,
        items: list[CartItem] | None = None,
        target: CartStatus | None = None,
        changes: dict[str, Any] | None = None,
        expected_version: int | None = None,
    ) -> CartRead:
        """
        Single write path for an existing cart: settle, version-guarded
        header update, item replacement and usage rows, then one commit.

        The total is re-settled when items change and at submission; a
        later status move keeps the submission snapshot.
        """
        values = dict(changes or {})
        values["updated_at"] = at

        settlement = None
        if items is not None or target == CartStatus.SUBMITTED:
            current = items if items is not None else self.cart_repo.list_items(session, cart.id)
            settlement, _ = self._settle(session, owner.company_id, current, at)
            if target == CartStatus.SUBMITTED:
                self._check_submittable(current, settlement)
            values["total"] = settlement.rounded_total
        if target is not None:
            values["status"] = target.value

        self._write(session, cart, values, expected_version)
        if items is not None:
            self.cart_repo.replace_items(session, cart.id, items)
        if target == CartStatus.SUBMITTED:
            self._record_usage(session, cart.id, owner, settlement, at)

        session.commit()
        session.refresh(cart)
        return self.to_read(session, cart, owner=owner)

    def _my_building_cart(self, session: Session, user: User) -> Cart | None:
        return self.cart_repo.get_for_user_with_status(
            session, user.id, CartStatus.BUILDING.value
        )

    # ---- DTO builders ----

    def to_read(
        self,
        session: Session,
        cart: Cart,
        show_prices: bool = True,
        items: list[CartItem] | None = None,
        owner: User | None = None,
        promotions_by_company: dict | None = None,
    ) -> CartRead:
        """
        Compose CartRead with a live settlement. `total` stays the persisted
        snapshot; money fields are blanked when prices are hidden.
        """
        if items is None:
            items = self.cart_repo.list_items(session, cart.id)
        if owner is None:
            owner = self.user_repo.get_by_id(session, cart.user_id)
        company_id = owner.company_id if owner else None

        now = utcnow()
        promotions = None
        if promotions_by_company is not None:
            if company_id not in promotions_by_company:
                promotions_by_company[company_id] = self.promotion_repo.list_live(
                    session, company_id, now
                )
            promotions = promotions_by_company[company_id]
        settlement, products = self._settle(session, company_id, items, now, promotions)

        def money(value):
            return quantize_display(value) if show_prices else None

        item_reads: list[CartItemRead] = []
        for it, line in zip(items, settlement.lines):
            product = products.get(it.product_id)
            item_reads.append(
                CartItemRead(
                    product_id=it.product_id,
                    product_name=product.name if product else None,
                    quantity=it.quantity,
                    line_reference=it.line_reference,
                    unit_price=money(it.unit_price),
                    line_gross=money(line.gross),
                    line_discount=money(line.discount),
                    line_net=money(line.net),
                    promotion_id=line.promotion_id,
                    discount_percentage=(
                        line.discount_percentage if line.discounted and show_prices else None
                    ),
                    missing=line.missing,
                )
            )

        cart_status = CartStatus(cart.status)
        return CartRead(
            id=cart.id,
            user_id=cart.user_id,
            status=cart_status.value,
            status_label=cart_status.label,
            notes=cart.notes,
            order_reference=cart.order_reference,
            version=cart.version,
            created_at=cart.created_at,
            updated_at=cart.updated_at,
            items=item_reads,
            item_count=len(item_reads),
            total=money(cart.total),
            gross_total=money(settlement.gross_total),
            discount_total=money(settlement.discount_total),
            grand_total=money(settlement.grand_total),
            missing_products=settlement.missing_products,
        )

    def _reads(
        self,
        session: Session,
        carts: list[Cart],
        show_prices: bool = True,
    ) -> list[CartRead]:
        items = self.cart_repo.items_for_carts(session, [c.id for c in carts])
        owners = self.user_repo.get_many(session, [c.user_id for c in carts])
        promotions_by_company: dict = {}
        return [
            self.to_read(
                session,
                cart,
                show_prices=show_prices,
                items=items[cart.id],
                owner=owners.get(cart.user_id),
                promotions_by_company=promotions_by_company,
            )
            for cart in carts
        ]

    # ---- createCart / updateCart / changeStatus ----

    def create_cart(
        self,
        session: Session,
        owner: User,
        payload: CartCreate,
        actor: Actor,
    ) -> CartRead:
        """
        Create a cart for `owner`.

        Rules:
          - at most one active (building/submitted) cart per user
          - an owner's own building cart is reused rather than duplicated
          - an admin may replace the active cart with `replace_active`;
            the old cart is cancelled in the same transaction
          - otherwise a ConflictActiveCart signal carries its summary
        """
        lines = self._normalize_lines(payload.items, drop_zero=False)
        if payload.submit and not lines:
            raise ValidationError("Cart must contain at least one product")
        if payload.replace_active and actor != Actor.ADMIN:
            raise ValidationError("Only an administrator can replace an active cart")

        now = utcnow()
        existing = self.cart_repo.get_active_for_user(session, owner.id)

        if existing is not None and actor == Actor.OWNER and existing.status == CartStatus.BUILDING.value:
            previous = {it.product_id: it for it in self.cart_repo.list_items(session, existing.id)}
            items = self._build_items(session, lines, previous)
            changes = {}
            if payload.notes is not None:
                changes["notes"] = payload.notes
            if payload.order_reference is not None:
                changes["order_reference"] = payload.order_reference
            target = CartStatus.SUBMITTED if payload.submit else None
            return self._save(session, existing, owner, now, items=items, target=target, changes=changes)

        items = self._build_items(session, lines)

        if existing is not None:
            if not payload.replace_active:
                raise ConflictActiveCart(self._summary(session, existing))
            self._write(
                session,
                existing,
                {"status": CartStatus.CANCELLED.value, "updated_at": now},
            )
            logger.info(
                "Active cart %s of user %s cancelled to make room for a new cart",
                existing.id,
                owner.id,
            )

        target = CartStatus.SUBMITTED if payload.submit else CartStatus.BUILDING
        settlement, _ = self._settle(session, owner.company_id, items, now)
        if target == CartStatus.SUBMITTED:
            self._check_submittable(items, settlement)

        cart = Cart(
            user_id=owner.id,
            status=target.value,
            notes=payload.notes,
            order_reference=payload.order_reference,
            total=settlement.rounded_total,
            created_at=now,
            updated_at=now,
        )
        try:
            self.cart_repo.add(session, cart)
        except IntegrityError:
            # another request created the user's active cart first
            session.rollback()
            logger.info("Rejected concurrent cart creation for user %s", owner.id)
            raise self._conflict(session, owner.id)

        self.cart_repo.replace_items(session, cart.id, items)
        if target == CartStatus.SUBMITTED:
            self._record_usage(session, cart.id, owner, settlement, now)

        session.commit()
        session.refresh(cart)
        logger.info("Cart %s created for user %s as %s", cart.id, owner.id, target.value)
        return self.to_read(session, cart, owner=owner)

    def update_cart(
        self,
        session: Session,
        cart_id: uuid.UUID,
        payload: CartUpdate,
        viewer: User,
    ) -> CartRead:
        """
        Replace items and/or notes. Owners may edit only while building,
        admins any live cart; status never moves here.
        """
        cart = self._get_cart(session, cart_id)
        self._ensure_access(cart, viewer)
        current = CartStatus(cart.status)
        ensure_editable(current, actor_for(viewer))

        items = None
        if payload.items is not None:
            lines = self._normalize_lines(payload.items, drop_zero=True)
            previous = {it.product_id: it for it in self.cart_repo.list_items(session, cart.id)}
            items = self._build_items(session, lines, previous)
            if not items and current != CartStatus.BUILDING:
                raise ValidationError(
                    "A submitted cart must keep at least one product",
                    status=current.value,
                )

        changes: dict[str, Any] = {}
        for field in ("notes", "order_reference"):
            if field in payload.model_fields_set:
                value = getattr(payload, field)
                if value is not None:
                    value = value.strip() or None
                changes[field] = value

        owner = self._get_user(session, cart.user_id)
        return self._save(
            session,
            cart,
            owner,
            utcnow(),
            items=items,
            changes=changes,
            expected_version=payload.expected_version,
        )

    def change_status(
        self,
        session: Session,
        cart_id: uuid.UUID,
        payload: CartStatusUpdate,
        viewer: User,
    ) -> CartRead:
        cart = self._get_cart(session, cart_id)
        self._ensure_access(cart, viewer)
        actor = actor_for(viewer)

        current = CartStatus(cart.status)
        target = parse_status(payload.status)
        if not check_transition(current, target, actor):
            return self.to_read(session, cart)

        owner = self._get_user(session, cart.user_id)
        read = self._save(
            session,
            cart,
            owner,
            utcnow(),
            target=target,
            expected_version=payload.expected_version,
        )
        logger.info(
            "Cart %s moved %s -> %s by %s",
            cart_id,
            current.value,
            target.value,
            actor.value,
        )
        return read

    # ---- Owner's building cart ----

    def get_my_cart(self, session: Session, user: User, show_prices: bool = True) -> CartRead | None:
        cart = self._my_building_cart(session, user)
        if cart is None:
            return None
        return self.to_read(session, cart, show_prices=show_prices, owner=user)

    def sync_my_cart(self, session: Session, user: User, payload: CartSync) -> CartRead | None:
        """
        Save the owner's building cart as a whole.

        Empty items discard it (building -> cancelled) and return None.
        """
        cart = self._my_building_cart(session, user)
        if not payload.items:
            if cart is not None:
                self._save(session, cart, user, utcnow(), target=CartStatus.CANCELLED)
                logger.info("Building cart %s of user %s discarded", cart.id, user.id)
            return None

        if cart is None:
            return self.create_cart(
                session,
                user,
                CartCreate(items=payload.items, notes=payload.notes),
                Actor.OWNER,
            )

        lines = self._normalize_lines(payload.items, drop_zero=True)
        previous = {it.product_id: it for it in self.cart_repo.list_items(session, cart.id)}
        items = self._build_items(session, lines, previous)
        changes = {"notes": payload.notes} if payload.notes is not None else {}
        return self._save(session, cart, user, utcnow(), items=items, changes=changes)

    def add_item(self, session: Session, user: User, payload: CartItemAdd) -> CartRead:
        """
        Add a product to the owner's building cart (or increase its quantity).
        A building cart is created when none exists.
        """
        if payload.quantity < 1:
            raise ValidationError("Quantity must be at least 1", quantity=payload.quantity)

        line = CartItemInput(product_id=payload.product_id, quantity=payload.quantity)
        cart = self._my_building_cart(session, user)
        if cart is None:
            return self.create_cart(session, user, CartCreate(items=[line]), Actor.OWNER)

        items = _copy_items(self.cart_repo.list_items(session, cart.id))
        existing = next((it for it in items if it.product_id == payload.product_id), None)
        if existing is not None:
            existing.quantity += payload.quantity
        else:
            items.extend(self._build_items(session, [line]))
        return self._save(session, cart, user, utcnow(), items=items)

    def set_item_quantity(
        self,
        session: Session,
        user: User,
        product_id: uuid.UUID,
        payload: CartItemQuantity,
    ) -> CartRead:
        """
        Set the quantity of a line in the owner's building cart.
        Quantity 0 removes the line.
        """
        if payload.quantity < 0:
            raise ValidationError("Quantity cannot be negative", quantity=payload.quantity)

        cart = self._my_building_cart(session, user)
        if cart is None:
            raise NotFound("No cart in progress")

        items = _copy_items(self.cart_repo.list_items(session, cart.id))
        item = next((it for it in items if it.product_id == product_id), None)
        if item is None:
            raise NotFound("Item not in cart", product_id=str(product_id))

        if payload.quantity == 0:
            items.remove(item)
        else:
            item.quantity = payload.quantity
        return self._save(session, cart, user, utcnow(), items=items)

    def remove_item(self, session: Session, user: User, product_id: uuid.UUID) -> CartRead:
        return self.set_item_quantity(session, user, product_id, CartItemQuantity(quantity=0))

    # ---- Reads ----

    def get_cart(
        self,
        session: Session,
        cart_id: uuid.UUID,
        viewer: User,
        show_prices: bool = True,
    ) -> CartRead:
        cart = self._get_cart(session, cart_id)
        self._ensure_access(cart, viewer)
        return self.to_read(session, cart, show_prices=show_prices)

    def get_active_cart(self, session: Session, user_id: uuid.UUID) -> ActiveCartCheck:
        """
        Singularity guard lookup used before creating a cart for a user.
        """
        self._get_user(session, user_id)
        cart = self.cart_repo.get_active_for_user(session, user_id)
        if cart is None:
            return ActiveCartCheck(has_active_cart=False, cart=None)
        return ActiveCartCheck(has_active_cart=True, cart=self.to_read(session, cart))

    def list_my_orders(self, session: Session, user: User, show_prices: bool = True) -> list[CartRead]:
        carts = self.cart_repo.list_for_user(session, user.id)
        return self._reads(session, carts, show_prices)

    def list_user_carts(self, session: Session, user_id: uuid.UUID) -> list[CartRead]:
        self._get_user(session, user_id)
        return self._reads(session, self.cart_repo.list_for_user(session, user_id))

    def list_company_carts(self, session: Session, company_id: uuid.UUID) -> list[CartRead]:
        if not self.user_repo.get_company(session, company_id):
            raise NotFound("Company not found", company_id=str(company_id))
        user_ids = self.user_repo.ids_for_company(session, company_id)
        return self._reads(session, self.cart_repo.list_for_users(session, user_ids))

    def list_carts(
        self,
        session: Session,
        status_filter: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
        sort_order: str = "desc",
    ) -> CartList:
        """
        Admin listing, filtered by status and by a search term matched
        against owner name/email and notes.
        """
        page = max(page, 1)
        limit = max(min(limit, 100), 1)
        status_value = parse_status(status_filter).value if status_filter else None
        user_ids = self.user_repo.search_ids(session, search) if search else None

        carts = self.cart_repo.list_all(
            session,
            status=status_value,
            search=search,
            user_ids=user_ids,
            skip=(page - 1) * limit,
            limit=limit,
            newest_first=sort_order != "asc",
        )
        total = self.cart_repo.count_all(session, status=status_value, search=search, user_ids=user_ids)
        return CartList(
            carts=self._reads(session, carts),
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit),
            ),
        )

    def count_pending(self, session: Session) -> PendingCount:
        """Carts waiting for an administrator (submitted)."""
        return PendingCount(
            count=self.cart_repo.count_all(session, status=CartStatus.SUBMITTED.value)
        )

    # ---- Admin hard delete (outside the state machine) ----

    def delete_cart(self, session: Session, cart_id: uuid.UUID) -> None:
        cart = self._get_cart(session, cart_id)
        self.cart_repo.delete(session, cart)
        session.commit()
        logger.info("Cart %s deleted", cart_id)
