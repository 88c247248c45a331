# cartflow/routers/cart.py
import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from cartflow.core.auth import require_admin, require_auth
from cartflow.core.config import get_settings
from cartflow.core.errors import NotFound
from cartflow.core.visibility import prices_visible
from cartflow.database import get_session
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
    CartItemQuantity,
    CartList,
    CartRead,
    CartStatusUpdate,
    CartSync,
    CartUpdate,
    PendingCount,
)
from cartflow.services.cart_service import CartService, actor_for, mask_prices
from cartflow.services.status_machine import Actor

router = APIRouter(prefix="/carts", tags=["Carts"])

settings = get_settings()

cart_repo = CartRepository()
product_repo = ProductRepository()
promotion_repo = PromotionRepository()
usage_repo = UsageRepository()
user_repo = UserRepository()
service = CartService(cart_repo, product_repo, promotion_repo, usage_repo, user_repo)


def _present(read: CartRead | None, viewer: User) -> CartRead | None:
    if read is None or prices_visible(settings.PRICE_VISIBILITY, viewer):
        return read
    return mask_prices(read)


# -------- Owner endpoints --------


@router.post(
    "",
    response_model=CartRead,
    status_code=status.HTTP_201_CREATED,
)
def create_my_cart(
    payload: CartCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Create (or check out with `submit=true`) the current user's cart.

    An existing building cart is reused; a submitted one answers
    409 conflict_active_cart with its summary.
    """
    read = service.create_cart(session, current_user, payload, actor_for(current_user))
    return _present(read, current_user)


@router.get("/my", response_model=CartRead | None)
def get_my_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    The current user's cart in progress (status 'building'), or null.
    """
    show = prices_visible(settings.PRICE_VISIBILITY, current_user)
    return service.get_my_cart(session, current_user, show_prices=show)


@router.put("/my", response_model=CartRead | None)
def sync_my_cart(
    payload: CartSync,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Save the whole cart in progress. Empty items discard it and return null.
    """
    return _present(service.sync_my_cart(session, current_user, payload), current_user)


@router.post("/my/items", response_model=CartRead)
def add_my_item(
    payload: CartItemAdd,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Add a product to the cart in progress (quantities accumulate).
    """
    return _present(service.add_item(session, current_user, payload), current_user)


@router.patch("/my/items/{product_id}", response_model=CartRead)
def set_my_item_quantity(
    product_id: uuid.UUID,
    payload: CartItemQuantity,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Set a line quantity in the cart in progress; 0 removes the line.
    """
    read = service.set_item_quantity(session, current_user, product_id, payload)
    return _present(read, current_user)


@router.delete("/my/items/{product_id}", response_model=CartRead)
def remove_my_item(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return _present(service.remove_item(session, current_user, product_id), current_user)


@router.get("/my-orders", response_model=list[CartRead])
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Every cart of the current user, newest first.
    """
    show = prices_visible(settings.PRICE_VISIBILITY, current_user)
    return service.list_my_orders(session, current_user, show_prices=show)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=CartList,
    dependencies=[Depends(require_admin)],
)
def list_carts(
    session: Session = Depends(get_session),
    status_filter: str | None = Query(default=None, alias="status"),
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
    sort_order: Literal["asc", "desc"] = "desc",
):
    """
    Paginated list of all carts (admin only).

    Query params:
      - status: canonical or French status name
      - search: matched against owner name / email and cart notes
    """
    return service.list_carts(session, status_filter, search, page, limit, sort_order)


@router.get(
    "/count-pending",
    response_model=PendingCount,
    dependencies=[Depends(require_admin)],
)
def count_pending(session: Session = Depends(get_session)):
    """Number of submitted carts waiting for processing."""
    return service.count_pending(session)


@router.get(
    "/user/{user_id}",
    response_model=list[CartRead],
    dependencies=[Depends(require_admin)],
)
def list_user_carts(
    user_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.list_user_carts(session, user_id)


@router.get(
    "/user/{user_id}/active",
    response_model=ActiveCartCheck,
    dependencies=[Depends(require_admin)],
)
def get_user_active_cart(
    user_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Does the user already hold an active (building/submitted) cart?
    """
    return service.get_active_cart(session, user_id)


@router.post(
    "/user/{user_id}",
    response_model=CartRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_cart_for_user(
    user_id: uuid.UUID,
    payload: CartCreate,
    session: Session = Depends(get_session),
):
    """
    Create a cart on behalf of a user (admin only).

    When the user has an active cart the request fails with
    409 conflict_active_cart unless `replace_active=true`, which cancels
    the old cart in the same transaction.
    """
    owner = user_repo.get_by_id(session, user_id)
    if not owner:
        raise NotFound("User not found", user_id=str(user_id))
    return service.create_cart(session, owner, payload, Actor.ADMIN)


@router.get(
    "/company/{company_id}",
    response_model=list[CartRead],
    dependencies=[Depends(require_admin)],
)
def list_company_carts(
    company_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.list_company_carts(session, company_id)


# -------- Shared (owner or admin) --------


@router.get("/{cart_id}", response_model=CartRead)
def get_cart(
    cart_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    One cart with its live settlement. Owners see only their own carts.
    """
    show = prices_visible(settings.PRICE_VISIBILITY, current_user)
    return service.get_cart(session, cart_id, current_user, show_prices=show)


@router.put("/{cart_id}", response_model=CartRead)
def update_cart(
    cart_id: uuid.UUID,
    payload: CartUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Replace items and/or notes.

      - owner: only while the cart is building
      - admin: any non-terminal cart
    """
    return _present(service.update_cart(session, cart_id, payload, current_user), current_user)


@router.put("/{cart_id}/status", response_model=CartRead)
def change_cart_status(
    cart_id: uuid.UUID,
    payload: CartStatusUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Move a cart through its lifecycle.

      building  -> submitted, cancelled   (owner or admin)

      submitted -> processed, cancelled   (admin)

      processed -> finished, cancelled    (admin)

      cancelled, finished -> (no change)

    """
    read = service.change_status(session, cart_id, payload, current_user)
    return _present(read, current_user)


@router.delete(
    "/{cart_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_cart(
    cart_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Hard-delete a cart and its lines (admin only).
    """
    service.delete_cart(session, cart_id)
