# cartflow/services/status_machine.py
"""
Cart lifecycle.

    building  -> submitted   owner (checkout) or admin
    building  -> cancelled   owner or admin (discard)
    submitted -> processed   admin
    submitted -> cancelled   admin
    processed -> finished    admin
    processed -> cancelled   admin

cancelled and finished are terminal. Nothing moves back to building.
"""
from enum import Enum

from cartflow.core.errors import InvalidTransition, ValidationError


class CartStatus(str, Enum):
    BUILDING = "building"
    SUBMITTED = "submitted"
    PROCESSED = "processed"
    CANCELLED = "cancelled"
    FINISHED = "finished"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return _ALIASES.get(value.strip().lower())
        return None

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


class Actor(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"


_LABELS = {
    CartStatus.BUILDING: "en_cours",
    CartStatus.SUBMITTED: "demande",
    CartStatus.PROCESSED: "traité",
    CartStatus.CANCELLED: "annulé",
    CartStatus.FINISHED: "fini",
}

_ALIASES = {
    "en_cours": CartStatus.BUILDING,
    "demande": CartStatus.SUBMITTED,
    "traité": CartStatus.PROCESSED,
    "traite": CartStatus.PROCESSED,
    "annulé": CartStatus.CANCELLED,
    "annule": CartStatus.CANCELLED,
    "fini": CartStatus.FINISHED,
    "building": CartStatus.BUILDING,
    "submitted": CartStatus.SUBMITTED,
    "processed": CartStatus.PROCESSED,
    "cancelled": CartStatus.CANCELLED,
    "canceled": CartStatus.CANCELLED,
    "finished": CartStatus.FINISHED,
}

TERMINAL_STATUSES = frozenset({CartStatus.CANCELLED, CartStatus.FINISHED})
LIVE_STATUSES = frozenset({CartStatus.BUILDING, CartStatus.SUBMITTED, CartStatus.PROCESSED})
# At most one cart per user in these (see the partial unique index on carts)
ACTIVE_STATUSES = frozenset({CartStatus.BUILDING, CartStatus.SUBMITTED})

_BOTH = frozenset({Actor.OWNER, Actor.ADMIN})
_ADMIN = frozenset({Actor.ADMIN})

TRANSITIONS: dict[tuple[CartStatus, CartStatus], frozenset[Actor]] = {
    (CartStatus.BUILDING, CartStatus.SUBMITTED): _BOTH,
    (CartStatus.BUILDING, CartStatus.CANCELLED): _BOTH,
    (CartStatus.SUBMITTED, CartStatus.PROCESSED): _ADMIN,
    (CartStatus.SUBMITTED, CartStatus.CANCELLED): _ADMIN,
    (CartStatus.PROCESSED, CartStatus.FINISHED): _ADMIN,
    (CartStatus.PROCESSED, CartStatus.CANCELLED): _ADMIN,
}


def parse_status(value: str | CartStatus) -> CartStatus:
    """Canonical status from a canonical name or a French label."""
    try:
        return CartStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown status: {value!r}", field="status")


def allowed_targets(current: CartStatus, actor: Actor) -> list[CartStatus]:
    return [
        target
        for (source, target), actors in TRANSITIONS.items()
        if source == current and actor in actors
    ]


def check_transition(current: CartStatus, target: CartStatus, actor: Actor) -> bool:
    """
    Validate a status change.

    Returns False for a same-state request on a live cart (nothing to do),
    True when the move must be applied. Raises InvalidTransition otherwise.
    """
    if current.is_terminal:
        raise InvalidTransition(
            f"Cart is {current.value}; no further status change is allowed",
            current=current.value,
            target=target.value,
        )

    if current == target:
        return False

    actors = TRANSITIONS.get((current, target))
    if actors is None:
        raise InvalidTransition(
            f"Invalid status transition: {current.value} -> {target.value}",
            current=current.value,
            target=target.value,
            allowed=[s.value for s in allowed_targets(current, actor)],
        )
    if actor not in actors:
        raise InvalidTransition(
            f"{current.value} -> {target.value} requires an administrator",
            current=current.value,
            target=target.value,
            actor=actor.value,
        )
    return True


def can_edit_items(current: CartStatus, actor: Actor) -> bool:
    """Owners edit only while building; admins edit any live cart."""
    if actor == Actor.ADMIN:
        return current in LIVE_STATUSES
    return current == CartStatus.BUILDING


def ensure_editable(current: CartStatus, actor: Actor) -> None:
    if not can_edit_items(current, actor):
        raise InvalidTransition(
            f"Cart is {current.value} and can no longer be modified",
            current=current.value,
            actor=actor.value,
        )
