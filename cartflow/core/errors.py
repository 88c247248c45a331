# cartflow/core/errors.py
"""
Error taxonomy of the cart engine.

Every error is an HTTPException so routers need no translation layer, and
every `detail` is a dict carrying a stable `code` so callers can tell the
kinds apart without parsing messages.
"""
from typing import Any

from fastapi import HTTPException, status


class CartEngineError(HTTPException):
    """Base class; subclasses fix the status code and the error code."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "cart_engine_error"

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(
            status_code=type(self).status_code,
            detail={"code": self.code, "message": message, **extra},
        )

    def __str__(self) -> str:
        return self.message


class ValidationError(CartEngineError):
    """Bad input, rejected before any state mutation."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class NotFound(CartEngineError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InvalidTransition(CartEngineError):
    """A status change (or item edit) the state machine does not permit."""

    status_code = status.HTTP_409_CONFLICT
    code = "invalid_transition"


class ConflictActiveCart(CartEngineError):
    """
    Not a failure: the user already has an active cart and the caller must
    confirm replacement. `active_cart` carries the summary to show a human.
    """

    status_code = status.HTTP_409_CONFLICT
    code = "conflict_active_cart"

    def __init__(self, active_cart: dict[str, Any], message: str | None = None):
        self.active_cart = active_cart
        super().__init__(
            message or "User already has an active cart",
            active_cart=active_cart,
        )


class ConcurrencyConflict(CartEngineError):
    """Optimistic-lock failure. Reload and retry; never overwrite."""

    status_code = status.HTTP_409_CONFLICT
    code = "concurrency_conflict"
