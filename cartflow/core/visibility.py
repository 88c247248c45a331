# cartflow/core/visibility.py
from cartflow.core.config import PriceVisibility
from cartflow.models.user import User


def prices_visible(policy: PriceVisibility, viewer: User | None) -> bool:
    """
    Presentation rule for price display.

      - all      => everyone, guests included
      - loggedIn => any authenticated user
      - hidden   => administrators only

    Settlement always computes full totals; this only decides what a
    response shows.
    """
    if viewer is not None and viewer.is_admin:
        return True
    if policy == "all":
        return True
    if policy == "loggedIn":
        return viewer is not None
    return False
