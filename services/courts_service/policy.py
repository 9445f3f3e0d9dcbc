"""
Booking policy rules.

Pure functions with no database dependencies for easy testing. Callers pass
the current calendar day and the live booking config explicitly.
"""

import re
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from services.courts_service.errors import PastDate, TooFarAhead, WeakPassword
from services.courts_service.models.enums import MembershipTier

# Fixed daily slots of 60 minutes, 08:00 to 21:00 (last slot ends at 22:00).
SLOT_TIMES: tuple[str, ...] = tuple(f"{hour:02d}:00" for hour in range(8, 22))

DEFAULT_WINDOW_DAYS = 7
REFUND_RATIO = Decimal("0.5")
MIN_PASSWORD_LENGTH = 6

_UPPER = re.compile(r"[A-Z]")
_SYMBOL = re.compile(r"[^A-Za-z0-9]")


def is_valid_slot(slot: str) -> bool:
    return slot in SLOT_TIMES


def check_advance_window(
    target: date, today: date, window_days: int = DEFAULT_WINDOW_DAYS
) -> None:
    """
    Raise unless ``target`` is bookable relative to ``today``.

    The window is inclusive on both ends: today and the ``window_days``-th
    day ahead are bookable (eight days with the default of seven).
    """
    if target < today:
        raise PastDate()
    if target > today + timedelta(days=window_days):
        raise TooFarAhead(
            f"Reservations can be made at most {window_days} days in advance"
        )


def price_for_tier(tier: MembershipTier, *, price_member: int, price_non_member: int) -> int:
    if tier == MembershipTier.MEMBER:
        return price_member
    return price_non_member


def password_meets_policy(password: str) -> bool:
    return (
        len(password) >= MIN_PASSWORD_LENGTH
        and _UPPER.search(password) is not None
        and _SYMBOL.search(password) is not None
    )


def check_password_policy(password: str) -> None:
    if not password_meets_policy(password):
        raise WeakPassword()


def refund_amount(amount: int) -> int:
    """Half of ``amount`` rounded half-up to the nearest currency unit."""
    return int(
        (Decimal(amount) * REFUND_RATIO).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
