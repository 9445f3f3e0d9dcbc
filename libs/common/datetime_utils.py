"""Datetime utilities for timezone-aware timestamps and club-local dates.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime.

    Always use this for timestamps in the database.
    """
    return datetime.now(timezone.utc)


def local_today(tz_name: str) -> date:
    """Return the current calendar day in the given IANA timezone.

    Booking windows are computed on the club's calendar, not on UTC, so a
    booking made at 22:00 local time still counts as "today".
    """
    return datetime.now(ZoneInfo(tz_name)).date()
