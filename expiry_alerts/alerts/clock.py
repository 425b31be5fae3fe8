"""Day-offset arithmetic shared by every expiry job.

All jobs classify records through the same functions so that a document
counted as "7 days left" by the email job is also "7 days left" for the
in-app job, and "today" is computed once per run.
"""

import math
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

from expiry_alerts.domain.models import AlertStatus
from expiry_alerts.utils.timestamps import ensure_utc, utc_now

DateLike = Union[date, datetime]

SECONDS_PER_DAY = 86400


def to_business_date(value: DateLike, tz: tzinfo = timezone.utc) -> date:
    """Truncate a date or instant to the calendar day it falls on in ``tz``.

    Naive datetimes are interpreted as UTC. Plain dates are already calendar
    days and pass through unchanged.
    """
    if isinstance(value, datetime):
        return ensure_utc(value).astimezone(tz).date()
    return value


def days_remaining(
    reference_date: DateLike, expiry_date: DateLike, tz: tzinfo = timezone.utc
) -> int:
    """Signed whole days from ``reference_date`` to ``expiry_date``.

    Both sides are truncated to midnight in ``tz`` before subtracting, so the
    result does not depend on the time of day the job runs. Negative means
    the record has already expired.

    Example:
        >>> days_remaining(date(2025, 1, 1), date(2025, 1, 8))
        7
        >>> days_remaining(date(2025, 1, 8), date(2025, 1, 5))
        -3
    """
    start = datetime.combine(to_business_date(reference_date, tz), time.min)
    end = datetime.combine(to_business_date(expiry_date, tz), time.min)
    return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


def classify(days: int) -> AlertStatus:
    """``expired`` iff the offset is negative."""
    return AlertStatus.EXPIRED if days < 0 else AlertStatus.EXPIRING


class BusinessClock:
    """Captures "now" once and answers calendar questions in the business timezone."""

    def __init__(self, timezone_name: str = "UTC", now: Optional[datetime] = None):
        self.tz = ZoneInfo(timezone_name)
        self.timezone_name = timezone_name
        self.now = ensure_utc(now) if now is not None else utc_now()

    @property
    def today(self) -> date:
        return to_business_date(self.now, self.tz)

    def start_of_today(self) -> datetime:
        """Local midnight of today, expressed in UTC."""
        local_midnight = datetime.combine(self.today, time.min, tzinfo=self.tz)
        return local_midnight.astimezone(timezone.utc)

    def threshold(self, days: int) -> date:
        """Last calendar day covered by a window of ``days``."""
        return self.today + timedelta(days=days)

    def days_until(self, expiry_date: DateLike) -> int:
        return days_remaining(self.today, expiry_date, self.tz)

    def cutoff(self, days: int) -> datetime:
        """Instant ``days`` before now (UTC), used for retention."""
        return self.now - timedelta(days=days)

    def __repr__(self) -> str:
        return f"BusinessClock(timezone={self.timezone_name!r}, today={self.today.isoformat()})"
