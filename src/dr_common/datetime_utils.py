"""Datetime utilities: UTC now and billing-day arithmetic in a local zone."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

MINUTES_PER_DAY = 1440


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def local_now(tz_name: str) -> datetime:
    return datetime.now(ZoneInfo(tz_name))


def local_today(tz_name: str) -> date:
    return local_now(tz_name).date()


def minutes_remaining_in_day(moment: datetime) -> int:
    """Whole minutes from `moment` until the next local midnight.

    18:00:00 -> 360, 23:59:30 -> 0, 00:00:00 -> 1440. Seconds are truncated
    so a resource is never billed for a minute it did not start.
    """
    midnight = datetime.combine(
        moment.date() + timedelta(days=1), datetime.min.time(), tzinfo=moment.tzinfo
    )
    return int((midnight - moment).total_seconds() // 60)
