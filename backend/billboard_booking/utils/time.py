from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from ..config import get_settings


def schedule_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().schedule_timezone)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_local(dt: datetime, zone: ZoneInfo | None = None) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(zone or schedule_zone())


def local_day_bounds(day: date, zone: ZoneInfo | None = None) -> tuple[datetime, datetime]:
    """UTC-naive ``[start, end)`` of a local calendar day (23 or 25 hours across DST changes)."""
    zone = zone or schedule_zone()
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return to_utc_naive(start), to_utc_naive(end)
