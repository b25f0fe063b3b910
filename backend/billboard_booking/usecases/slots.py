from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from ..domain.errors import InvalidInputError
from ..domain.intervals import Interval
from ..domain.repositories import ReservationRepository
from ..domain.services import partition_free_slots
from ..domain.status import BLOCKING_STATUSES
from ..utils.time import local_day_bounds, schedule_zone


async def available_slots(
    res_repo: ReservationRepository,
    *,
    location: str,
    day: date,
    slot_minutes: int = 60,
    zone: ZoneInfo | None = None,
) -> list[Interval]:
    """
    Free fixed-length slots for `location` on the local calendar `day`.
    Returned intervals are UTC-naive.
    """
    if not location or not location.strip():
        raise InvalidInputError("location is required")
    if slot_minutes <= 0:
        raise InvalidInputError("slot duration must be a positive number of minutes")

    zone = zone or schedule_zone()
    if isinstance(day, datetime):
        day = (day.astimezone(zone) if day.tzinfo else day).date()
    day_start, day_end = local_day_bounds(day, zone)

    rows = await res_repo.find_overlapping(location, day_start, day_end, BLOCKING_STATUSES)
    busy = [r.interval for r in rows]
    return partition_free_slots(Interval(day_start, day_end), busy, timedelta(minutes=slot_minutes))
