from datetime import datetime
from zoneinfo import ZoneInfo

from ..config import get_settings
from ..domain.errors import InvalidInputError
from ..domain.intervals import Interval
from ..domain.repositories import ReservationRepository
from ..domain.services import OccupancyReport, summarize_occupancy
from ..domain.status import BLOCKING_STATUSES
from ..utils.time import schedule_zone


async def location_occupancy(
    res_repo: ReservationRepository,
    *,
    location: str,
    range_start: datetime,
    range_end: datetime,
    working_hours_per_day: int | None = None,
    zone: ZoneInfo | None = None,
) -> OccupancyReport:
    if not location or not location.strip():
        raise InvalidInputError("location is required")
    if range_end <= range_start:
        raise InvalidInputError("end date must be after start date")

    report_range = Interval(range_start, range_end)
    rows = await res_repo.find_overlapping(location, range_start, range_end, BLOCKING_STATUSES)
    return summarize_occupancy(
        rows,
        report_range,
        working_hours_per_day=working_hours_per_day or get_settings().working_hours_per_day,
        zone=zone or schedule_zone(),
    )
