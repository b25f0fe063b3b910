import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta, timezone, tzinfo
from typing import Iterable, Sequence

from ..models import Reservation
from .errors import InvalidInputError
from .intervals import Interval, overlaps
from .status import is_blocking

PEAK_DAYS_LIMIT = 5


@dataclass(frozen=True)
class PeakDay:
    date: date
    count: int


@dataclass(frozen=True)
class OccupancyReport:
    total_reservations: int
    average_occupancy_rate: float
    peak_days: list[PeakDay] = field(default_factory=list)


def filter_conflicts(
    candidate: Interval,
    reservations: Iterable[Reservation],
    *,
    exclude_id: int | None = None,
) -> list[Reservation]:
    """
    Pure conflict filter: keeps blocking reservations overlapping `candidate`.
    Repositories pre-filter in SQL; this is the authoritative check.
    """
    return [
        r
        for r in reservations
        if r.id != exclude_id and is_blocking(r.status) and overlaps(candidate, r.interval)
    ]


def partition_free_slots(window: Interval, busy: Sequence[Interval], slot_length: timedelta) -> list[Interval]:
    """
    Walk `window` left to right and emit whole `slot_length` slots in every gap
    between `busy` intervals. Slots may touch busy boundaries; a trailing
    remainder shorter than `slot_length` is dropped.
    """
    if slot_length <= timedelta(0):
        raise InvalidInputError("slot duration must be positive")

    slots: list[Interval] = []
    cursor = window.start

    def fill_until(limit):
        nonlocal cursor
        while cursor + slot_length <= limit:
            slots.append(Interval(cursor, cursor + slot_length))
            cursor += slot_length

    for interval in sorted(busy):
        fill_until(min(interval.start, window.end))
        if interval.end > cursor:
            cursor = interval.end
    fill_until(window.end)
    return slots


def summarize_occupancy(
    reservations: Sequence[Reservation],
    report_range: Interval,
    *,
    working_hours_per_day: int,
    zone: tzinfo = timezone.utc,
) -> OccupancyReport:
    """
    Booked hours use each reservation's full duration, not the part inside
    `report_range`. Peak days are keyed by the local date of the start time.
    """
    blocking = [r for r in reservations if is_blocking(r.status) and overlaps(report_range, r.interval)]

    per_day = Counter(r.starts_at.replace(tzinfo=timezone.utc).astimezone(zone).date() for r in blocking)
    ranked = sorted(per_day.items(), key=lambda item: (-item[1], item[0]))
    peak_days = [PeakDay(date=day, count=count) for day, count in ranked[:PEAK_DAYS_LIMIT]]

    days_in_range = math.ceil(report_range.duration / timedelta(days=1))
    available_hours = days_in_range * working_hours_per_day
    booked_hours = sum(r.interval.duration / timedelta(hours=1) for r in blocking)
    rate = min(booked_hours / available_hours * 100, 100.0) if available_hours > 0 else 0.0

    return OccupancyReport(
        total_reservations=len(blocking),
        average_occupancy_rate=round(rate, 2),
        peak_days=peak_days,
    )
