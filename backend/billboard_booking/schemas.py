from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, model_validator

from .domain.intervals import Interval
from .domain.services import OccupancyReport
from .domain.status import ReservationStatus, TransitionResult
from .models import Location, Reservation
from .utils.time import schedule_zone, utc_naive_to_local


class ReservationCreate(BaseModel):
    advertiser_name: str = Field(min_length=2, max_length=200)
    customer_name: str = Field(min_length=2, max_length=200)
    location: str = Field(min_length=2, max_length=200)
    starts_at: datetime
    ends_at: datetime
    status: Optional[ReservationStatus] = None

    @model_validator(mode="after")
    def _check_order(self) -> "ReservationCreate":
        if self.ends_at <= self.starts_at:
            raise ValueError("end time must be after start time")
        return self


class ReservationUpdate(BaseModel):
    advertiser_name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    customer_name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    location: Optional[str] = Field(default=None, min_length=2, max_length=200)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    status: Optional[ReservationStatus] = None


class ReservationRead(BaseModel):
    reservation_id: int
    location: str
    owner_id: int
    advertiser_name: str
    customer_name: str
    starts_at: datetime
    ends_at: datetime
    status: ReservationStatus
    updated_at: datetime

    @field_serializer("starts_at", "ends_at", "updated_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(schedule_zone()).isoformat()

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            location=reservation.location_name,
            owner_id=reservation.owner_id,
            advertiser_name=reservation.advertiser_name,
            customer_name=reservation.customer_name,
            starts_at=utc_naive_to_local(reservation.starts_at),
            ends_at=utc_naive_to_local(reservation.ends_at),
            status=reservation.status,
            updated_at=utc_naive_to_local(reservation.updated_at),
        )


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ReservationPage(BaseModel):
    reservations: list[ReservationRead]
    pagination: Pagination


class CalendarRead(BaseModel):
    month: int
    year: int
    reservations: list[ReservationRead]


class StatusTransitionRequest(BaseModel):
    status: ReservationStatus


class TransitionRead(BaseModel):
    reservation_id: int
    old_status: ReservationStatus
    new_status: ReservationStatus
    transitioned_at: datetime

    @field_serializer("transitioned_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(schedule_zone()).isoformat()

    @classmethod
    def from_result(cls, result: TransitionResult) -> "TransitionRead":
        return cls(
            reservation_id=result.reservation_id,
            old_status=result.old_status,
            new_status=result.new_status,
            transitioned_at=utc_naive_to_local(result.transitioned_at),
        )


class AutoAdvanceRead(BaseModel):
    activated_count: int
    ending_soon_count: int


class ConflictCheckRequest(BaseModel):
    location: str = Field(min_length=2, max_length=200)
    starts_at: datetime
    ends_at: datetime
    exclude_reservation_id: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_order(self) -> "ConflictCheckRequest":
        if self.ends_at <= self.starts_at:
            raise ValueError("end time must be after start time")
        return self


class ConflictCheckRead(BaseModel):
    has_conflicts: bool
    conflict_count: int
    conflicts: list[ReservationRead]


class SlotRead(BaseModel):
    start: datetime
    end: datetime

    @field_serializer("start", "end")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(schedule_zone()).isoformat()

    @classmethod
    def from_interval(cls, interval: Interval) -> "SlotRead":
        return cls(start=utc_naive_to_local(interval.start), end=utc_naive_to_local(interval.end))


class AvailableSlotsRead(BaseModel):
    location: str
    day: date
    slot_duration: int
    available_slots: list[SlotRead]


class PeakDayRead(BaseModel):
    day: date
    count: int


class OccupancyRead(BaseModel):
    location: str
    range_start: datetime
    range_end: datetime
    total_reservations: int
    average_occupancy_rate: float
    peak_days: list[PeakDayRead]

    @field_serializer("range_start", "range_end")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(schedule_zone()).isoformat()

    @classmethod
    def from_report(
        cls,
        *,
        location: str,
        range_start: datetime,
        range_end: datetime,
        report: OccupancyReport,
    ) -> "OccupancyRead":
        return cls(
            location=location,
            range_start=utc_naive_to_local(range_start),
            range_end=utc_naive_to_local(range_end),
            total_reservations=report.total_reservations,
            average_occupancy_rate=report.average_occupancy_rate,
            peak_days=[PeakDayRead(day=p.date, count=p.count) for p in report.peak_days],
        )


class TransitionTableRead(BaseModel):
    transitions: dict[ReservationStatus, list[ReservationStatus]]


class LocationCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    active: bool = True


class LocationUpdate(BaseModel):
    active: bool


class LocationRead(BaseModel):
    name: str
    active: bool
    updated_at: datetime

    @field_serializer("updated_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(schedule_zone()).isoformat()

    @classmethod
    def from_db(cls, *, location: Location) -> "LocationRead":
        return cls(name=location.name, active=location.active, updated_at=utc_naive_to_local(location.updated_at))
