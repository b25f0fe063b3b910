from datetime import date, datetime
from zoneinfo import ZoneInfo

from ..domain.errors import ForbiddenError, InvalidInputError, InvalidTransitionError, NotFoundError
from ..domain.intervals import Interval
from ..domain.repositories import LocationRepository, ReservationRepository
from ..domain.status import ReservationStatus, is_blocking, is_valid_transition
from ..models import Reservation
from ..utils.time import local_day_bounds, schedule_zone, utc_now_naive
from .conflicts import validate_no_conflicts

MAX_PAGE_SIZE = 500


async def _lock_location(loc_repo: LocationRepository, name: str) -> None:
    # Holding the location row lock makes check-then-write atomic per location.
    location = await loc_repo.lock_by_name(name)
    if location is None:
        raise NotFoundError("location not found")
    if not location.active:
        raise InvalidInputError(f"location {name!r} is not accepting reservations")


async def create_reservation(
    loc_repo: LocationRepository,
    res_repo: ReservationRepository,
    *,
    owner_id: int,
    location: str,
    advertiser_name: str,
    customer_name: str,
    starts_at: datetime,
    ends_at: datetime,
    status: ReservationStatus | None = None,
) -> Reservation:
    candidate = Interval(starts_at, ends_at)
    status = status or ReservationStatus.WAITING

    await _lock_location(loc_repo, location)
    if is_blocking(status):
        await validate_no_conflicts(res_repo, location=location, candidate=candidate)

    return await res_repo.create(
        location_name=location,
        owner_id=owner_id,
        advertiser_name=advertiser_name,
        customer_name=customer_name,
        starts_at=candidate.start,
        ends_at=candidate.end,
        status=status,
    )


async def get_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    caller_owner_id: int | None = None,
) -> Reservation:
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        raise NotFoundError("reservation not found")
    if caller_owner_id is not None and reservation.owner_id != caller_owner_id:
        raise ForbiddenError("you do not have permission to access this reservation")
    return reservation


async def update_reservation(
    loc_repo: LocationRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    caller_owner_id: int,
    advertiser_name: str | None = None,
    customer_name: str | None = None,
    location: str | None = None,
    starts_at: datetime | None = None,
    ends_at: datetime | None = None,
    status: ReservationStatus | None = None,
) -> tuple[Reservation, ReservationStatus]:
    """Returns the updated reservation and the status it had before the update."""
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise NotFoundError("reservation not found")
    if reservation.owner_id != caller_owner_id:
        raise ForbiddenError("you do not have permission to access this reservation")

    candidate = Interval(starts_at or reservation.starts_at, ends_at or reservation.ends_at)
    target_location = location or reservation.location_name

    previous_status = reservation.status
    new_status = reservation.status
    if status is not None and status != reservation.status:
        if not is_valid_transition(reservation.status, status):
            raise InvalidTransitionError(reservation.status, status)
        new_status = status

    moved = candidate != reservation.interval or target_location != reservation.location_name
    if moved:
        await _lock_location(loc_repo, target_location)
        if is_blocking(new_status):
            await validate_no_conflicts(
                res_repo,
                location=target_location,
                candidate=candidate,
                exclude_id=reservation.id,
            )

    if advertiser_name is not None:
        reservation.advertiser_name = advertiser_name
    if customer_name is not None:
        reservation.customer_name = customer_name
    reservation.location_name = target_location
    reservation.starts_at = candidate.start
    reservation.ends_at = candidate.end
    reservation.status = new_status
    reservation.updated_at = utc_now_naive()
    return await res_repo.save(reservation), previous_status


async def delete_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    caller_owner_id: int,
) -> Reservation:
    """Delete regardless of status once ownership is confirmed; returns the removed row."""
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise NotFoundError("reservation not found")
    if reservation.owner_id != caller_owner_id:
        raise ForbiddenError("you do not have permission to access this reservation")
    await res_repo.delete(reservation)
    return reservation


async def list_reservations(
    res_repo: ReservationRepository,
    *,
    owner_id: int | None = None,
    status: ReservationStatus | None = None,
    location: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Reservation], int]:
    if page < 1:
        raise InvalidInputError("page must be a positive integer")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidInputError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    return await res_repo.list(
        owner_id=owner_id,
        status=status,
        location=location,
        search=search.strip() if search else None,
        offset=(page - 1) * limit,
        limit=limit,
    )


async def calendar_reservations(
    res_repo: ReservationRepository,
    *,
    month: int,
    year: int,
    owner_id: int | None = None,
    zone: ZoneInfo | None = None,
) -> list[Reservation]:
    if not 1 <= month <= 12:
        raise InvalidInputError("invalid month, must be between 1 and 12")
    if not 2000 <= year <= 2100:
        raise InvalidInputError("invalid year")

    zone = zone or schedule_zone()
    first_day = date(year, month, 1)
    next_month = date(year + month // 12, month % 12 + 1, 1)
    start, _ = local_day_bounds(first_day, zone)
    end, _ = local_day_bounds(next_month, zone)
    rows = await res_repo.list_in_window(start, end, owner_id=owner_id)
    return sorted(rows, key=lambda r: r.starts_at)
