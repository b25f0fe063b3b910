import logging
from datetime import datetime, timedelta

from ..config import get_settings
from ..domain.errors import AlreadyCompletedError, ForbiddenError, InvalidTransitionError, NotFoundError
from ..domain.repositories import ReservationRepository
from ..domain.status import (
    AutoAdvanceResult,
    ReservationStatus,
    TransitionResult,
    is_valid_transition,
)
from ..models import Reservation
from ..utils.time import utc_now_naive

logger = logging.getLogger(__name__)

# The only edges reachable by the clock alone. ENDING_SOON -> COMPLETED needs an explicit completion.
ACTIVATE = (ReservationStatus.WAITING, ReservationStatus.ACTIVE)
MARK_ENDING_SOON = (ReservationStatus.ACTIVE, ReservationStatus.ENDING_SOON)


async def _load_owned_for_update(
    res_repo: ReservationRepository,
    reservation_id: int,
    caller_owner_id: int | None,
) -> Reservation:
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise NotFoundError("reservation not found")
    if caller_owner_id is not None and reservation.owner_id != caller_owner_id:
        raise ForbiddenError("you do not have permission to access this reservation")
    return reservation


async def _apply(
    res_repo: ReservationRepository,
    reservation: Reservation,
    target: ReservationStatus,
    now: datetime | None,
) -> TransitionResult:
    old_status = reservation.status
    reservation.status = target
    reservation.updated_at = now or utc_now_naive()
    updated = await res_repo.save(reservation)
    return TransitionResult(
        reservation_id=updated.id,
        location=updated.location_name,
        old_status=old_status,
        new_status=updated.status,
        transitioned_at=updated.updated_at,
    )


async def transition_status(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    target: ReservationStatus,
    caller_owner_id: int | None = None,
    now: datetime | None = None,
) -> TransitionResult:
    reservation = await _load_owned_for_update(res_repo, reservation_id, caller_owner_id)
    if not is_valid_transition(reservation.status, target):
        raise InvalidTransitionError(reservation.status, target)
    return await _apply(res_repo, reservation, target, now)


async def complete_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    caller_owner_id: int | None = None,
    now: datetime | None = None,
) -> TransitionResult:
    reservation = await _load_owned_for_update(res_repo, reservation_id, caller_owner_id)
    if reservation.status == ReservationStatus.COMPLETED:
        raise AlreadyCompletedError(reservation.id)
    if not is_valid_transition(reservation.status, ReservationStatus.COMPLETED):
        raise InvalidTransitionError(reservation.status, ReservationStatus.COMPLETED)
    return await _apply(res_repo, reservation, ReservationStatus.COMPLETED, now)


async def run_auto_advance(
    res_repo: ReservationRepository,
    *,
    now: datetime | None = None,
    ending_soon_window: timedelta | None = None,
) -> AutoAdvanceResult:
    """
    Time-driven sweep, WAITING -> ACTIVE first, then ACTIVE -> ENDING_SOON.
    Both updates are guarded by the source status, so re-running with the
    same `now` changes nothing.
    """
    for edge in (ACTIVATE, MARK_ENDING_SOON):
        if not is_valid_transition(*edge):
            raise InvalidTransitionError(*edge)

    now = now or utc_now_naive()
    window = ending_soon_window or timedelta(hours=get_settings().ending_soon_hours)

    activated = await res_repo.bulk_transition(
        from_status=ACTIVATE[0],
        to_status=ACTIVATE[1],
        updated_at=now,
        starts_at_or_before=now,
    )
    ending_soon = await res_repo.bulk_transition(
        from_status=MARK_ENDING_SOON[0],
        to_status=MARK_ENDING_SOON[1],
        updated_at=now,
        ends_after=now,
        ends_at_or_before=now + window,
    )
    if activated or ending_soon:
        logger.info("auto-advance at %s: %d activated, %d ending soon", now.isoformat(), activated, ending_soon)
    return AutoAdvanceResult(activated_count=activated, ending_soon_count=ending_soon)


async def status_summary(
    res_repo: ReservationRepository,
    *,
    owner_id: int | None = None,
) -> dict[ReservationStatus, int]:
    counts = await res_repo.count_by_status(owner_id)
    return {status: int(counts.get(status, 0)) for status in ReservationStatus}
