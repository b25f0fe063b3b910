from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_session
from ..domain.errors import DomainError
from ..domain.intervals import Interval
from ..domain.status import TRANSITIONS, ReservationStatus
from ..infrastructure.repositories import SqlAlchemyReservationRepository
from ..schemas import (
    AutoAdvanceRead,
    AvailableSlotsRead,
    ConflictCheckRead,
    ConflictCheckRequest,
    OccupancyRead,
    ReservationRead,
    SlotRead,
    StatusTransitionRequest,
    TransitionRead,
    TransitionTableRead,
)
from ..usecases import conflicts as conflict_usecase
from ..usecases import occupancy as occupancy_usecase
from ..usecases import slots as slot_usecase
from ..usecases import status as status_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import to_utc_naive
from .errors import to_http_error

router = APIRouter(prefix="/status", tags=["status"], dependencies=[Depends(get_current_user_id)])


def _require_tz(*values: datetime) -> None:
    if any(v.tzinfo is None for v in values):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start/end must have timezone")


@router.patch("/reservations/{reservation_id}/status", response_model=TransitionRead)
async def transition_status(
    payload: StatusTransitionRequest,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> TransitionRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        async with session.begin():
            result = await status_usecase.transition_status(
                res_repo,
                reservation_id=reservation_id,
                target=payload.status,
                caller_owner_id=user_id,
            )
    except DomainError as exc:
        raise to_http_error(exc)

    emit_audit_log(
        action="reservation.status_changed",
        initiator="user",
        reservation_id=result.reservation_id,
        location=result.location,
        owner_id=user_id,
        status_from=result.old_status,
        status_to=result.new_status,
    )
    return TransitionRead.from_result(result)


@router.patch("/reservations/{reservation_id}/complete", response_model=TransitionRead)
async def complete_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> TransitionRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        async with session.begin():
            result = await status_usecase.complete_reservation(
                res_repo,
                reservation_id=reservation_id,
                caller_owner_id=user_id,
            )
    except DomainError as exc:
        raise to_http_error(exc)

    emit_audit_log(
        action="reservation.completed",
        initiator="user",
        reservation_id=result.reservation_id,
        location=result.location,
        owner_id=user_id,
        status_from=result.old_status,
        status_to=result.new_status,
    )
    return TransitionRead.from_result(result)


@router.get("/transitions", response_model=TransitionTableRead)
async def list_transitions() -> TransitionTableRead:
    return TransitionTableRead(
        transitions={source: sorted(targets) for source, targets in TRANSITIONS.items()},
    )


@router.get("/summary", response_model=dict[ReservationStatus, int])
async def status_summary(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> dict[ReservationStatus, int]:
    res_repo = SqlAlchemyReservationRepository(session)
    return await status_usecase.status_summary(res_repo, owner_id=user_id)


@router.post("/auto-update", response_model=AutoAdvanceRead)
async def auto_update(session: AsyncSession = Depends(get_session)) -> AutoAdvanceRead:
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        result = await status_usecase.run_auto_advance(res_repo)

    emit_audit_log(
        action="reservation.auto_advanced",
        initiator="system",
        reservation_id=None,
        location=None,
        owner_id=None,
        status_from=None,
        status_to=None,
        extra={"activated_count": result.activated_count, "ending_soon_count": result.ending_soon_count},
    )
    return AutoAdvanceRead(activated_count=result.activated_count, ending_soon_count=result.ending_soon_count)


@router.post("/conflicts/check", response_model=ConflictCheckRead)
async def check_conflicts(
    payload: ConflictCheckRequest,
    session: AsyncSession = Depends(get_session),
) -> ConflictCheckRead:
    _require_tz(payload.starts_at, payload.ends_at)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        conflicts = await conflict_usecase.find_conflicts(
            res_repo,
            location=payload.location.strip(),
            candidate=Interval(to_utc_naive(payload.starts_at), to_utc_naive(payload.ends_at)),
            exclude_id=payload.exclude_reservation_id,
        )
    except DomainError as exc:
        raise to_http_error(exc)
    return ConflictCheckRead(
        has_conflicts=bool(conflicts),
        conflict_count=len(conflicts),
        conflicts=[ReservationRead.from_db(reservation=r) for r in conflicts],
    )


@router.get("/slots/available", response_model=AvailableSlotsRead)
async def available_slots(
    location: str = Query(..., min_length=2, max_length=200),
    day: date = Query(..., alias="date", description="Calendar day in the schedule timezone"),
    slot_duration: int = Query(default=60, ge=15, le=480, description="Slot length in minutes"),
    session: AsyncSession = Depends(get_session),
) -> AvailableSlotsRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        slots = await slot_usecase.available_slots(
            res_repo,
            location=location.strip(),
            day=day,
            slot_minutes=slot_duration,
        )
    except DomainError as exc:
        raise to_http_error(exc)
    return AvailableSlotsRead(
        location=location,
        day=day,
        slot_duration=slot_duration,
        available_slots=[SlotRead.from_interval(s) for s in slots],
    )


@router.get("/locations/stats", response_model=OccupancyRead)
async def location_stats(
    location: str = Query(..., min_length=2, max_length=200),
    start_date: datetime = Query(..., description="Range start (ISO 8601 with timezone)"),
    end_date: datetime = Query(..., description="Range end (ISO 8601 with timezone)"),
    working_hours: Optional[int] = Query(default=None, ge=1, le=24),
    session: AsyncSession = Depends(get_session),
) -> OccupancyRead:
    _require_tz(start_date, end_date)
    range_start = to_utc_naive(start_date)
    range_end = to_utc_naive(end_date)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        report = await occupancy_usecase.location_occupancy(
            res_repo,
            location=location.strip(),
            range_start=range_start,
            range_end=range_end,
            working_hours_per_day=working_hours,
        )
    except DomainError as exc:
        raise to_http_error(exc)
    return OccupancyRead.from_report(location=location, range_start=range_start, range_end=range_end, report=report)
