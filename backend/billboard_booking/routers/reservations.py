import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_session
from ..domain.errors import DomainError
from ..domain.status import ReservationStatus
from ..infrastructure.repositories import SqlAlchemyLocationRepository, SqlAlchemyReservationRepository
from ..schemas import (
    CalendarRead,
    Pagination,
    ReservationCreate,
    ReservationPage,
    ReservationRead,
    ReservationUpdate,
)
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import to_utc_naive
from .errors import to_http_error

router = APIRouter(prefix="/reservations", tags=["reservations"], dependencies=[Depends(get_current_user_id)])


def _utc(value: Optional[datetime], field: str) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} must have timezone")
    return to_utc_naive(value)


def _stripped(value: Optional[str]) -> Optional[str]:
    return value.strip() if value is not None else None


def _write_conflict() -> HTTPException:
    # The store rejected the write after the application check passed.
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="reservation conflicts with a concurrent write")


@router.post("", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    starts_at = _utc(payload.starts_at, "starts_at")
    ends_at = _utc(payload.ends_at, "ends_at")
    loc_repo = SqlAlchemyLocationRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        async with session.begin():
            reservation = await reservation_usecase.create_reservation(
                loc_repo,
                res_repo,
                owner_id=user_id,
                location=payload.location.strip(),
                advertiser_name=payload.advertiser_name.strip(),
                customer_name=payload.customer_name.strip(),
                starts_at=starts_at,
                ends_at=ends_at,
                status=payload.status,
            )
    except DomainError as exc:
        raise to_http_error(exc)
    except IntegrityError:
        raise _write_conflict()

    emit_audit_log(
        action="reservation.created",
        initiator="user",
        reservation_id=reservation.id,
        location=reservation.location_name,
        owner_id=reservation.owner_id,
        status_from=None,
        status_to=reservation.status,
    )
    return ReservationRead.from_db(reservation=reservation)


@router.get("", response_model=ReservationPage)
async def list_reservations(
    status_filter: Optional[ReservationStatus] = Query(default=None, alias="status"),
    location: Optional[str] = Query(default=None, min_length=2, max_length=200),
    search: Optional[str] = Query(default=None, min_length=1, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationPage:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows, total = await reservation_usecase.list_reservations(
            res_repo,
            owner_id=user_id,
            status=status_filter,
            location=location,
            search=search,
            page=page,
            limit=limit,
        )
    except DomainError as exc:
        raise to_http_error(exc)
    return ReservationPage(
        reservations=[ReservationRead.from_db(reservation=r) for r in rows],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


@router.get("/calendar", response_model=CalendarRead)
async def calendar(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> CalendarRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows = await reservation_usecase.calendar_reservations(res_repo, month=month, year=year, owner_id=user_id)
    except DomainError as exc:
        raise to_http_error(exc)
    return CalendarRead(month=month, year=year, reservations=[ReservationRead.from_db(reservation=r) for r in rows])


@router.get("/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_reservation(
            res_repo, reservation_id=reservation_id, caller_owner_id=user_id
        )
    except DomainError as exc:
        raise to_http_error(exc)
    return ReservationRead.from_db(reservation=reservation)


@router.patch("/{reservation_id}", response_model=ReservationRead)
async def update_reservation(
    payload: ReservationUpdate,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    loc_repo = SqlAlchemyLocationRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    starts_at = _utc(payload.starts_at, "starts_at")
    ends_at = _utc(payload.ends_at, "ends_at")
    try:
        async with session.begin():
            reservation, status_from = await reservation_usecase.update_reservation(
                loc_repo,
                res_repo,
                reservation_id=reservation_id,
                caller_owner_id=user_id,
                advertiser_name=_stripped(payload.advertiser_name),
                customer_name=_stripped(payload.customer_name),
                location=_stripped(payload.location),
                starts_at=starts_at,
                ends_at=ends_at,
                status=payload.status,
            )
    except DomainError as exc:
        raise to_http_error(exc)
    except IntegrityError:
        raise _write_conflict()

    emit_audit_log(
        action="reservation.updated",
        initiator="user",
        reservation_id=reservation.id,
        location=reservation.location_name,
        owner_id=reservation.owner_id,
        status_from=status_from,
        status_to=reservation.status,
        extra={"fields": sorted(payload.model_dump(exclude_none=True))},
    )
    return ReservationRead.from_db(reservation=reservation)


@router.delete("/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> Response:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        async with session.begin():
            removed = await reservation_usecase.delete_reservation(
                res_repo, reservation_id=reservation_id, caller_owner_id=user_id
            )
    except DomainError as exc:
        raise to_http_error(exc)

    emit_audit_log(
        action="reservation.deleted",
        initiator="user",
        reservation_id=removed.id,
        location=removed.location_name,
        owner_id=removed.owner_id,
        status_from=removed.status,
        status_to=None,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
