from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyLocationRepository
from ..schemas import LocationCreate, LocationRead, LocationUpdate
from ..usecases import locations as location_usecase
from ..utils.audit_log import emit_audit_log
from .errors import to_http_error

router = APIRouter(prefix="/locations", tags=["locations"], dependencies=[Depends(get_current_user_id)])


@router.post("", response_model=LocationRead, status_code=status.HTTP_201_CREATED)
async def create_location(
    payload: LocationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> LocationRead:
    loc_repo = SqlAlchemyLocationRepository(session)
    try:
        async with session.begin():
            location = await location_usecase.create_location(loc_repo, name=payload.name, active=payload.active)
    except DomainError as exc:
        raise to_http_error(exc)
    except IntegrityError:
        # Lost a race with another create of the same name.
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="location already exists")

    emit_audit_log(
        action="location.created",
        initiator="user",
        reservation_id=None,
        location=location.name,
        owner_id=user_id,
        status_from=None,
        status_to=None,
        extra={"active": location.active},
    )
    return LocationRead.from_db(location=location)


@router.get("", response_model=list[LocationRead])
async def list_locations(
    active: Optional[bool] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> list[LocationRead]:
    rows = await location_usecase.list_locations(SqlAlchemyLocationRepository(session), active=active)
    return [LocationRead.from_db(location=loc) for loc in rows]


@router.get("/{name}", response_model=LocationRead)
async def get_location(
    name: str = Path(..., min_length=2, max_length=200),
    session: AsyncSession = Depends(get_session),
) -> LocationRead:
    try:
        location = await location_usecase.get_location(SqlAlchemyLocationRepository(session), name=name.strip())
    except DomainError as exc:
        raise to_http_error(exc)
    return LocationRead.from_db(location=location)


async def _set_active(session: AsyncSession, *, name: str, active: bool, user_id: int) -> LocationRead:
    loc_repo = SqlAlchemyLocationRepository(session)
    try:
        async with session.begin():
            location, previous = await location_usecase.set_location_active(loc_repo, name=name.strip(), active=active)
    except DomainError as exc:
        raise to_http_error(exc)

    if previous != location.active:
        emit_audit_log(
            action="location.updated",
            initiator="user",
            reservation_id=None,
            location=location.name,
            owner_id=user_id,
            status_from=None,
            status_to=None,
            extra={"active": location.active},
        )
    return LocationRead.from_db(location=location)


@router.patch("/{name}", response_model=LocationRead)
async def update_location(
    payload: LocationUpdate,
    name: str = Path(..., min_length=2, max_length=200),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> LocationRead:
    return await _set_active(session, name=name, active=payload.active, user_id=user_id)


@router.delete("/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_location(
    name: str = Path(..., min_length=2, max_length=200),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> Response:
    """Soft delete: the location stops taking bookings and its history is kept."""
    await _set_active(session, name=name, active=False, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
