from __future__ import annotations

from datetime import datetime, timezone
from typing import Collection, List, Optional, Tuple

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import LocationRepository, ReservationRepository
from ..domain.status import ReservationStatus
from ..models import Location, Reservation


def _overlapping(start: datetime, end: datetime):
    # SQL form of domain.intervals.overlaps for half-open intervals.
    return (Reservation.starts_at < end) & (Reservation.ends_at > start)


class SqlAlchemyLocationRepository(LocationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_name(self, name: str) -> Location | None:
        result = await self.session.scalar(select(Location).where(Location.name == name))
        return result if isinstance(result, Location) else None

    async def list(self, *, active: bool | None = None) -> List[Location]:
        stmt = select(Location).order_by(Location.name)
        if active is not None:
            stmt = stmt.where(Location.active == active)
        return list((await self.session.scalars(stmt)).all())

    async def create(self, *, name: str, active: bool) -> Location:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        location = Location(name=name, active=active, created_at=now, updated_at=now)
        self.session.add(location)
        await self.session.flush()
        return location

    async def save(self, location: Location) -> Location:
        self.session.add(location)
        await self.session.flush()
        return location

    async def lock_by_name(self, name: str) -> Location | None:
        result = await self.session.scalar(select(Location).where(Location.name == name).with_for_update())
        return result if isinstance(result, Location) else None


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, reservation_id: int) -> Reservation | None:
        result = await self.session.scalar(select(Reservation).where(Reservation.id == reservation_id))
        return result if isinstance(result, Reservation) else None

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        result = await self.session.scalar(
            select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        )
        return result if isinstance(result, Reservation) else None

    async def find_overlapping(
        self,
        location: str,
        start: datetime,
        end: datetime,
        statuses: Collection[ReservationStatus],
        exclude_id: int | None = None,
    ) -> List[Reservation]:
        stmt: Select[Tuple[Reservation]] = (
            select(Reservation)
            .where(
                Reservation.location_name == location,
                Reservation.status.in_(list(statuses)),
                _overlapping(start, end),
            )
            .order_by(Reservation.starts_at, Reservation.id)
        )
        if exclude_id is not None:
            stmt = stmt.where(Reservation.id != exclude_id)
        return list((await self.session.scalars(stmt)).all())

    async def create(
        self,
        *,
        location_name: str,
        owner_id: int,
        advertiser_name: str,
        customer_name: str,
        starts_at: datetime,
        ends_at: datetime,
        status: ReservationStatus,
    ) -> Reservation:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        reservation = Reservation(
            location_name=location_name,
            owner_id=owner_id,
            advertiser_name=advertiser_name,
            customer_name=customer_name,
            starts_at=starts_at,
            ends_at=ends_at,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def save(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def delete(self, reservation: Reservation) -> None:
        await self.session.delete(reservation)
        await self.session.flush()

    async def list(
        self,
        *,
        owner_id: int | None = None,
        status: ReservationStatus | None = None,
        location: str | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Reservation], int]:
        conditions = []
        if owner_id is not None:
            conditions.append(Reservation.owner_id == owner_id)
        if status is not None:
            conditions.append(Reservation.status == status)
        if location is not None:
            conditions.append(Reservation.location_name == location)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Reservation.advertiser_name.ilike(pattern),
                    Reservation.customer_name.ilike(pattern),
                    Reservation.location_name.ilike(pattern),
                )
            )

        total = await self.session.scalar(select(func.count(Reservation.id)).where(*conditions))
        stmt = (
            select(Reservation)
            .where(*conditions)
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = (await self.session.scalars(stmt)).all()
        return list(rows), int(total or 0)

    async def list_in_window(
        self,
        start: datetime,
        end: datetime,
        owner_id: Optional[int] = None,
    ) -> List[Reservation]:
        stmt = select(Reservation).where(_overlapping(start, end)).order_by(Reservation.starts_at)
        if owner_id is not None:
            stmt = stmt.where(Reservation.owner_id == owner_id)
        return list((await self.session.scalars(stmt)).all())

    async def count_by_status(self, owner_id: int | None = None) -> dict[ReservationStatus, int]:
        stmt = select(Reservation.status, func.count(Reservation.id)).group_by(Reservation.status)
        if owner_id is not None:
            stmt = stmt.where(Reservation.owner_id == owner_id)
        rows = await self.session.execute(stmt)
        return {ReservationStatus(status): int(count) for status, count in rows.all()}

    async def bulk_transition(
        self,
        *,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
        updated_at: datetime,
        starts_at_or_before: datetime | None = None,
        ends_after: datetime | None = None,
        ends_at_or_before: datetime | None = None,
    ) -> int:
        stmt = (
            update(Reservation)
            .where(Reservation.status == from_status)
            .values(status=to_status, updated_at=updated_at)
            .execution_options(synchronize_session=False)
        )
        if starts_at_or_before is not None:
            stmt = stmt.where(Reservation.starts_at <= starts_at_or_before)
        if ends_after is not None:
            stmt = stmt.where(Reservation.ends_at > ends_after)
        if ends_at_or_before is not None:
            stmt = stmt.where(Reservation.ends_at <= ends_at_or_before)
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)
