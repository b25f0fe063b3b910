from datetime import datetime
from typing import Callable, Collection, Iterator, List, Optional, Tuple

import pytest
from billboard_booking.config import get_settings
from billboard_booking.domain.status import ReservationStatus
from billboard_booking.models import Location, Reservation

T0 = datetime(2025, 12, 1, 0, 0)


class InMemoryLocationRepo:
    def __init__(self, names: Collection[str]) -> None:
        self.locations = {
            name: Location(id=i, name=name, active=True, created_at=T0, updated_at=T0)
            for i, name in enumerate(names, start=1)
        }
        self.locked: List[str] = []

    async def get_by_name(self, name: str) -> Optional[Location]:
        return self.locations.get(name)

    async def lock_by_name(self, name: str) -> Optional[Location]:
        location = self.locations.get(name)
        if location is not None:
            self.locked.append(name)
        return location

    async def list(self, *, active: Optional[bool] = None) -> List[Location]:
        rows = sorted(self.locations.values(), key=lambda loc: loc.name)
        return [loc for loc in rows if active is None or loc.active == active]

    async def create(self, *, name: str, active: bool) -> Location:
        location = Location(id=len(self.locations) + 1, name=name, active=active, created_at=T0, updated_at=T0)
        self.locations[name] = location
        return location

    async def save(self, location: Location) -> Location:
        self.locations[location.name] = location
        return location


class InMemoryReservationRepo:
    def __init__(self) -> None:
        self.rows: dict[int, Reservation] = {}
        self._next_id = 1

    def add(
        self,
        location: str,
        starts_at: datetime,
        ends_at: datetime,
        status: ReservationStatus = ReservationStatus.WAITING,
        owner_id: int = 1,
        advertiser_name: str = "Acme",
    ) -> Reservation:
        reservation = Reservation(
            id=self._next_id,
            location_name=location,
            owner_id=owner_id,
            advertiser_name=advertiser_name,
            customer_name="Customer",
            starts_at=starts_at,
            ends_at=ends_at,
            status=status,
            created_at=T0,
            updated_at=T0,
        )
        self.rows[reservation.id] = reservation
        self._next_id += 1
        return reservation

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return self.rows.get(reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        return self.rows.get(reservation_id)

    async def find_overlapping(
        self,
        location: str,
        start: datetime,
        end: datetime,
        statuses: Collection[ReservationStatus],
        exclude_id: Optional[int] = None,
    ) -> List[Reservation]:
        rows = [
            r
            for r in self.rows.values()
            if r.location_name == location
            and r.status in statuses
            and r.id != exclude_id
            and r.starts_at < end
            and r.ends_at > start
        ]
        return sorted(rows, key=lambda r: (r.starts_at, r.id))

    async def create(self, **fields: object) -> Reservation:
        return self.add(
            location=fields["location_name"],  # type: ignore[arg-type]
            starts_at=fields["starts_at"],  # type: ignore[arg-type]
            ends_at=fields["ends_at"],  # type: ignore[arg-type]
            status=fields["status"],  # type: ignore[arg-type]
            owner_id=fields["owner_id"],  # type: ignore[arg-type]
            advertiser_name=fields["advertiser_name"],  # type: ignore[arg-type]
        )

    async def save(self, reservation: Reservation) -> Reservation:
        self.rows[reservation.id] = reservation
        return reservation

    async def delete(self, reservation: Reservation) -> None:
        del self.rows[reservation.id]

    async def list(
        self,
        *,
        owner_id: Optional[int] = None,
        status: Optional[ReservationStatus] = None,
        location: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Reservation], int]:
        rows = [
            r
            for r in self.rows.values()
            if (owner_id is None or r.owner_id == owner_id)
            and (status is None or r.status == status)
            and (location is None or r.location_name == location)
            and (search is None or search.lower() in f"{r.advertiser_name} {r.customer_name} {r.location_name}".lower())
        ]
        return rows[offset : offset + limit], len(rows)

    async def list_in_window(
        self,
        start: datetime,
        end: datetime,
        owner_id: Optional[int] = None,
    ) -> List[Reservation]:
        return [
            r
            for r in self.rows.values()
            if r.starts_at < end and r.ends_at > start and (owner_id is None or r.owner_id == owner_id)
        ]

    async def count_by_status(self, owner_id: Optional[int] = None) -> dict[ReservationStatus, int]:
        counts: dict[ReservationStatus, int] = {}
        for r in self.rows.values():
            if owner_id is None or r.owner_id == owner_id:
                counts[r.status] = counts.get(r.status, 0) + 1
        return counts

    async def bulk_transition(
        self,
        *,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
        updated_at: datetime,
        starts_at_or_before: Optional[datetime] = None,
        ends_after: Optional[datetime] = None,
        ends_at_or_before: Optional[datetime] = None,
    ) -> int:
        changed = 0
        for r in self.rows.values():
            if r.status != from_status:
                continue
            if starts_at_or_before is not None and not r.starts_at <= starts_at_or_before:
                continue
            if ends_after is not None and not r.ends_at > ends_after:
                continue
            if ends_at_or_before is not None and not r.ends_at <= ends_at_or_before:
                continue
            r.status = to_status
            r.updated_at = updated_at
            changed += 1
        return changed


@pytest.fixture(autouse=True)
def _utc_schedule(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("SCHEDULE_TIMEZONE", "UTC")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def res_repo() -> InMemoryReservationRepo:
    return InMemoryReservationRepo()


@pytest.fixture
def loc_repo() -> InMemoryLocationRepo:
    return InMemoryLocationRepo(["Station A", "Station B"])


@pytest.fixture
def at() -> Callable[..., datetime]:
    """Build a UTC-naive datetime on 2025-12-01 (or another day) from an hour and minute."""

    def _at(hour: int, minute: int = 0, *, day: int = 1) -> datetime:
        return datetime(2025, 12, day, hour, minute)

    return _at
