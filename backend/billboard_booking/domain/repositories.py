from __future__ import annotations

from datetime import datetime
from typing import Collection, Protocol

from ..models import Location, Reservation
from .status import ReservationStatus


class LocationRepository(Protocol):
    async def get_by_name(self, name: str) -> Location | None: ...

    async def list(self, *, active: bool | None = None) -> list[Location]: ...

    async def create(self, *, name: str, active: bool) -> Location: ...

    async def save(self, location: Location) -> Location: ...

    async def lock_by_name(self, name: str) -> Location | None:
        """Fetch the location row with a write lock held until the transaction ends."""
        ...


class ReservationRepository(Protocol):
    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def find_overlapping(
        self,
        location: str,
        start: datetime,
        end: datetime,
        statuses: Collection[ReservationStatus],
        exclude_id: int | None = None,
    ) -> list[Reservation]:
        """Reservations at `location` in `statuses` overlapping ``[start, end)``, ordered by start."""
        ...

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
    ) -> Reservation: ...

    async def save(self, reservation: Reservation) -> Reservation: ...

    async def delete(self, reservation: Reservation) -> None: ...

    async def list(
        self,
        *,
        owner_id: int | None = None,
        status: ReservationStatus | None = None,
        location: str | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Reservation], int]: ...

    async def list_in_window(
        self,
        start: datetime,
        end: datetime,
        owner_id: int | None = None,
    ) -> list[Reservation]: ...

    async def count_by_status(self, owner_id: int | None = None) -> dict[ReservationStatus, int]: ...

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
        """Guarded ``UPDATE ... WHERE status = from_status AND <time bounds>``; returns rows changed."""
        ...
