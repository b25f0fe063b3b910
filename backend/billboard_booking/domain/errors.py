from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from ..models import Reservation
    from .status import ReservationStatus


class DomainError(Exception):
    """Base class for errors raised by the scheduling engine."""


class InvalidInputError(DomainError):
    pass


class NotFoundError(DomainError):
    pass


class ForbiddenError(DomainError):
    pass


class AlreadyExistsError(DomainError):
    pass


class ConflictError(DomainError):
    """Candidate interval collides with one or more blocking reservations."""

    def __init__(self, conflicts: Sequence["Reservation"]) -> None:
        self.conflicts = list(conflicts)
        super().__init__(f"time slot conflicts with {len(self.conflicts)} existing reservation(s)")

    def details(self) -> list[dict[str, object]]:
        return [
            {
                "id": c.id,
                "advertiser": c.advertiser_name,
                "starts_at": c.starts_at.isoformat(),
                "ends_at": c.ends_at.isoformat(),
                "time_range": f"{c.starts_at.isoformat()} - {c.ends_at.isoformat()}",
            }
            for c in self.conflicts
        ]


class InvalidTransitionError(DomainError):
    def __init__(self, from_status: "ReservationStatus", to_status: "ReservationStatus") -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"invalid status transition from {from_status} to {to_status}")


class AlreadyCompletedError(DomainError):
    def __init__(self, reservation_id: int) -> None:
        self.reservation_id = reservation_id
        super().__init__("reservation is already completed")
