from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Mapping


class ReservationStatus(StrEnum):
    WAITING = "WAITING"
    ACTIVE = "ACTIVE"
    ENDING_SOON = "ENDING_SOON"
    COMPLETED = "COMPLETED"


TRANSITIONS: Mapping[ReservationStatus, frozenset[ReservationStatus]] = MappingProxyType(
    {
        ReservationStatus.WAITING: frozenset({ReservationStatus.ACTIVE, ReservationStatus.COMPLETED}),
        ReservationStatus.ACTIVE: frozenset({ReservationStatus.ENDING_SOON, ReservationStatus.COMPLETED}),
        ReservationStatus.ENDING_SOON: frozenset({ReservationStatus.COMPLETED}),
        ReservationStatus.COMPLETED: frozenset(),
    }
)

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Statuses that occupy their interval: they take part in conflict checks,
# slot search and occupancy.
BLOCKING_STATUSES = frozenset(ReservationStatus) - TERMINAL_STATUSES


def is_blocking(status: ReservationStatus) -> bool:
    return status in BLOCKING_STATUSES


def is_valid_transition(from_status: ReservationStatus, to_status: ReservationStatus) -> bool:
    return to_status in TRANSITIONS[from_status]


def valid_next_states(status: ReservationStatus) -> frozenset[ReservationStatus]:
    return TRANSITIONS[status]


@dataclass(frozen=True)
class TransitionResult:
    reservation_id: int
    location: str
    old_status: ReservationStatus
    new_status: ReservationStatus
    transitioned_at: datetime


@dataclass(frozen=True)
class AutoAdvanceResult:
    activated_count: int
    ending_soon_count: int
