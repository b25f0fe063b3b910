import logging

from ..domain.errors import ConflictError, InvalidInputError
from ..domain.intervals import Interval
from ..domain.repositories import ReservationRepository
from ..domain.services import filter_conflicts
from ..domain.status import BLOCKING_STATUSES
from ..models import Reservation

logger = logging.getLogger(__name__)


async def find_conflicts(
    res_repo: ReservationRepository,
    *,
    location: str,
    candidate: Interval,
    exclude_id: int | None = None,
) -> list[Reservation]:
    if not location or not location.strip():
        raise InvalidInputError("location is required")
    rows = await res_repo.find_overlapping(
        location,
        candidate.start,
        candidate.end,
        BLOCKING_STATUSES,
        exclude_id=exclude_id,
    )
    return filter_conflicts(candidate, rows, exclude_id=exclude_id)


async def validate_no_conflicts(
    res_repo: ReservationRepository,
    *,
    location: str,
    candidate: Interval,
    exclude_id: int | None = None,
) -> None:
    conflicts = await find_conflicts(res_repo, location=location, candidate=candidate, exclude_id=exclude_id)
    if conflicts:
        logger.info(
            "rejected %s-%s at %r: %d conflict(s)",
            candidate.start.isoformat(),
            candidate.end.isoformat(),
            location,
            len(conflicts),
        )
        raise ConflictError(conflicts)


async def is_available(
    res_repo: ReservationRepository,
    *,
    location: str,
    candidate: Interval,
    exclude_id: int | None = None,
) -> bool:
    return not await find_conflicts(res_repo, location=location, candidate=candidate, exclude_id=exclude_id)
