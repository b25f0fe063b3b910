"""Run the auto-advance sweep outside a request: once (cron) or on an interval."""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.status import AutoAdvanceResult
from ..infrastructure.repositories import SqlAlchemyReservationRepository
from ..usecases.status import run_auto_advance
from ..utils.audit_log import emit_audit_log

logger = logging.getLogger(__name__)


async def run_once(session_factory: Callable[[], AsyncSession], *, now: datetime | None = None) -> AutoAdvanceResult:
    async with session_factory() as session:
        async with session.begin():
            result = await run_auto_advance(SqlAlchemyReservationRepository(session), now=now)

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
    return result


async def run_forever(session_factory: Callable[[], AsyncSession], *, interval_seconds: float) -> None:
    """Sweep every `interval_seconds` until cancelled; a failed sweep is logged and retried next tick."""
    while True:
        try:
            await run_once(session_factory)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("auto-advance sweep failed")
        await asyncio.sleep(interval_seconds)


def main() -> None:
    from ..database import async_session

    logging.basicConfig(level=logging.INFO)
    result = asyncio.run(run_once(async_session))
    logger.info("activated=%d ending_soon=%d", result.activated_count, result.ending_soon_count)


if __name__ == "__main__":
    main()
