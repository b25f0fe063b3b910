from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "reservation.created",
    "reservation.updated",
    "reservation.deleted",
    "reservation.status_changed",
    "reservation.completed",
    "reservation.auto_advanced",
    "location.created",
    "location.updated",
]
# "system" covers the sweep, whether triggered over HTTP or by the background job.
AuditInitiator = Literal["user", "system"]


def _build_audit_logger(name: str = "audit") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.propagate = False
    return logger


_audit_logger = _build_audit_logger()


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    reservation_id: Optional[int],
    location: Optional[str],
    owner_id: Optional[int],
    status_from: Optional[str],
    status_to: Optional[str],
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Write one JSON line to the ``audit`` logger.

    Unset fields are omitted. A logging failure surfaces as RuntimeError so the
    caller sees it instead of losing the entry silently.
    """
    fields: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "reservation_id": reservation_id,
        "location": location,
        "owner_id": owner_id,
        "status_from": _plain(status_from),
        "status_to": _plain(status_to),
        "message": message,
        **(extra or {}),
    }
    line = json.dumps({k: v for k, v in fields.items() if v is not None}, ensure_ascii=True, default=str)
    try:
        _audit_logger.info(line)
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
