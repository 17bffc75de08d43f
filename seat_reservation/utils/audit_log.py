from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "reservation.created",
    "reservation.canceled",
]
AuditInitiator = Literal["user", "system"]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _enum_to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    reservation_id: int,
    seat_id: Optional[int],
    user_id: Optional[str],
    reservation_date: Optional[date],
    start_hour: Optional[int],
    end_hour: Optional[int],
    status_from: Optional[str],
    status_to: Optional[str],
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "reservation_id": reservation_id,
        "seat_id": seat_id,
        "user_id": user_id,
        "reservation_date": reservation_date.isoformat() if reservation_date is not None else None,
        "start_hour": start_hour,
        "end_hour": end_hour,
        "status_from": _enum_to_str(status_from),
        "status_to": _enum_to_str(status_to),
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
