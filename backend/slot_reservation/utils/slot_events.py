from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

SlotEventAction = Literal[
    "slot.held",
    "slot.not_admitted",
    "slot.released",
    "availability.partial",
]

_event_logger = logging.getLogger("slot_events")
_event_logger.setLevel(logging.INFO)
if not _event_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _event_logger.addHandler(handler)
_event_logger.propagate = False


def _to_json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return value


def emit_slot_event(
    *,
    action: SlotEventAction,
    uid: Optional[str] = None,
    event_type_id: Optional[int] = None,
    user_id: Optional[int] = None,
    slot_start: Optional[datetime] = None,
    slot_end: Optional[datetime] = None,
    reason: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit one structured JSON slot event. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "request_id": get_request_id(),
        "uid": uid,
        "event_type_id": event_type_id,
        "user_id": user_id,
        "slot_start": slot_start,
        "slot_end": slot_end,
        "reason": reason,
    }
    if extra:
        payload.update(extra)

    compact_payload = {k: _to_json_value(v) for k, v in payload.items() if v is not None}
    try:
        _event_logger.info(json.dumps(compact_payload, ensure_ascii=True, default=str))
    except Exception as exc:
        raise RuntimeError("failed to emit slot event") from exc
