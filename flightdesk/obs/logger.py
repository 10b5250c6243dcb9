"""Structured JSON logging to stdout.

Low overhead, minimal dependencies, safe for production stdout collectors.
Continuation tokens are long opaque strings that grant access to a priced
itinerary, so they are cut down to a short prefix before being written.
"""

from typing import Any, Dict
from datetime import datetime, timezone
import json

from flightdesk.obs.context import request_id_var, session_id_var


_TOKEN_FIELDS = ("token", "booking_token", "departure_token")
_TOKEN_PREFIX = 20


def redact_token(value: Any) -> Any:
    s = str(value) if value is not None else ""
    if not s:
        return s
    if len(s) <= _TOKEN_PREFIX:
        return "***"
    return f"{s[:_TOKEN_PREFIX]}..."


def log_event(event: str, **fields: Any) -> None:
    now = datetime.now(timezone.utc).isoformat()
    payload: Dict[str, Any] = {
        "ts": now,
        "level": fields.pop("level", "INFO"),
        "event": event,
        "request_id": request_id_var.get(),
    }
    # Attach context vars if not provided explicitly
    payload.setdefault("session_id", session_id_var.get())

    # Merge remaining fields
    for k, v in fields.items():
        if k in _TOKEN_FIELDS:
            payload[k] = redact_token(v)
        else:
            payload[k] = v

    try:
        print(json.dumps(payload, separators=(",", ":"), default=str))
    except Exception:
        # As a last resort, avoid crashing the app due to logging
        pass
