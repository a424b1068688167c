"""Correlation identifiers derived from the ambient request id."""

from __future__ import annotations

import secrets
import string
import time
from contextvars import ContextVar

RESPONSE_ID_PREFIX = "chatcmpl-"
REALTIME_EVENT_PREFIX = "evt_"

_ALPHABET = string.ascii_letters + string.digits

# Set per request by the API middleware or websocket endpoint
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    """Generate a request id: local timestamp followed by 8 random characters."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(8))
    return time.strftime("%Y%m%d%H%M%S") + suffix


def get_request_id() -> str:
    """Get the request id bound to the current context ("" if unset)."""
    return request_id_var.get()


def response_id(trace_id: str | None = None) -> str:
    """Chat completion id for a trace id (ambient one if omitted)."""
    if trace_id is None:
        trace_id = get_request_id()
    return f"{RESPONSE_ID_PREFIX}{trace_id}"


def realtime_event_id(trace_id: str | None = None) -> str:
    """Realtime event id for a trace id (ambient one if omitted)."""
    if trace_id is None:
        trace_id = get_request_id()
    return f"{REALTIME_EVENT_PREFIX}{trace_id}"
