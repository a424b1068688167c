"""
Event framing for the streaming relay.

Renders logical events into the exact bytes of the event-stream wire format:

    event: <name>\\ndata: <json>\\n\\n    typed event
    data: <payload>\\n\\n               plain data event
    : PING\\n\\n                        keep-alive comment
    data: [DONE]\\n\\n                  completion sentinel
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel

from relay.errors import EncodingError, NullPayload

DATA_PREFIX = "data: "
EVENT_PREFIX = "event: "
EVENT_TERMINATOR = "\n\n"
DONE_SENTINEL = "[DONE]"
PING_FRAME = b": PING\n\n"


class EventKind(str, Enum):
    """Kinds of logical events shared by both transports."""

    DELTA = "delta"
    TYPED = "typed"
    PING = "ping"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class LogicalEvent:
    """A transport-independent event."""

    kind: EventKind
    payload: Any = None
    event_name: str | None = None

    def __post_init__(self) -> None:
        if self.kind == EventKind.TYPED and not self.event_name:
            raise ValueError("typed events require an event name")

    @classmethod
    def delta(cls, payload: Any) -> LogicalEvent:
        return cls(EventKind.DELTA, payload)

    @classmethod
    def typed(cls, event_name: str, payload: Any) -> LogicalEvent:
        return cls(EventKind.TYPED, payload, event_name)

    @classmethod
    def ping(cls) -> LogicalEvent:
        return cls(EventKind.PING)

    @classmethod
    def done(cls) -> LogicalEvent:
        return cls(EventKind.DONE)

    @classmethod
    def error(cls, payload: Any) -> LogicalEvent:
        return cls(EventKind.ERROR, payload)


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return value


def encode_payload(value: Any) -> str:
    """
    Serialize a payload to compact JSON.

    Args:
        value: pydantic model, dataclass instance or JSON-compatible value

    Returns:
        Canonical JSON text

    Raises:
        NullPayload: If value is None
        EncodingError: If value cannot be serialized
    """
    if value is None:
        raise NullPayload("payload is None")
    try:
        return json.dumps(
            _to_jsonable(value),
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise EncodingError(f"error marshalling object: {e}") from e


def normalize_data(text: str) -> str:
    """Drop one leading "data: " prefix and any trailing line breaks."""
    if text.startswith(DATA_PREFIX):
        text = text[len(DATA_PREFIX):]
    return text.rstrip("\r\n")


def format_data_event(text: str) -> bytes:
    """Frame a plain data event after normalizing upstream double-framing."""
    return f"{DATA_PREFIX}{normalize_data(text)}{EVENT_TERMINATOR}".encode("utf-8")


def format_event_line(event_name: str) -> bytes:
    """The event-name line of a typed event."""
    return f"{EVENT_PREFIX}{event_name}\n".encode("utf-8")


def format_typed_event(event_name: str, data: str) -> bytes:
    """Frame a typed event whose data is already serialized."""
    return format_event_line(event_name) + f"{DATA_PREFIX}{data}{EVENT_TERMINATOR}".encode("utf-8")


def render_event(event: LogicalEvent) -> bytes:
    """
    Render a logical event as event-stream bytes.

    String payloads of DELTA events pass through as pre-serialized data;
    other payloads are encoded as JSON.
    """
    if event.kind == EventKind.PING:
        return PING_FRAME
    if event.kind == EventKind.DONE:
        return format_data_event(DONE_SENTINEL)
    if event.kind == EventKind.TYPED:
        return format_typed_event(event.event_name, encode_payload(event.payload))
    if isinstance(event.payload, str):
        return format_data_event(event.payload)
    return format_data_event(encode_payload(event.payload))
