"""
WebSocket channel for realtime duplex sessions.

One logical event is one text frame. Ordering follows the connection's
single writer.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from relay.errors import ConnectionAbsent
from relay.streaming.frames import EventKind, LogicalEvent, encode_payload
from relay.streaming.ids import get_request_id, realtime_event_id
from relay.streaming.payloads import OpenAIError, RealtimeEvent

logger = logging.getLogger(__name__)


class TextConnection(Protocol):
    """Anything that can send a text frame, e.g. a Starlette WebSocket."""

    async def send_text(self, data: str) -> None: ...


class DuplexChannel:
    """Sends realtime events over a WebSocket connection."""

    def __init__(
        self,
        connection: TextConnection | None,
        trace_id: str | None = None,
    ) -> None:
        """
        Initialize the channel.

        Args:
            connection: Bound connection, or None if the session has none
            trace_id: Request id for event ids (ambient one if omitted)
        """
        self.connection = connection
        self.trace_id = trace_id if trace_id is not None else get_request_id()

    def _require_connection(self) -> TextConnection:
        if self.connection is None:
            logger.error(f"[{self.trace_id}] websocket connection is nil")
            raise ConnectionAbsent("websocket connection is nil")
        return self.connection

    async def send_text(self, text: str) -> None:
        """
        Send one text frame.

        Raises:
            ConnectionAbsent: If no connection is bound
        """
        connection = self._require_connection()
        await connection.send_text(text)

    async def send_object(self, value: Any) -> None:
        """
        Serialize a value and send it as one text frame.

        Raises:
            NullPayload: If value is None
            EncodingError: If value cannot be serialized
            ConnectionAbsent: If no connection is bound
        """
        data = encode_payload(value)
        await self.send_text(data)

    async def send_error(self, error: OpenAIError | dict[str, Any]) -> None:
        """
        Notify the peer of an error.

        Failures are logged and never raised.
        """
        try:
            if isinstance(error, dict):
                error = OpenAIError(**error)
            event = RealtimeEvent(
                type="error",
                event_id=realtime_event_id(self.trace_id),
                error=error,
            )
            await self.send_object(event)
        except Exception as e:
            logger.warning(f"[{self.trace_id}] Failed to send error event: {e}")

    async def send_event(self, event: LogicalEvent) -> None:
        """Dispatch a logical event; ping and done have no duplex form."""
        if event.kind == EventKind.ERROR:
            await self.send_error(event.payload)
        elif event.kind in (EventKind.PING, EventKind.DONE):
            logger.debug(f"Skipping {event.kind.value} event on duplex channel")
        elif isinstance(event.payload, str):
            await self.send_text(event.payload)
        else:
            await self.send_object(event.payload)
