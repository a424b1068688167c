"""
Server-Sent Events channel for streaming responses.

An EventStreamChannel binds one sink for one request. It sets response
headers once, frames every event byte-exactly, flushes after every event and
sends the completion marker at most once.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable

from fastapi.responses import StreamingResponse

from relay.errors import (
    FlusherUnavailable,
    SinkClosed,
    SinkUnflushable,
    StreamTerminated,
)
from relay.streaming.frames import (
    DONE_SENTINEL,
    PING_FRAME,
    EventKind,
    LogicalEvent,
    encode_payload,
    format_data_event,
    format_event_line,
    format_typed_event,
    render_event,
)
from relay.streaming.sink import FlushResult, QueueSink, SinkAdapter

logger = logging.getLogger(__name__)

EVENT_STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Transfer-Encoding": "chunked",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


class EventStreamChannel:
    """
    Per-request event-stream writer.

    Lifecycle: idle -> headers sent -> zero or more events -> terminated.
    Terminated is final; sends after it raise StreamTerminated and write
    nothing.
    """

    def __init__(self, sink: SinkAdapter) -> None:
        """
        Initialize the channel.

        Args:
            sink: Transport owned by this channel for the request
        """
        self._sink = sink
        self.headers_sent = False
        self.terminated = False

    @property
    def sink(self) -> SinkAdapter:
        return self._sink

    def ensure_headers(self) -> None:
        """Set event-stream response headers on the first call only."""
        if self.headers_sent:
            return
        self._sink.set_headers(EVENT_STREAM_HEADERS)
        self.headers_sent = True

    def _check_open(self) -> None:
        if self.terminated:
            raise StreamTerminated("stream already terminated")
        self.ensure_headers()

    async def _write(self, data: bytes) -> None:
        if not self._sink.is_alive():
            raise SinkClosed("client connection is closed")
        await self._sink.write(data)

    async def _flush(self, unsupported: type[SinkUnflushable]) -> None:
        result = await self._sink.flush()
        if result == FlushResult.UNSUPPORTED:
            raise unsupported("streaming error: flusher not found")
        if result == FlushResult.FAILED:
            raise SinkClosed("streaming error: flush failed")

    async def send_typed(self, event_name: str, payload: Any) -> None:
        """
        Send a typed event as a single write.

        Args:
            event_name: Value of the event line
            payload: Value serialized to JSON for the data line

        Raises:
            EncodingError: If the payload cannot be serialized
            SinkUnflushable: If the sink cannot flush
        """
        self._check_open()
        data = encode_payload(payload)
        await self._write(format_typed_event(event_name, data))
        await self._flush(SinkUnflushable)

    async def send_typed_raw(self, event_name: str, raw_payload: str) -> None:
        """
        Send a typed event whose data is already serialized.

        The event line and the data line go out as two writes followed by
        one flush.
        """
        self._check_open()
        await self._write(format_event_line(event_name))
        await self._write(format_data_event(raw_payload))
        await self._flush(SinkUnflushable)

    async def send_data(self, text: str) -> None:
        """
        Send a plain data event.

        A leading "data: " and trailing line breaks are stripped before
        framing.

        Raises:
            FlusherUnavailable: If the sink cannot flush
        """
        self._check_open()
        await self._write(format_data_event(text))
        await self._flush(FlusherUnavailable)

    async def send_ping(self) -> None:
        """Send a keep-alive comment frame."""
        self._check_open()
        await self._write(PING_FRAME)
        await self._flush(FlusherUnavailable)

    async def send_object(self, value: Any) -> None:
        """
        Serialize a value and send it as a data event.

        Raises:
            NullPayload: If value is None
            EncodingError: If value cannot be serialized
        """
        self._check_open()
        await self.send_data(encode_payload(value))

    async def send_event(self, event: LogicalEvent) -> None:
        """
        Write a logical event as one rendered frame.

        DONE goes through terminate() so the marker is sent at most once.
        """
        if event.kind == EventKind.DONE:
            await self.terminate()
            return
        self._check_open()
        frame = render_event(event)
        await self._write(frame)
        if event.kind == EventKind.TYPED:
            await self._flush(SinkUnflushable)
        else:
            await self._flush(FlusherUnavailable)

    async def terminate(self) -> None:
        """
        Send the completion marker and close the channel.

        Calling again is a no-op. The channel counts as terminated even if
        the marker could not be sent; that failure still propagates.
        """
        if self.terminated:
            logger.debug("terminate() called on a terminated stream")
            return
        try:
            await self.send_data(DONE_SENTINEL)
        finally:
            self.terminated = True


def create_sse_response(
    producer: Callable[[EventStreamChannel], Awaitable[Any]],
    sink: QueueSink | None = None,
) -> StreamingResponse:
    """
    Create a FastAPI StreamingResponse driven by a producer coroutine.

    The producer receives a fresh channel and runs as one task tied to the
    response body; it is cancelled if the client goes away.

    Args:
        producer: Coroutine function writing events to the channel
        sink: Queue sink to use (a new one if omitted)

    Returns:
        FastAPI StreamingResponse
    """
    sink = sink or QueueSink()
    channel = EventStreamChannel(sink)
    channel.ensure_headers()

    async def produce() -> None:
        try:
            await producer(channel)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Stream producer failed: {e}")
        finally:
            sink.close()

    async def body():
        task = asyncio.create_task(produce())
        try:
            async for chunk in sink.iter_chunks():
                yield chunk
        finally:
            if not task.done():
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            sink.close()

    return StreamingResponse(body(), headers=sink.headers)
