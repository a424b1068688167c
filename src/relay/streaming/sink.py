"""
Sink abstraction for the event-stream transport.

A sink is the thing framed bytes are written to and flushed through. The
channel never inspects the transport type; it asks the sink to flush and acts
on the reported outcome.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from typing import AsyncIterator

from relay.errors import SinkClosed

logger = logging.getLogger(__name__)


class FlushResult(str, Enum):
    """Outcome of a flush request."""

    UNSUPPORTED = "unsupported"
    FLUSHED = "flushed"
    FAILED = "failed"


class SinkAdapter(ABC):
    """
    Abstract base class for writable, flushable transports.

    One sink is owned by exactly one channel for the lifetime of a request.
    """

    def __init__(self) -> None:
        self.headers: dict[str, str] = {}

    def set_headers(self, headers: Mapping[str, str]) -> None:
        """
        Apply response metadata before the body starts.

        Args:
            headers: Header names and values
        """
        self.headers.update(headers)

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """
        Write bytes to the transport buffer.

        Raises:
            SinkClosed: If the connection is gone
        """
        ...

    @abstractmethod
    async def flush(self) -> FlushResult:
        """
        Push buffered bytes to the client.

        Returns:
            FLUSHED on success, UNSUPPORTED if the transport cannot flush,
            FAILED if the connection broke
        """
        ...

    @abstractmethod
    def is_alive(self) -> bool:
        """Check whether the client connection is still open."""
        ...


class QueueSink(SinkAdapter):
    """
    Sink feeding a Starlette StreamingResponse body.

    Writes accumulate in a buffer; each flush hands the buffer to the response
    body through a queue, so the client sees exactly what was flushed.
    """

    def __init__(self) -> None:
        super().__init__()
        self._buffer = bytearray()
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._closed = False

    def is_alive(self) -> bool:
        return not self._closed

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise SinkClosed("response stream is closed")
        self._buffer.extend(data)

    async def flush(self) -> FlushResult:
        if self._closed:
            return FlushResult.FAILED
        if self._buffer:
            self._queue.put_nowait(bytes(self._buffer))
            self._buffer.clear()
        return FlushResult.FLUSHED

    def close(self) -> None:
        """End the body. Bytes written but never flushed are dropped."""
        if self._closed:
            return
        if self._buffer:
            logger.debug(f"Discarding {len(self._buffer)} unflushed bytes on close")
            self._buffer.clear()
        self._closed = True
        self._queue.put_nowait(None)

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield flushed chunks until the sink is closed."""
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk
