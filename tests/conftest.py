"""Pytest configuration and fixtures."""

from collections.abc import Generator

import pytest

from relay.errors import SinkClosed
from relay.streaming.sink import FlushResult, SinkAdapter
from relay.streaming.sse import EventStreamChannel
from relay.tokens import default_estimator


class MemorySink(SinkAdapter):
    """Sink recording writes, flushes and delivered bytes."""

    def __init__(self, flushable: bool = True, alive: bool = True) -> None:
        super().__init__()
        self.flushable = flushable
        self.alive = alive
        self.writes: list[bytes] = []
        self.flushed_chunks: list[bytes] = []
        self.header_calls = 0
        self._pending = bytearray()

    def set_headers(self, headers) -> None:
        self.header_calls += 1
        super().set_headers(headers)

    def is_alive(self) -> bool:
        return self.alive

    async def write(self, data: bytes) -> None:
        if not self.alive:
            raise SinkClosed("closed")
        self.writes.append(data)
        self._pending.extend(data)

    async def flush(self) -> FlushResult:
        if not self.flushable:
            return FlushResult.UNSUPPORTED
        if not self.alive:
            return FlushResult.FAILED
        self.flushed_chunks.append(bytes(self._pending))
        self._pending.clear()
        return FlushResult.FLUSHED

    @property
    def body(self) -> bytes:
        """Everything delivered to the client so far."""
        return b"".join(self.flushed_chunks)

    @property
    def written(self) -> bytes:
        """Everything written, flushed or not."""
        return b"".join(self.writes)


class FakeEncoding:
    """Whitespace tokenizer standing in for a tiktoken encoding."""

    name = "fake"

    def encode(self, text: str, disallowed_special=()) -> list[int]:
        return [len(word) for word in text.split()]


@pytest.fixture(autouse=True)
def offline_tokenizer(monkeypatch: pytest.MonkeyPatch) -> Generator[FakeEncoding, None, None]:
    """Keep tiktoken off the network and reset the shared estimator."""
    encoding = FakeEncoding()
    monkeypatch.setattr("relay.tokens.tiktoken.get_encoding", lambda name: encoding)
    monkeypatch.setattr(default_estimator, "_encoding", None)
    monkeypatch.setattr(default_estimator, "_load_failed", False)
    yield encoding


@pytest.fixture
def sink() -> MemorySink:
    """A flushable in-memory sink."""
    return MemorySink()


@pytest.fixture
def channel(sink: MemorySink) -> EventStreamChannel:
    """An event-stream channel over the in-memory sink."""
    return EventStreamChannel(sink)


@pytest.fixture
def make_sink() -> type[MemorySink]:
    """Factory for sinks with custom flush or liveness behavior."""
    return MemorySink
