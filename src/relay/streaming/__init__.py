"""
Streaming module for real-time LLM response delivery.

Provides:
- Byte-exact Server-Sent Events framing over flushable sinks
- WebSocket delivery for realtime duplex sessions
- Chat completion chunk payloads and correlation ids
- A relay turning backend fragments into a terminated stream
"""

from relay.streaming.frames import (
    EventKind,
    LogicalEvent,
    encode_payload,
    render_event,
)
from relay.streaming.ids import (
    new_request_id,
    realtime_event_id,
    request_id_var,
    response_id,
)
from relay.streaming.payloads import (
    ChatCompletionChunk,
    OpenAIError,
    RealtimeEvent,
    Usage,
    delta_chunk,
    stop_chunk,
    usage_chunk,
)
from relay.streaming.relay import (
    Finish,
    StreamRelay,
    TextDelta,
    ToolCallDelta,
    UsageReport,
)
from relay.streaming.sink import FlushResult, QueueSink, SinkAdapter
from relay.streaming.sse import EventStreamChannel, create_sse_response
from relay.streaming.websocket import DuplexChannel

__all__ = [
    "EventKind",
    "LogicalEvent",
    "encode_payload",
    "render_event",
    "new_request_id",
    "realtime_event_id",
    "request_id_var",
    "response_id",
    "ChatCompletionChunk",
    "OpenAIError",
    "RealtimeEvent",
    "Usage",
    "delta_chunk",
    "stop_chunk",
    "usage_chunk",
    "Finish",
    "StreamRelay",
    "TextDelta",
    "ToolCallDelta",
    "UsageReport",
    "FlushResult",
    "QueueSink",
    "SinkAdapter",
    "EventStreamChannel",
    "create_sse_response",
    "DuplexChannel",
]
