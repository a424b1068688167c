"""
Streaming routes for the relay.

Provides:
- OpenAI-compatible chat completions over Server-Sent Events
- A realtime WebSocket session emitting duplex events
"""

import asyncio
import json
import logging
import time
from typing import AsyncIterator

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from relay.config import settings
from relay.streaming import (
    DuplexChannel,
    EventStreamChannel,
    Finish,
    StreamRelay,
    TextDelta,
    Usage,
    create_sse_response,
    new_request_id,
    realtime_event_id,
    request_id_var,
    response_id,
)
from relay.streaming.relay import Fragment
from relay.tokens import default_estimator

logger = logging.getLogger(__name__)
router = APIRouter()


# --- Request Models ---

class Message(BaseModel):
    """Chat message."""
    role: str = Field(..., description="Message role: system, user, assistant")
    content: str = Field(..., description="Message content")


class StreamOptions(BaseModel):
    """Streaming options."""
    include_usage: bool = False


class ChatCompletionRequest(BaseModel):
    """OpenAI-compatible chat completion request."""

    model: str = Field(default="relay-echo", description="Model name echoed back")
    messages: list[Message] = Field(..., min_length=1, description="List of messages")
    stream: bool = Field(default=False, description="Stream response")
    stream_options: StreamOptions | None = None


# --- Mock backend ---

def _prompt_text(messages: list[Message]) -> str:
    return "\n".join(m.content for m in messages)


def _mock_reply(messages: list[Message]) -> str:
    return f"You said: {messages[-1].content}"


async def mock_fragments(
    text: str,
    delay: float | None = None,
) -> AsyncIterator[Fragment]:
    """
    Stand-in backend yielding the text word by word.

    Args:
        text: Text to stream
        delay: Delay between words in seconds

    Yields:
        Text deltas followed by a stop fragment
    """
    delay = settings.mock_token_delay if delay is None else delay
    words = text.split()
    for i, word in enumerate(words):
        yield TextDelta(word + (" " if i < len(words) - 1 else ""))
        if delay > 0:
            await asyncio.sleep(delay)
    yield Finish("stop")


# --- SSE Endpoint ---

@router.post("/chat/completions")
async def chat_completions(request: ChatCompletionRequest):
    """
    Chat completions endpoint.

    With stream=true the response is an event stream of
    chat.completion.chunk objects ending with `data: [DONE]`.
    """
    completion_id = response_id()
    created = int(time.time())
    reply = _mock_reply(request.messages)
    prompt = _prompt_text(request.messages)

    if not request.stream:
        usage = Usage.from_counts(
            await default_estimator.estimate_async(prompt),
            await default_estimator.estimate_async(reply),
        )
        return {
            "id": completion_id,
            "object": "chat.completion",
            "created": created,
            "model": request.model,
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": reply},
                    "finish_reason": "stop",
                }
            ],
            "usage": usage.model_dump(),
        }

    include_usage = bool(request.stream_options and request.stream_options.include_usage)

    async def produce(channel: EventStreamChannel) -> None:
        relay = StreamRelay(
            channel,
            model=request.model,
            response_id=completion_id,
            created=created,
        )
        usage = await relay.run(
            mock_fragments(reply),
            prompt_text=prompt,
            include_usage=include_usage,
        )
        logger.info(f"Completed stream {completion_id} ({usage.total_tokens} tokens)")

    return create_sse_response(produce)


# --- WebSocket Endpoint ---

@router.websocket("/realtime")
async def realtime_session(websocket: WebSocket):
    """
    Realtime WebSocket session.

    Protocol:
    1. Send a text message: {"type": "input_text", "text": "Hello"}
    2. Receive one {"type": "response.text.delta", ...} per word
    3. Receive {"type": "response.done", ...}

    Malformed messages produce {"type": "error", "event_id": "evt_...", "error": {...}}.
    """
    trace_id = websocket.headers.get(settings.request_id_header) or new_request_id()
    request_id_var.set(trace_id)

    await websocket.accept()
    channel = DuplexChannel(websocket, trace_id=trace_id)
    event_id = realtime_event_id(trace_id)
    logger.info(f"Realtime session opened: {trace_id}")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError as e:
                await channel.send_error(
                    {"message": f"Invalid JSON: {e}", "type": "invalid_request_error"}
                )
                continue

            text = message.get("text") if isinstance(message, dict) else None
            if not isinstance(text, str):
                await channel.send_error(
                    {
                        "message": "Expected an object with a 'text' field",
                        "type": "invalid_request_error",
                        "param": "text",
                    }
                )
                continue

            async for fragment in mock_fragments(text, delay=0):
                if isinstance(fragment, TextDelta):
                    await channel.send_object(
                        {
                            "type": "response.text.delta",
                            "event_id": event_id,
                            "delta": fragment.content,
                        }
                    )
            await channel.send_object({"type": "response.done", "event_id": event_id})

    except WebSocketDisconnect:
        logger.info(f"Realtime session closed: {trace_id}")
