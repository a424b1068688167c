"""
Wire payloads for streamed chat completions and realtime sessions.

Builders here are pure: each call returns a fresh model with no shared state.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

CHUNK_OBJECT = "chat.completion.chunk"


class Usage(BaseModel):
    """Token totals for a completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(cls, prompt_tokens: int, completion_tokens: int) -> Usage:
        """Build usage with the total filled in."""
        return cls(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )


class ChunkDelta(BaseModel):
    """Incremental message content carried by a chunk choice."""

    role: str | None = None
    content: str | None = None
    tool_calls: list[dict[str, Any]] | None = None


class ChunkChoice(BaseModel):
    """One choice entry of a streamed chunk."""

    index: int = 0
    delta: ChunkDelta = Field(default_factory=ChunkDelta)
    finish_reason: str | None = None


class ChatCompletionChunk(BaseModel):
    """OpenAI-compatible `chat.completion.chunk` object."""

    id: str
    object: str = CHUNK_OBJECT
    created: int
    model: str
    system_fingerprint: str | None = None
    choices: list[ChunkChoice] = Field(default_factory=list)
    usage: Usage | None = None


class OpenAIError(BaseModel):
    """Error body in the OpenAI format."""

    message: str
    type: str
    param: str | None = None
    code: Any = None


class RealtimeEvent(BaseModel):
    """Server event sent over a realtime duplex session."""

    type: str
    event_id: str
    error: OpenAIError | None = None


def stop_chunk(
    id: str,
    created: int,
    model: str,
    finish_reason: str,
) -> ChatCompletionChunk:
    """Chunk with a single choice carrying the finish reason and no usage."""
    return ChatCompletionChunk(
        id=id,
        created=created,
        model=model,
        choices=[ChunkChoice(finish_reason=finish_reason)],
    )


def usage_chunk(
    id: str,
    created: int,
    model: str,
    usage: Usage,
) -> ChatCompletionChunk:
    """Chunk with no choices carrying final usage totals."""
    return ChatCompletionChunk(
        id=id,
        created=created,
        model=model,
        choices=[],
        usage=usage.model_copy(),
    )


def delta_chunk(
    id: str,
    created: int,
    model: str,
    content: str | None = None,
    role: str | None = None,
    tool_calls: list[dict[str, Any]] | None = None,
    index: int = 0,
) -> ChatCompletionChunk:
    """Chunk carrying a text and/or tool-call delta."""
    return ChatCompletionChunk(
        id=id,
        created=created,
        model=model,
        choices=[
            ChunkChoice(
                index=index,
                delta=ChunkDelta(role=role, content=content, tool_calls=tool_calls),
            )
        ],
    )
