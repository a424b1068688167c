"""
Relay of backend completion fragments onto an event-stream channel.

Turns text and tool-call deltas into chat completion chunks, keeps idle
connections alive, and closes the stream with a stop chunk, optional usage
chunk and the completion marker.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Union

from relay.config import settings
from relay.errors import StreamingError
from relay.streaming.payloads import Usage, delta_chunk, stop_chunk, usage_chunk
from relay.streaming.sse import EventStreamChannel
from relay.tokens import TokenEstimator, default_estimator

logger = logging.getLogger(__name__)


@dataclass
class TextDelta:
    """A piece of generated text."""

    content: str


@dataclass
class ToolCallDelta:
    """A piece of one or more tool calls in OpenAI delta format."""

    tool_calls: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class UsageReport:
    """Authoritative token totals reported by the backend."""

    usage: Usage


@dataclass
class Finish:
    """The backend stopped generating."""

    reason: str = "stop"


Fragment = Union[TextDelta, ToolCallDelta, UsageReport, Finish]


class StreamRelay:
    """
    Drives one EventStreamChannel from a backend fragment iterator.

    Every delta is sent and flushed as its own event. When the backend is
    silent for heartbeat_interval seconds a keep-alive ping is sent.
    """

    def __init__(
        self,
        channel: EventStreamChannel,
        model: str,
        response_id: str,
        created: int | None = None,
        estimator: TokenEstimator | None = None,
        heartbeat_interval: float | None = None,
    ) -> None:
        """
        Initialize the relay.

        Args:
            channel: Channel bound to the client response
            model: Model name echoed in every chunk
            response_id: Chat completion id echoed in every chunk
            created: Creation time in epoch seconds (now if omitted)
            estimator: Token estimator for usage without backend totals
            heartbeat_interval: Idle seconds before a ping (0 disables)
        """
        self.channel = channel
        self.model = model
        self.response_id = response_id
        self.created = created if created is not None else int(time.time())
        self.estimator = estimator or default_estimator
        self.heartbeat_interval = (
            settings.sse_heartbeat_interval
            if heartbeat_interval is None
            else heartbeat_interval
        )
        self.frames_sent = 0

    async def _with_heartbeat(
        self,
        fragments: AsyncIterator[Fragment],
    ) -> AsyncIterator[Fragment]:
        iterator = fragments.__aiter__()
        timeout = self.heartbeat_interval if self.heartbeat_interval > 0 else None
        while True:
            pending = asyncio.ensure_future(iterator.__anext__())
            try:
                while True:
                    done, _ = await asyncio.wait({pending}, timeout=timeout)
                    if done:
                        break
                    await self.channel.send_ping()
            except BaseException:
                pending.cancel()
                raise
            try:
                fragment = pending.result()
            except StopAsyncIteration:
                return
            yield fragment

    async def _send_chunk(self, chunk: Any) -> None:
        await self.channel.send_object(chunk)
        self.frames_sent += 1

    async def estimate_usage(self, prompt_text: str, completion_text: str) -> Usage:
        """Estimate usage totals from prompt and completion text."""
        return Usage.from_counts(
            await self.estimator.estimate_async(prompt_text),
            await self.estimator.estimate_async(completion_text),
        )

    async def _terminate_after_failure(self) -> None:
        try:
            await self.channel.terminate()
        except StreamingError as e:
            logger.warning(f"Could not terminate stream {self.response_id}: {e}")

    async def run(
        self,
        fragments: AsyncIterator[Fragment],
        prompt_text: str = "",
        include_usage: bool = False,
    ) -> Usage:
        """
        Relay fragments until the backend finishes.

        Args:
            fragments: Backend fragment iterator
            prompt_text: Prompt used to estimate prompt tokens
            include_usage: Send a usage chunk before the completion marker

        Returns:
            Reported usage, or an estimate when the backend sent none
        """
        completion_parts: list[str] = []
        reported: Usage | None = None
        finish_reason = "stop"
        role_sent = False

        try:
            async for fragment in self._with_heartbeat(fragments):
                if isinstance(fragment, TextDelta):
                    completion_parts.append(fragment.content)
                    await self._send_chunk(
                        delta_chunk(
                            self.response_id,
                            self.created,
                            self.model,
                            content=fragment.content,
                            role=None if role_sent else "assistant",
                        )
                    )
                    role_sent = True
                elif isinstance(fragment, ToolCallDelta):
                    for call in fragment.tool_calls:
                        arguments = (call.get("function") or {}).get("arguments")
                        if arguments:
                            completion_parts.append(arguments)
                    await self._send_chunk(
                        delta_chunk(
                            self.response_id,
                            self.created,
                            self.model,
                            tool_calls=fragment.tool_calls,
                            role=None if role_sent else "assistant",
                        )
                    )
                    role_sent = True
                elif isinstance(fragment, UsageReport):
                    reported = fragment.usage
                elif isinstance(fragment, Finish):
                    finish_reason = fragment.reason
                else:
                    logger.warning(f"Ignoring unknown fragment: {fragment!r}")

            usage = reported or await self.estimate_usage(
                prompt_text, "".join(completion_parts)
            )

            await self._send_chunk(
                stop_chunk(self.response_id, self.created, self.model, finish_reason)
            )
            if include_usage:
                await self._send_chunk(
                    usage_chunk(self.response_id, self.created, self.model, usage)
                )
        except Exception as e:
            logger.error(f"Stream {self.response_id} interrupted: {e}")
            await self._terminate_after_failure()
            raise

        await self.channel.terminate()
        logger.debug(
            f"Stream {self.response_id} finished: {self.frames_sent} frames, "
            f"{usage.total_tokens} tokens"
        )
        return usage
