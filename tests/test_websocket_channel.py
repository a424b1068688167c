"""Tests for the realtime duplex channel."""

import json
import logging
from unittest.mock import AsyncMock

import pytest

from relay.errors import ConnectionAbsent, EncodingError, NullPayload
from relay.streaming.frames import LogicalEvent
from relay.streaming.payloads import OpenAIError
from relay.streaming.websocket import DuplexChannel


class TestSendText:
    """Tests for raw text frames."""

    @pytest.mark.asyncio
    async def test_send_text(self):
        """Test one frame per call."""
        websocket = AsyncMock()
        channel = DuplexChannel(websocket, trace_id="t1")

        await channel.send_text("hello")

        websocket.send_text.assert_called_once_with("hello")

    @pytest.mark.asyncio
    async def test_no_connection(self, caplog):
        """Test unbound channel raises and logs an error."""
        channel = DuplexChannel(None, trace_id="t1")

        with caplog.at_level(logging.ERROR):
            with pytest.raises(ConnectionAbsent):
                await channel.send_text("hello")

        assert "websocket connection is nil" in caplog.text


class TestSendObject:
    """Tests for serialized frames."""

    @pytest.mark.asyncio
    async def test_send_object(self):
        """Test compact JSON with no extra framing."""
        websocket = AsyncMock()
        channel = DuplexChannel(websocket, trace_id="t1")

        await channel.send_object({"type": "response.done"})

        websocket.send_text.assert_called_once_with('{"type":"response.done"}')

    @pytest.mark.asyncio
    async def test_unencodable(self):
        """Test serialization errors are raised before sending."""
        websocket = AsyncMock()
        channel = DuplexChannel(websocket, trace_id="t1")

        with pytest.raises(EncodingError):
            await channel.send_object({"x": object()})
        with pytest.raises(NullPayload):
            await channel.send_object(None)

        websocket.send_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_connection(self):
        """Test object send without a connection."""
        channel = DuplexChannel(None, trace_id="t1")

        with pytest.raises(ConnectionAbsent):
            await channel.send_object({"type": "x"})

    @pytest.mark.asyncio
    async def test_order_preserved(self):
        """Test frames go out in call order."""
        websocket = AsyncMock()
        channel = DuplexChannel(websocket, trace_id="t1")

        for i in range(3):
            await channel.send_object({"i": i})

        sent = [call.args[0] for call in websocket.send_text.call_args_list]
        assert sent == ['{"i":0}', '{"i":1}', '{"i":2}']


class TestSendError:
    """Tests for error notifications."""

    @pytest.mark.asyncio
    async def test_error_event_shape(self):
        """Test realtime error event fields."""
        websocket = AsyncMock()
        channel = DuplexChannel(websocket, trace_id="req42")

        await channel.send_error(
            OpenAIError(message="boom", type="server_error", code="internal")
        )

        payload = json.loads(websocket.send_text.call_args.args[0])
        assert payload["type"] == "error"
        assert payload["event_id"] == "evt_req42"
        assert payload["error"]["message"] == "boom"
        assert payload["error"]["code"] == "internal"

    @pytest.mark.asyncio
    async def test_error_from_dict(self):
        """Test dict errors are accepted."""
        websocket = AsyncMock()
        channel = DuplexChannel(websocket, trace_id="req42")

        await channel.send_error({"message": "bad", "type": "invalid_request_error"})

        payload = json.loads(websocket.send_text.call_args.args[0])
        assert payload["error"]["type"] == "invalid_request_error"

    @pytest.mark.asyncio
    async def test_swallows_send_failure(self):
        """Test a failing connection never raises."""
        websocket = AsyncMock()
        websocket.send_text.side_effect = RuntimeError("socket closed")
        channel = DuplexChannel(websocket, trace_id="req42")

        await channel.send_error(OpenAIError(message="boom", type="server_error"))

        websocket.send_text.assert_called_once()

    @pytest.mark.asyncio
    async def test_swallows_missing_connection(self):
        """Test an unbound channel never raises."""
        channel = DuplexChannel(None, trace_id="req42")

        await channel.send_error(OpenAIError(message="boom", type="server_error"))


class TestSendEvent:
    """Tests for logical event dispatch."""

    @pytest.mark.asyncio
    async def test_dispatch(self):
        """Test duplex mapping of each kind."""
        websocket = AsyncMock()
        channel = DuplexChannel(websocket, trace_id="t")

        await channel.send_event(LogicalEvent.delta({"a": 1}))
        await channel.send_event(LogicalEvent.typed("x", {"b": 2}))
        await channel.send_event(LogicalEvent.delta("raw"))
        await channel.send_event(LogicalEvent.ping())
        await channel.send_event(LogicalEvent.done())
        await channel.send_event(
            LogicalEvent.error({"message": "m", "type": "server_error"})
        )

        sent = [call.args[0] for call in websocket.send_text.call_args_list]
        assert sent[:3] == ['{"a":1}', '{"b":2}', "raw"]
        assert len(sent) == 4
        assert json.loads(sent[3])["type"] == "error"
