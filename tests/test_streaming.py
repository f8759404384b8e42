"""
Tests for stream sessions and the streaming channel.

Timings are shortened to a few milliseconds so heartbeat and completion behaviour
can be observed without waiting for the production intervals.
"""
import asyncio
import json

import pytest

from tool_server.protocol import CallRequest
from tool_server.streaming import (
    SessionState,
    StreamSession,
    StreamingChannel,
    completion_update,
    format_sse,
)


def _frames_to_messages(frames):
    messages = []
    for frame in frames:
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        messages.append(json.loads(frame[len("data: "):]))
    return messages


async def _collect(session, limit=None, timeout=1.0):
    frames = []

    async def _read():
        stream = session.events(poll_interval=0.01)
        try:
            async for frame in stream:
                frames.append(frame)
                if limit is not None and len(frames) >= limit:
                    break
        finally:
            await stream.aclose()

    await asyncio.wait_for(_read(), timeout=timeout)
    return frames


def test_format_sse_frame():
    assert format_sse({"a": 1}) == 'data: {"a": 1}\n\n'


class TestStreamSession:

    @pytest.mark.asyncio
    async def test_lifecycle(self):
        session = StreamSession(heartbeat_interval_ms=10, completion_delay_ms=10)
        assert session.state is SessionState.IDLE
        assert not session.emit({"dropped": True})

        session.open()
        assert session.is_open
        with pytest.raises(RuntimeError):
            session.open()

        session.close()
        assert session.state is SessionState.CLOSED
        assert session.closed_at is not None
        # idempotent
        session.close()

    @pytest.mark.asyncio
    async def test_closed_session_emits_nothing(self):
        session = StreamSession(heartbeat_interval_ms=10, completion_delay_ms=10)
        session.open()
        assert session.emit({"n": 1})
        session.close()

        assert session.emit({"n": 2}) is False
        frames = await _collect(session)
        assert _frames_to_messages(frames) == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_close_cancels_pending_timer(self):
        session = StreamSession(heartbeat_interval_ms=10, completion_delay_ms=10)
        session.open()
        session.start_heartbeat()
        assert session.has_pending_timer

        session.close()
        assert not session.has_pending_timer

        await asyncio.sleep(0.05)
        frames = await _collect(session)
        assert frames == []

    @pytest.mark.asyncio
    async def test_only_one_timer_per_session(self):
        session = StreamSession(heartbeat_interval_ms=10, completion_delay_ms=10)
        session.open()
        session.start_heartbeat()

        with pytest.raises(RuntimeError, match="already has a timer"):
            session.schedule_completion({"late": True})
        session.close()

    @pytest.mark.asyncio
    async def test_timer_not_started_for_closed_session(self):
        session = StreamSession(heartbeat_interval_ms=10, completion_delay_ms=10)
        session.open()
        session.close()

        session.start_heartbeat()
        assert not session.has_pending_timer

    @pytest.mark.asyncio
    async def test_heartbeats_repeat_until_reader_stops(self):
        session = StreamSession(heartbeat_interval_ms=5, completion_delay_ms=10)
        session.open()
        session.start_heartbeat()

        frames = await _collect(session, limit=3)
        messages = _frames_to_messages(frames)
        assert len(messages) == 3
        assert all(m["params"]["message"] == "Server heartbeat" for m in messages)

        # leaving the reader closes the session
        assert session.state is SessionState.CLOSED
        assert not session.has_pending_timer

    @pytest.mark.asyncio
    async def test_completion_closes_session(self):
        closed = []
        session = StreamSession(heartbeat_interval_ms=1000, completion_delay_ms=5, on_close=closed.append)
        session.open()
        session.emit({"first": True})
        session.schedule_completion({"done": True})

        frames = await _collect(session)
        assert _frames_to_messages(frames) == [{"first": True}, {"done": True}]
        assert session.state is SessionState.CLOSED
        assert closed == [session]

    @pytest.mark.asyncio
    async def test_disconnect_closes_session(self):
        session = StreamSession(heartbeat_interval_ms=1000, completion_delay_ms=10)
        session.open()
        session.start_heartbeat()

        async def disconnected():
            return True

        frames = [frame async for frame in session.events(is_disconnected=disconnected, poll_interval=0.01)]
        assert frames == []
        assert session.state is SessionState.CLOSED
        assert not session.has_pending_timer


class TestStreamingChannel:

    @pytest.fixture
    def channel(self, dispatcher):
        return StreamingChannel(dispatcher, heartbeat_interval_ms=5, completion_delay_ms=5)

    @pytest.mark.asyncio
    async def test_call_stream_with_completion(self, channel):
        request = CallRequest(
            tool_name="calculate-tax",
            params={"amount": 100, "jurisdiction": "Texas"},
            correlation_id=42,
            stream=True,
        )
        session = await channel.open_call_stream(request)
        assert channel.open_sessions == 1

        messages = _frames_to_messages(await _collect(session))

        assert len(messages) == 2
        first, update = messages
        assert first["id"] == 42
        assert "Tax = $6.25" in first["result"]["content"][0]["text"]
        assert update == completion_update(request)
        assert update["result"]["content"][0]["text"] == "Streaming update: calculate-tax complete"
        assert channel.open_sessions == 0

    @pytest.mark.asyncio
    async def test_stream_flag_inside_params(self, channel):
        request = CallRequest(
            tool_name="calculate-tax",
            params={"amount": 10, "jurisdiction": "Texas", "stream": True},
        )
        session = await channel.open_call_stream(request)
        messages = _frames_to_messages(await _collect(session))
        assert messages[-1]["result"]["content"][0]["text"] == "Streaming update: calculate-tax complete"

    @pytest.mark.asyncio
    async def test_failed_call_still_streams_completion(self, channel):
        request = CallRequest(tool_name="nope", params={}, correlation_id="x", stream=True)
        session = await channel.open_call_stream(request)
        first, update = _frames_to_messages(await _collect(session))

        assert first["error"]["code"] == -32601
        assert update["id"] == "x"

    @pytest.mark.asyncio
    async def test_call_stream_without_stream_flag_sends_heartbeats(self, channel):
        request = CallRequest(tool_name="calculate-tax", params={"amount": 1, "jurisdiction": "TX"})
        session = await channel.open_call_stream(request)

        messages = _frames_to_messages(await _collect(session, limit=3))
        assert "result" in messages[0]
        assert messages[1]["method"] == "serverNotification"
        assert messages[2]["params"] == {"message": "Server heartbeat"}

    @pytest.mark.asyncio
    async def test_notification_stream(self, channel):
        session = channel.open_notification_stream()

        messages = _frames_to_messages(await _collect(session, limit=2))
        assert messages[0] == {
            "jsonrpc": "2.0",
            "method": "serverNotification",
            "params": {"message": "Server is online"},
        }
        assert messages[1]["params"]["message"] == "Server heartbeat"

    @pytest.mark.asyncio
    async def test_close_all(self, channel):
        sessions = [channel.open_notification_stream(), channel.open_notification_stream()]
        assert channel.open_sessions == 2

        channel.close_all()

        assert channel.open_sessions == 0
        for session in sessions:
            assert session.state is SessionState.CLOSED
            assert not session.has_pending_timer
