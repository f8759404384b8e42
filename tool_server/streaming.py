"""
Streaming Channel

Server-sent-event sessions that carry more than one message:
- call streams: the dispatched envelope, then either one completion update or
  heartbeats until the client leaves
- notification streams: a "Server is online" notification, then heartbeats

Each session owns at most one timer task. Closing a session cancels it, and a
closed session drops anything emitted afterwards.
"""

import asyncio
import json
import logging
import uuid
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from .dispatcher import Dispatcher
from .protocol import CallRequest, Notification, ResultEnvelope

logger = logging.getLogger("tool_server.streaming")

Message = Dict[str, Any]
DisconnectCheck = Callable[[], Awaitable[bool]]

DISCONNECT_POLL_INTERVAL = 1.0

_CLOSE = object()


class SessionState(str, Enum):
    IDLE = "idle"
    OPEN = "open"
    CLOSED = "closed"


def format_sse(message: Message) -> str:
    """Frame one message as a server-sent event."""
    return f"data: {json.dumps(message)}\n\n"


def heartbeat_notification() -> Message:
    return Notification.message("Server heartbeat").to_wire()


def online_notification() -> Message:
    return Notification.message("Server is online").to_wire()


def completion_update(request: CallRequest) -> Message:
    return ResultEnvelope.success(
        [{"type": "text", "text": f"Streaming update: {request.tool_name} complete"}],
        request.correlation_id,
    ).to_wire()


class StreamSession:
    """A single open SSE connection and its pending timer."""

    def __init__(
        self,
        heartbeat_interval_ms: int,
        completion_delay_ms: int,
        on_close: Optional[Callable[["StreamSession"], None]] = None,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.heartbeat_interval = heartbeat_interval_ms / 1000
        self.completion_delay = completion_delay_ms / 1000
        self.state = SessionState.IDLE
        self.closed_at: Optional[float] = None
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._timer: Optional[asyncio.Task] = None
        self._on_close = on_close

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def open(self) -> None:
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"Stream session {self.session_id} is already {self.state.value}")
        self.state = SessionState.OPEN
        logger.info(f"Stream session opened: {self.session_id}")

    def emit(self, message: Message) -> bool:
        """Queue a message for the client. Returns False once the session is closed."""
        if self.state is not SessionState.OPEN:
            logger.debug(f"Dropping event for {self.state.value} stream session {self.session_id}")
            return False
        self._queue.put_nowait(message)
        return True

    def start_heartbeat(self, message_factory: Callable[[], Message] = heartbeat_notification) -> None:
        self._set_timer(self._heartbeat_loop(message_factory))

    def schedule_completion(self, message: Message) -> None:
        self._set_timer(self._complete_after(message))

    def _set_timer(self, coro) -> None:
        if self._timer is not None:
            coro.close()
            raise RuntimeError(f"Stream session {self.session_id} already has a timer")
        if self.state is not SessionState.OPEN:
            coro.close()
            return
        self._timer = asyncio.create_task(coro, name=f"stream-timer-{self.session_id}")

    async def _heartbeat_loop(self, message_factory: Callable[[], Message]) -> None:
        while self.state is SessionState.OPEN:
            await asyncio.sleep(self.heartbeat_interval)
            self.emit(message_factory())

    async def _complete_after(self, message: Message) -> None:
        await asyncio.sleep(self.completion_delay)
        if self.emit(message):
            self.close(reason="completed")

    def close(self, reason: str = "closed") -> None:
        """Move to Closed, cancel the pending timer and release the reader."""
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        self.closed_at = asyncio.get_running_loop().time()

        timer, self._timer = self._timer, None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

        self._queue.put_nowait(_CLOSE)
        logger.info(f"Stream session closed: {self.session_id} ({reason})")
        if self._on_close is not None:
            self._on_close(self)

    async def events(
        self,
        is_disconnected: Optional[DisconnectCheck] = None,
        poll_interval: float = DISCONNECT_POLL_INTERVAL,
    ) -> AsyncIterator[str]:
        """Yield SSE frames until the session closes or the client disconnects."""
        reason = "client disconnected"
        try:
            while True:
                try:
                    message = await asyncio.wait_for(self._queue.get(), timeout=poll_interval)
                except asyncio.TimeoutError:
                    if is_disconnected is not None and await is_disconnected():
                        break
                    continue
                if message is _CLOSE:
                    reason = "completed"
                    break
                yield format_sse(message)
        finally:
            self.close(reason=reason)


class StreamingChannel:
    """Opens and tracks stream sessions for the HTTP layer."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        heartbeat_interval_ms: int = 30000,
        completion_delay_ms: int = 1000,
    ):
        self.dispatcher = dispatcher
        self.heartbeat_interval_ms = heartbeat_interval_ms
        self.completion_delay_ms = completion_delay_ms
        self._sessions: Dict[str, StreamSession] = {}

    @property
    def open_sessions(self) -> int:
        return len(self._sessions)

    def _open_session(self) -> StreamSession:
        session = StreamSession(
            self.heartbeat_interval_ms,
            self.completion_delay_ms,
            on_close=self._forget,
        )
        self._sessions[session.session_id] = session
        session.open()
        return session

    def _forget(self, session: StreamSession) -> None:
        self._sessions.pop(session.session_id, None)

    async def open_call_stream(self, request: CallRequest) -> StreamSession:
        """Dispatch ``request`` and open a session that starts with its envelope."""
        envelope = await self.dispatcher.dispatch(request)
        session = self._open_session()
        session.emit(envelope.to_wire())
        if request.wants_stream:
            session.schedule_completion(completion_update(request))
        else:
            session.start_heartbeat()
        return session

    def open_notification_stream(self) -> StreamSession:
        """Open a server-initiated stream that is independent of any call."""
        session = self._open_session()
        session.emit(online_notification())
        session.start_heartbeat()
        return session

    def close_all(self, reason: str = "server shutdown") -> None:
        for session in list(self._sessions.values()):
            session.close(reason=reason)
