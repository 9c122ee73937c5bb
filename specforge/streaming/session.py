"""Session state machine driven by an event stream.

    PENDING -> CONNECTING -> STREAMING -> SUCCEEDED | FAILED
    (any non-terminal state) -> CANCELLED

A ``StreamSession`` owns one byte stream for its lifetime and releases it
exactly once, on the terminal transition or on ``cancel()``. Terminal
states are final; a new operation needs a new session.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import uuid
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from specforge.exceptions import ProtocolError, ServerError, SessionStateError, TransportError
from specforge.streaming.dispatcher import EventDispatcher, classify_frame
from specforge.streaming.events import Done, Error, Progress, SessionEvent, Success
from specforge.streaming.parser import parse_frames

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from specforge.streaming.dispatcher import FrameMapper
    from specforge.streaming.fetcher import ByteStream, StreamFetcher

    EventCallback = Callable[[SessionEvent], None]

logger = logging.getLogger(__name__)

PREMATURE_CLOSE_MESSAGE = "stream closed before completion"


class SessionStatus(str, enum.Enum):
    """Lifecycle states of a stream session."""

    PENDING = "PENDING"
    CONNECTING = "CONNECTING"
    STREAMING = "STREAMING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {SessionStatus.SUCCEEDED, SessionStatus.FAILED, SessionStatus.CANCELLED}
)


class SessionSnapshot(BaseModel):
    """Immutable view of a session's state, safe to hand to a UI."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: SessionStatus
    result: Any | None = None
    evaluation: Any | None = None
    log: list[str] = Field(default_factory=list)
    last_error: str | None = None


class StreamSession:
    """One observed streaming operation (a warm-up or a refinement).

    Usage::

        session = StreamSession(url, fetcher, refinement_mapper)
        session.on_event(print)
        session.start()
        snapshot = await session.wait()

    Args:
        url: Absolute URL of the streaming endpoint.
        fetcher: Transport used to open the stream.
        mapper: Frame-to-event mapping for this kind of stream.
        session_id: Identifier (a random UUID when omitted).
        initial_log: Lines the log starts with.
    """

    def __init__(
        self,
        url: str,
        fetcher: StreamFetcher,
        mapper: FrameMapper = classify_frame,
        *,
        session_id: str | None = None,
        initial_log: Iterable[str] = (),
    ) -> None:
        self.id = session_id or str(uuid.uuid4())
        self.url = url
        self._fetcher = fetcher
        self._dispatcher = EventDispatcher(mapper)
        self._status = SessionStatus.PENDING
        self._result: Any | None = None
        self._evaluation: Any | None = None
        self._log: list[str] = list(initial_log)
        self._last_error: str | None = None
        self._error: ProtocolError | None = None
        self._observers: list[EventCallback] = []
        self._stream: ByteStream | None = None
        self._task: asyncio.Task[SessionSnapshot] | None = None
        self._released = False
        self._cancel_requested = False

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def result(self) -> Any | None:
        return self._result

    @property
    def evaluation(self) -> Any | None:
        return self._evaluation

    @property
    def log(self) -> tuple[str, ...]:
        return tuple(self._log)

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def error(self) -> ProtocolError | None:
        """The exception behind a FAILED session, if any."""
        return self._error

    @property
    def is_terminal(self) -> bool:
        return self._status.is_terminal

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            id=self.id,
            status=self._status,
            result=self._result,
            evaluation=self._evaluation,
            log=list(self._log),
            last_error=self._last_error,
        )

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def on_event(self, callback: EventCallback) -> Callable[[], None]:
        """Register an observer for delivered events.

        Returns:
            A callable that removes the observer.
        """
        self._observers.append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._observers.remove(callback)

        return _unsubscribe

    def _notify(self, event: SessionEvent) -> None:
        for callback in list(self._observers):
            try:
                callback(event)
            except Exception:
                logger.exception("Session %s observer failed on %r", self.id, event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task[SessionSnapshot]:
        """Move to CONNECTING and consume the stream in a background task.

        Raises:
            SessionStateError: If the session was already started or ended.
        """
        self._begin()
        self._task = asyncio.create_task(self._consume(), name=f"stream-session-{self.id}")
        return self._task

    async def run(self) -> SessionSnapshot:
        """Move to CONNECTING and consume the stream in the current task."""
        self._begin()
        self._task = asyncio.current_task()  # type: ignore[assignment]
        return await self._consume()

    async def wait(self) -> SessionSnapshot:
        """Wait for the consumer to finish and return the final snapshot."""
        task = self._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            await asyncio.wait({task})
        return self.snapshot()

    async def cancel(self) -> None:
        """Cancel the session and release its connection.

        No effect on a session that already reached a terminal state.
        """
        if self.is_terminal:
            return

        self._cancel_requested = True
        self._set_status(SessionStatus.CANCELLED)

        task = self._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            await asyncio.wait({task})

        await self._release()

    def _begin(self) -> None:
        if self._status is not SessionStatus.PENDING:
            raise SessionStateError(
                f"Session {self.id} cannot start from {self._status.value}"
            )
        self._set_status(SessionStatus.CONNECTING)

    async def _consume(self) -> SessionSnapshot:
        try:
            try:
                self._stream = await self._fetcher.open(self.url)
            except ProtocolError as e:
                self._fail(e)
                return self.snapshot()

            async with contextlib.aclosing(parse_frames(self._stream)) as frames:
                async for frame in frames:
                    if self.is_terminal:
                        break
                    if self._status is SessionStatus.CONNECTING:
                        self._set_status(SessionStatus.STREAMING)

                    event = self._dispatcher.dispatch(frame)
                    if event is None:
                        continue
                    self._apply(event)
                    self._notify(event)
                    if self.is_terminal:
                        break

            if not self.is_terminal:
                self._fail(TransportError(PREMATURE_CLOSE_MESSAGE, url=self.url))

        except ProtocolError as e:
            if not self.is_terminal:
                self._fail(e)
        except asyncio.CancelledError:
            if not self.is_terminal:
                self._set_status(SessionStatus.CANCELLED)
            if not self._cancel_requested:
                raise
            # Cancellation we asked for ends the consumer normally
            current = asyncio.current_task()
            if current is not None:
                current.uncancel()
        finally:
            await self._release()

        return self.snapshot()

    def _apply(self, event: SessionEvent) -> None:
        if isinstance(event, Progress):
            self._log.append(event.message)
        elif isinstance(event, Success):
            self._result = event.artifact
            self._evaluation = event.evaluation
            self._set_status(SessionStatus.SUCCEEDED)
        elif isinstance(event, Error):
            if event.retryable:
                logger.warning("Session %s: retryable server error: %s", self.id, event.message)
                self._log.append(f"Warning: {event.message}")
            else:
                self._fail(ServerError(event.message))
        elif isinstance(event, Done):
            # A bare done is a clean completion without a result
            self._set_status(SessionStatus.SUCCEEDED)

    def _fail(self, error: ProtocolError) -> None:
        logger.error(
            "Session %s failed: %s (correlation_id=%s)", self.id, error, error.correlation_id
        )
        self._error = error
        self._last_error = str(error)
        self._set_status(SessionStatus.FAILED)

    def _set_status(self, status: SessionStatus) -> None:
        if self._status.is_terminal:
            logger.debug(
                "Session %s ignoring %s transition from terminal %s",
                self.id,
                status.value,
                self._status.value,
            )
            return
        logger.debug("Session %s: %s -> %s", self.id, self._status.value, status.value)
        self._status = status

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._stream is not None:
            await self._stream.aclose()


__all__ = [
    "PREMATURE_CLOSE_MESSAGE",
    "SessionSnapshot",
    "SessionStatus",
    "StreamSession",
]
