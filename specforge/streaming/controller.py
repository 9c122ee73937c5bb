"""Session controller: keeps at most one active stream session per feature.

A UI feature (the warm-up console, the refinement panel) owns one
controller. Starting a new session cancels and releases the previous one
first, so an old connection never keeps feeding the same observers.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from specforge.streaming.dispatcher import classify_frame
from specforge.streaming.endpoints import join_url
from specforge.streaming.session import StreamSession

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from specforge.streaming.dispatcher import FrameMapper
    from specforge.streaming.events import SessionEvent
    from specforge.streaming.fetcher import StreamFetcher
    from specforge.streaming.session import SessionSnapshot

logger = logging.getLogger(__name__)


class StreamSessionController:
    """Starts, replaces and cancels the sessions of one feature.

    Observers registered on the controller follow whichever session is
    current.

    Usage::

        controller = StreamSessionController(fetcher, settings.api_base_url, warmup_mapper)
        controller.on_event(render)
        await controller.start_session(warmup_path())
        snapshot = await controller.wait()
    """

    def __init__(
        self,
        fetcher: StreamFetcher,
        base_url: str,
        mapper: FrameMapper = classify_frame,
        *,
        initial_log: Iterable[str] = (),
    ) -> None:
        self._fetcher = fetcher
        self.base_url = base_url
        self._mapper = mapper
        self._initial_log = tuple(initial_log)
        self._observers: list[Callable[[SessionEvent], None]] = []
        self._current: StreamSession | None = None

    @property
    def current(self) -> StreamSession | None:
        return self._current

    def snapshot(self) -> SessionSnapshot | None:
        return self._current.snapshot() if self._current is not None else None

    def on_event(self, callback: Callable[[SessionEvent], None]) -> Callable[[], None]:
        """Register an observer for the current and all future sessions."""
        self._observers.append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._observers.remove(callback)

        return _unsubscribe

    async def start_session(self, path: str, *, session_id: str | None = None) -> StreamSession:
        """Cancel any active session, then start a new one on ``path``.

        Args:
            path: Endpoint path relative to the base URL.
            session_id: Identifier for the new session.

        Returns:
            The started session (status CONNECTING).
        """
        previous = self._current
        if previous is not None and not previous.is_terminal:
            logger.info("Replacing active session %s", previous.id)
        await self.cancel()

        session = StreamSession(
            join_url(self.base_url, path),
            self._fetcher,
            self._mapper,
            session_id=session_id,
            initial_log=self._initial_log,
        )
        session.on_event(lambda event: self._fan_out(session, event))
        self._current = session
        session.start()
        return session

    async def cancel(self) -> None:
        """Cancel the active session, if any."""
        if self._current is not None:
            await self._current.cancel()

    async def wait(self) -> SessionSnapshot | None:
        """Wait for the active session to finish."""
        if self._current is None:
            return None
        return await self._current.wait()

    def _fan_out(self, session: StreamSession, event: SessionEvent) -> None:
        if session is not self._current:
            return
        for callback in list(self._observers):
            try:
                callback(event)
            except Exception:
                logger.exception("Controller observer failed on %r", event)
