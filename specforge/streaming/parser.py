"""Frame parser: decodes a chunked byte stream into protocol frames.

Transport chunk boundaries are not frame boundaries: a frame may be split
across chunks (even inside a multi-byte UTF-8 sequence) and one chunk may
carry several frames. ``FrameParser`` keeps a byte-level carry-over buffer
and only emits frames terminated by a blank line.

``parse_frames`` wraps the parser around an async chunk iterator, drops
keep-alive frames and stops as soon as a ``done`` frame is seen.
"""

from __future__ import annotations

import contextlib
import inspect
import logging
from typing import TYPE_CHECKING

from specforge.exceptions import FramingError
from specforge.streaming.frames import StreamFrame

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterable

logger = logging.getLogger(__name__)


class FrameParser:
    """Incremental parser for ``text/event-stream``-style bodies.

    Usage::

        parser = FrameParser()
        for chunk in chunks:
            for frame in parser.feed(chunk):
                handle(frame)
    """

    def __init__(self) -> None:
        self._buffer = b""
        self._event_name: str | None = None
        self._data_lines: list[str] = []
        self._has_fields = False
        self._corrupt = False

    def feed(self, chunk: bytes) -> list[StreamFrame]:
        """Consume a raw chunk and return the frames it completes."""
        frames: list[StreamFrame] = []
        if not chunk:
            return frames

        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")

        for raw_line in lines:
            # Trim CR from Windows-style endings
            if raw_line.endswith(b"\r"):
                raw_line = raw_line[:-1]

            if not raw_line:
                frame = self._finish_frame()
                if frame is not None:
                    frames.append(frame)
                continue

            try:
                line = raw_line.decode("utf-8")
            except UnicodeDecodeError as e:
                err = FramingError(f"Undecodable stream line: {e}")
                logger.warning(
                    "%s (correlation_id=%s); skipping frame. Raw line: %r",
                    err,
                    err.correlation_id,
                    raw_line[:200],
                )
                self._corrupt = True
                self._has_fields = True
                continue

            self._handle_line(line)

        return frames

    def reset(self) -> None:
        """Discard any partially buffered line or frame."""
        self._buffer = b""
        self._clear_frame()

    @property
    def has_pending(self) -> bool:
        """Whether bytes or fields are buffered without a terminating blank line."""
        return bool(self._buffer) or self._has_fields

    def _handle_line(self, line: str) -> None:
        if line.startswith(":"):
            # Comment line
            return

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event_name = value
            self._has_fields = True
        elif field == "data":
            self._data_lines.append(value)
            self._has_fields = True
        else:
            # id:, retry: and unknown fields carry nothing we act on
            logger.debug("Ignoring stream field %r", field)

    def _finish_frame(self) -> StreamFrame | None:
        if not self._has_fields:
            return None

        if self._corrupt:
            self._clear_frame()
            return None

        frame = StreamFrame(event_name=self._event_name, data="\n".join(self._data_lines))
        self._clear_frame()
        return frame

    def _clear_frame(self) -> None:
        self._event_name = None
        self._data_lines = []
        self._has_fields = False
        self._corrupt = False


async def parse_frames(
    chunks: AsyncIterable[bytes],
    *,
    parser: FrameParser | None = None,
) -> AsyncGenerator[StreamFrame, None]:
    """Yield frames decoded from an async sequence of byte chunks.

    Keep-alive frames (``data: {}`` on the default event) are dropped.
    Iteration ends when the chunk sequence ends, or right after a ``done``
    frame has been yielded; bytes after it are left unread. ``error``
    frames are passed through: only the frame mapper knows whether one is
    retryable, so the consumer decides when to stop. A partial frame still
    buffered at the end is discarded, and an async-generator source is
    closed when iteration ends.

    Args:
        chunks: Raw body chunks, e.g. from a ``ByteStream``.
        parser: Optional parser instance (a fresh one is used by default).

    Yields:
        StreamFrame values in wire order.
    """
    parser = parser or FrameParser()

    source = aiter(chunks)
    closing = (
        contextlib.aclosing(source)
        if inspect.isasyncgen(source)
        else contextlib.nullcontext(source)
    )
    async with closing:
        async for chunk in source:
            for frame in parser.feed(chunk):
                if frame.is_keepalive:
                    continue
                yield frame
                if frame.is_done:
                    return

    if parser.has_pending:
        logger.debug("Stream ended with an unterminated frame; discarding it")
    parser.reset()
