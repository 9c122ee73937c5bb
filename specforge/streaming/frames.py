"""Wire-level frame type for the event-stream protocol.

A frame is one blank-line-terminated unit of the text protocol::

    event: <name>      (optional, defaults to "message")
    data: <payload>    (one or more lines, joined with "\\n")
    <blank line>
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_EVENT = "message"
DONE_EVENT = "done"
ERROR_EVENT = "error"

# Payload the server sends to hold the connection open
KEEPALIVE_DATA = "{}"


@dataclass(frozen=True)
class StreamFrame:
    """A decoded protocol frame.

    Attributes:
        event_name: Value of the ``event:`` field, or None when absent.
        data: All ``data:`` lines joined with newlines.
    """

    event_name: str | None
    data: str

    @property
    def event(self) -> str:
        """Resolved event name (``message`` when unnamed)."""
        return self.event_name or DEFAULT_EVENT

    @property
    def is_keepalive(self) -> bool:
        return self.event == DEFAULT_EVENT and self.data == KEEPALIVE_DATA

    @property
    def is_done(self) -> bool:
        """Whether this frame ends the stream (``event: done``)."""
        return self.event == DONE_EVENT
