"""Typed session events produced from stream frames.

``SessionEvent`` is the union of the four variants the session state
machine understands. Events are created by the dispatcher and consumed
immediately; observers may keep them (the refinement console does, as an
ordered log).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Progress:
    """A human-readable progress line."""

    message: str

    @property
    def is_terminal(self) -> bool:
        return False


@dataclass(frozen=True)
class Success:
    """The operation produced its artifact.

    Attributes:
        artifact: The generated artifact (decoded JSON).
        evaluation: Optional self-evaluation sent alongside the artifact.
    """

    artifact: Any
    evaluation: Any | None = None

    @property
    def is_terminal(self) -> bool:
        return False


@dataclass(frozen=True)
class Error:
    """A server-signalled error.

    Retryable errors are transient provider failures; the stream goes on.
    """

    message: str
    retryable: bool = False

    @property
    def is_terminal(self) -> bool:
        return not self.retryable


@dataclass(frozen=True)
class Done:
    """End-of-stream marker."""

    @property
    def is_terminal(self) -> bool:
        return True


SessionEvent = Union[Progress, Success, Error, Done]  # noqa: UP007

__all__ = ["Done", "Error", "Progress", "SessionEvent", "Success"]
