"""SpecForge client exception hierarchy.

Base exceptions for the streaming client with correlation ID support.

Usage:
    from specforge.exceptions import ProtocolError, TransportError

    try:
        stream = await fetcher.open(url)
    except TransportError as e:
        logger.error("Stream failed (%s): %s", e.correlation_id, e)
"""

import uuid


class SpecForgeError(Exception):
    """Base exception for all SpecForge client errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class ProtocolError(SpecForgeError):
    """Errors from consuming an event stream."""

    pass


class TransportError(ProtocolError):
    """The stream could not be opened, or the body errored mid-read.

    Raised for network failures, non-2xx responses and responses
    without a readable body.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
        correlation_id: str | None = None,
    ):
        self.status_code = status_code
        self.url = url
        super().__init__(message, correlation_id=correlation_id)


class FramingError(ProtocolError):
    """A line of the stream could not be decoded into a frame."""

    pass


class PayloadError(ProtocolError):
    """A frame's data was not valid JSON where JSON was expected."""

    def __init__(self, message: str, *, data: str = "", **kwargs):
        self.data = data
        super().__init__(message, **kwargs)


class ServerError(ProtocolError):
    """An ``error`` frame signalled by the server."""

    def __init__(self, message: str, *, retryable: bool = False, **kwargs):
        self.retryable = retryable
        super().__init__(message, **kwargs)


class SessionStateError(SpecForgeError):
    """A caller action is not allowed in the session's current state."""

    pass


class RefinementError(SpecForgeError):
    """Errors from the refinement REST endpoints."""

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs):
        self.status_code = status_code
        super().__init__(message, **kwargs)
