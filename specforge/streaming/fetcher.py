"""Stream fetcher: opens an authenticated event stream over HTTP.

The body is exposed as raw byte chunks so framing stays in
``specforge.streaming.parser``. Any transport that can produce a
``ByteStream`` (e.g. a native event-stream client) can be substituted
through the ``StreamFetcher`` protocol.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import httpx

from specforge.exceptions import TransportError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = logging.getLogger(__name__)

_DEFAULT_CONNECT_TIMEOUT = 10.0


class ByteStream(Protocol):
    """A one-shot sequence of raw body chunks with an idempotent release.

    Iteration raises ``ProtocolError`` when the body fails mid-read.
    """

    def __aiter__(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...


class StreamFetcher(Protocol):
    """Opens a streaming endpoint and returns its body."""

    async def open(self, url: str) -> ByteStream:
        """Open ``url`` for streaming.

        Raises:
            ProtocolError: If the stream cannot be opened (network failure,
                non-2xx status, no response body).
        """
        ...


class HttpByteStream:
    """Body of an open httpx streaming response.

    Not restartable: iterating a second time raises ``TransportError``.
    ``aclose()`` releases the connection exactly once.
    """

    def __init__(
        self,
        response: httpx.Response,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._response = response
        self._owned_client = client
        self._iterated = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._iterated:
            raise TransportError("Stream body can only be read once", url=str(self._response.url))
        self._iterated = True
        return self._iter_chunks()

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        url = str(self._response.url)
        try:
            async for chunk in self._response.aiter_bytes():
                if self._closed:
                    return
                if chunk:
                    yield chunk
        except httpx.HTTPError as e:
            if self._closed:
                return
            raise TransportError(f"Stream read failed: {e}", url=url) from e

    async def aclose(self) -> None:
        """Release the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._response.aclose()
        finally:
            if self._owned_client is not None:
                await self._owned_client.aclose()
        logger.debug("Released stream %s", self._response.url)


class HttpStreamFetcher:
    """Opens event streams with ``GET`` and a bearer token.

    Usage::

        fetcher = HttpStreamFetcher(lambda: token_store.token)
        stream = await fetcher.open("http://localhost:8080/api/v1/settings/llm/warmup")
        try:
            async for chunk in stream:
                ...
        finally:
            await stream.aclose()

    Args:
        token_getter: Returns the current bearer token, or None.
        client: Optional shared ``httpx.AsyncClient``. When omitted, a
            client is created per stream and closed with it.
        connect_timeout: Seconds allowed to establish the connection.
            Reads never time out; streams stay open until the server
            closes them or the caller releases them.
    """

    _ALLOWED_SCHEMES = {"http", "https"}

    def __init__(
        self,
        token_getter: Callable[[], str | None],
        *,
        client: httpx.AsyncClient | None = None,
        connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self._token_getter = token_getter
        self._client = client
        self.connect_timeout = connect_timeout

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
        }
        token = self._token_getter()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def open(self, url: str) -> HttpByteStream:
        """Issue the request and return the response body as a byte stream.

        Raises:
            TransportError: Invalid URL, network failure, non-2xx status,
                or a response without a body.
        """
        from urllib.parse import urlparse

        scheme = urlparse(url).scheme
        if scheme not in self._ALLOWED_SCHEMES:
            raise TransportError(f"Invalid URL scheme '{scheme}'", url=url)

        owned_client: httpx.AsyncClient | None = None
        client = self._client
        if client is None:
            owned_client = client = httpx.AsyncClient(
                timeout=httpx.Timeout(None, connect=self.connect_timeout),
            )

        try:
            request = client.build_request("GET", url, headers=self._build_headers())
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            if owned_client is not None:
                await owned_client.aclose()
            raise TransportError(f"Stream request failed: {e}", url=url) from e

        if not response.is_success:
            await response.aclose()
            if owned_client is not None:
                await owned_client.aclose()
            raise TransportError(
                f"HTTP {response.status_code} opening stream",
                status_code=response.status_code,
                url=url,
            )

        if response.stream is None:
            await response.aclose()
            if owned_client is not None:
                await owned_client.aclose()
            raise TransportError("no response body", status_code=response.status_code, url=url)

        logger.info("Opened stream %s (HTTP %s)", url, response.status_code)
        return HttpByteStream(response, client=owned_client)


__all__ = ["ByteStream", "HttpByteStream", "HttpStreamFetcher", "StreamFetcher"]
