"""Unit tests for HttpStreamFetcher using httpx.MockTransport."""

import httpx
import pytest

from specforge.exceptions import ProtocolError, TransportError
from specforge.streaming.fetcher import HttpStreamFetcher
from specforge.streaming.parser import parse_frames
from tests.helpers.streams import frame_bytes

URL = "http://api.test/api/v1/settings/llm/warmup"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestRequest:
    """Request shape."""

    @pytest.mark.asyncio()
    async def test_bearer_token_attached(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=frame_bytes("event: done"))

        async with _client(handler) as client:
            fetcher = HttpStreamFetcher(lambda: "secret", client=client)
            stream = await fetcher.open(URL)
            await stream.aclose()

        assert seen[0].method == "GET"
        assert seen[0].headers["Authorization"] == "Bearer secret"
        assert seen[0].headers["Accept"] == "text/event-stream"
        assert seen[0].content == b""

    @pytest.mark.asyncio()
    async def test_no_authorization_without_token(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"")

        async with _client(handler) as client:
            for getter in (lambda: None, lambda: ""):
                stream = await HttpStreamFetcher(getter, client=client).open(URL)
                await stream.aclose()

        assert all("Authorization" not in r.headers for r in seen)

    @pytest.mark.asyncio()
    async def test_token_read_per_request(self):
        tokens = iter(["first", "second"])
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Authorization"])
            return httpx.Response(200, content=b"")

        async with _client(handler) as client:
            fetcher = HttpStreamFetcher(lambda: next(tokens), client=client)
            for _ in range(2):
                await (await fetcher.open(URL)).aclose()

        assert seen == ["Bearer first", "Bearer second"]


class TestFailures:
    """Transport failures surface as TransportError."""

    @pytest.mark.asyncio()
    async def test_non_2xx_status(self):
        async with _client(lambda request: httpx.Response(401, json={"error": "nope"})) as client:
            fetcher = HttpStreamFetcher(lambda: "t", client=client)
            with pytest.raises(TransportError) as exc_info:
                await fetcher.open(URL)

        assert exc_info.value.status_code == 401
        assert isinstance(exc_info.value, ProtocolError)

    @pytest.mark.asyncio()
    async def test_network_failure_chains_cause(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            fetcher = HttpStreamFetcher(lambda: None, client=client)
            with pytest.raises(TransportError) as exc_info:
                await fetcher.open(URL)

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio()
    async def test_invalid_scheme(self):
        fetcher = HttpStreamFetcher(lambda: None)
        with pytest.raises(TransportError, match="Invalid URL scheme"):
            await fetcher.open("ftp://api.test/stream")


class TestByteStream:
    """Reading and releasing the body."""

    @pytest.mark.asyncio()
    async def test_body_parses_into_frames(self):
        body = frame_bytes('data: {"message":"hi"}', "data: {}", "event: done\ndata: {}")

        async with _client(lambda request: httpx.Response(200, content=body)) as client:
            stream = await HttpStreamFetcher(lambda: None, client=client).open(URL)
            frames = [frame async for frame in parse_frames(stream)]
            await stream.aclose()

        assert [(f.event, f.data) for f in frames] == [
            ("message", '{"message":"hi"}'),
            ("done", "{}"),
        ]

    @pytest.mark.asyncio()
    async def test_release_is_idempotent(self):
        async with _client(lambda request: httpx.Response(200, content=b"data: x\n\n")) as client:
            stream = await HttpStreamFetcher(lambda: None, client=client).open(URL)
            await stream.aclose()
            await stream.aclose()

        assert stream.closed

    @pytest.mark.asyncio()
    async def test_not_restartable(self):
        async with _client(lambda request: httpx.Response(200, content=b"data: x\n\n")) as client:
            stream = await HttpStreamFetcher(lambda: None, client=client).open(URL)
            chunks = [chunk async for chunk in stream]
            with pytest.raises(TransportError):
                stream.__aiter__()
            await stream.aclose()

        assert b"".join(chunks) == b"data: x\n\n"

    @pytest.mark.asyncio()
    async def test_injected_client_left_open(self):
        async with _client(lambda request: httpx.Response(200, content=b"")) as client:
            stream = await HttpStreamFetcher(lambda: None, client=client).open(URL)
            await stream.aclose()
            assert not client.is_closed
