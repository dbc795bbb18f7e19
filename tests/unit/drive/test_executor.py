"""Tests for AuthorizedRequestExecutor's single authenticated retry."""

from __future__ import annotations

import httpx
import pytest

from riskregister.drive.executor import (
    AuthorizedRequestExecutor,
    DriveRequest,
    NetworkError,
    ResponseTooLarge,
    read_body,
)
from riskregister.drive.tokens import TokenManager
from tests.helpers import FakeProvider, make_tokens

FILE_ID = "1A2b3C4d5E6f"
METADATA_URL = f"https://www.googleapis.com/drive/v3/files/{FILE_ID}"


def _request() -> DriveRequest:
    return DriveRequest("GET", METADATA_URL, params={"fields": "id,name,mimeType"})


class TestAuthenticatedRetry:
    @pytest.mark.asyncio
    async def test_401_is_retried_once_with_bearer_token(self, drive):
        drive.add(FILE_ID, b"{}")
        provider = FakeProvider()
        async with drive.client() as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(provider))
            response = await executor.execute(_request())

        assert response.status_code == 200
        assert len(drive.requests) == 2
        assert "Authorization" not in drive.requests[0].headers
        assert drive.requests[1].headers["Authorization"] == "Bearer tok-1"
        assert provider.calls == [True]

    @pytest.mark.asyncio
    async def test_retried_failure_is_returned_without_third_attempt(self, drive):
        drive.add(FILE_ID, b"{}")
        drive.token = "a-different-token"
        tokens = make_tokens(FakeProvider())
        async with drive.client() as http:
            executor = AuthorizedRequestExecutor(http, tokens)
            response = await executor.execute(_request())

        assert response.status_code == 401
        assert len(drive.requests) == 2
        assert tokens.token is None

    @pytest.mark.asyncio
    async def test_403_also_triggers_retry(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if "Authorization" not in request.headers:
                return httpx.Response(403, json={"error": {"message": "forbidden"}})
            return httpx.Response(200, json={"id": FILE_ID})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(FakeProvider()))
            response = await executor.execute(_request())

        assert response.status_code == 200
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_success_needs_no_token(self, public_drive):
        public_drive.add(FILE_ID, b"{}")
        provider = FakeProvider()
        async with public_drive.client() as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(provider))
            response = await executor.execute(_request())

        assert response.status_code == 200
        assert provider.calls == []
        assert len(public_drive.requests) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_returns_original_response(self, drive):
        drive.add(FILE_ID, b"{}")
        async with drive.client() as http:
            executor = AuthorizedRequestExecutor(http, TokenManager(None))
            response = await executor.execute(_request())

        assert response.status_code == 401
        assert len(drive.requests) == 1

    @pytest.mark.asyncio
    async def test_upload_mode_skips_anonymous_attempt(self, drive):
        drive.add(FILE_ID, b"{}")
        async with drive.client() as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(FakeProvider()))
            response = await executor.execute(_request(), try_unauthenticated_first=False)

        assert response.status_code == 200
        assert len(drive.requests) == 1
        assert drive.requests[0].headers["Authorization"] == "Bearer tok-1"

    @pytest.mark.asyncio
    async def test_silent_mode_is_forwarded_to_token_request(self, drive):
        drive.add(FILE_ID, b"{}")
        provider = FakeProvider()
        async with drive.client() as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(provider))
            await executor.execute(_request(), interactive=False)

        assert provider.calls == [False]


def _redirect_loop(request: httpx.Request) -> httpx.Response:
    return httpx.Response(302, headers={"Location": str(request.url)})


async def _chunks(parts, consumed=None):
    for index, part in enumerate(parts):
        if consumed is not None:
            consumed.append(index)
        yield part


def _corrupt_gzip(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=_chunks([b"not gzip at all"]))


class TestTransportFailures:
    @pytest.mark.asyncio
    async def test_transport_error_becomes_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(FakeProvider()))
            with pytest.raises(NetworkError):
                await executor.execute(_request())

    @pytest.mark.asyncio
    async def test_redirect_loop_becomes_network_error(self):
        transport = httpx.MockTransport(_redirect_loop)
        async with httpx.AsyncClient(transport=transport, follow_redirects=True) as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(FakeProvider()))
            with pytest.raises(NetworkError, match="redirect"):
                await executor.execute(_request())

    @pytest.mark.asyncio
    async def test_undecodable_body_becomes_network_error(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(_corrupt_gzip)) as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(FakeProvider()))
            with pytest.raises(NetworkError):
                await executor.execute(_request())

    @pytest.mark.asyncio
    async def test_undecodable_streamed_body_becomes_network_error(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(_corrupt_gzip)) as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(FakeProvider()))
            response = await executor.execute(_request(), stream=True)
            with pytest.raises(NetworkError):
                await read_body(response)

        assert response.is_closed


class TestReadBody:
    @pytest.mark.asyncio
    async def test_reads_whole_body_and_closes(self, public_drive):
        public_drive.add(FILE_ID, b'{"items": []}')
        async with public_drive.client() as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(FakeProvider()))
            response = await executor.execute(_request(), stream=True)
            body = await read_body(response, max_bytes=1024)

        assert body.startswith(b"{")
        assert response.is_closed

    @pytest.mark.asyncio
    async def test_declared_length_over_limit_is_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"x" * 100)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(FakeProvider()))
            response = await executor.execute(_request(), stream=True)
            with pytest.raises(ResponseTooLarge) as excinfo:
                await read_body(response, max_bytes=32)

        assert (excinfo.value.size, excinfo.value.limit) == (100, 32)
        assert response.is_closed

    @pytest.mark.asyncio
    async def test_undeclared_length_stops_at_limit(self):
        consumed: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=_chunks([b"x" * 10] * 10, consumed))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            executor = AuthorizedRequestExecutor(http, make_tokens(FakeProvider()))
            response = await executor.execute(_request(), stream=True)
            with pytest.raises(ResponseTooLarge):
                await read_body(response, max_bytes=25)

        assert consumed == [0, 1, 2]


def test_drive_request_with_header_copies():
    request = DriveRequest("GET", METADATA_URL, headers={"Accept": "application/json"})
    authed = request.with_header("Authorization", "Bearer x")

    assert "Authorization" not in request.headers
    assert authed.headers == {"Accept": "application/json", "Authorization": "Bearer x"}
