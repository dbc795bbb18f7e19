"""Authorized HTTP execution against the Drive REST API.

Requests go out without credentials first. A 401/403 answer triggers one
token acquisition and exactly one authenticated retry; whatever that retry
returns is what the caller sees. Upload calls skip the anonymous attempt and
carry a bearer token from the start.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import httpx

from riskregister.errors import RiskRegisterError
from riskregister.lib.log import get_logger

from .tokens import TokenManager

LOGGER = get_logger(__name__)

AUTH_CHALLENGE_STATUSES = frozenset({401, 403})


class NetworkError(RiskRegisterError):
    """Request never produced a usable response (connect, timeout, redirect loop, bad encoding)."""


class ResponseTooLarge(RiskRegisterError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Response too large ({size} bytes > {limit})")
        self.size = size
        self.limit = limit


@dataclass(frozen=True)
class DriveRequest:
    """Immutable description of one HTTP call; rebuilt into a fresh httpx.Request per attempt."""

    method: str
    url: str
    params: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    content: Optional[bytes] = None

    def with_header(self, name: str, value: str) -> "DriveRequest":
        return replace(self, headers={**self.headers, name: value})


class AuthorizedRequestExecutor:
    def __init__(
        self,
        client: httpx.AsyncClient,
        tokens: TokenManager,
        *,
        timeout: float = 60.0,
    ) -> None:
        self._client = client
        self._tokens = tokens
        self._timeout = timeout

    @property
    def tokens(self) -> TokenManager:
        return self._tokens

    async def execute(
        self,
        request: DriveRequest,
        *,
        try_unauthenticated_first: bool = True,
        interactive: bool = True,
        stream: bool = False,
    ) -> httpx.Response:
        """Run ``request``; with ``stream`` the body is left unread for ``read_body``."""
        if not try_unauthenticated_first:
            return await self._send_authorized(request, interactive=interactive, stream=stream)

        response = await self._send(request, stream=stream)
        if response.status_code not in AUTH_CHALLENGE_STATUSES:
            return response
        if not self._tokens.configured:
            return response
        LOGGER.debug("drive.auth_retry", method=request.method, url=request.url, status=response.status_code)
        await response.aclose()
        return await self._send_authorized(request, interactive=interactive, stream=stream)

    async def _send_authorized(
        self, request: DriveRequest, *, interactive: bool, stream: bool = False
    ) -> httpx.Response:
        token = await self._tokens.ensure_token(interactive=interactive)
        response = await self._send(request.with_header("Authorization", token.header), stream=stream)
        if response.status_code == 401:
            # the provider rejected a token we believed valid
            self._tokens.invalidate()
        return response

    async def _send(self, request: DriveRequest, *, stream: bool = False) -> httpx.Response:
        built = self._client.build_request(
            request.method,
            request.url,
            params=request.params or None,
            headers=request.headers,
            content=request.content,
            timeout=self._timeout,
        )
        try:
            response = await self._client.send(built, stream=stream)
        except httpx.RequestError as exc:
            raise NetworkError(f"{request.method} {request.url} failed: {exc}") from exc
        return response


async def read_body(response: httpx.Response, *, max_bytes: Optional[int] = None) -> bytes:
    """Read and close a streamed response, stopping as soon as it outgrows ``max_bytes``."""
    request = response.request
    try:
        declared = response.headers.get("Content-Length", "")
        if max_bytes is not None and declared.isdigit() and int(declared) > max_bytes:
            raise ResponseTooLarge(int(declared), max_bytes)
        chunks: List[bytes] = []
        size = 0
        async for chunk in response.aiter_bytes():
            size += len(chunk)
            if max_bytes is not None and size > max_bytes:
                raise ResponseTooLarge(size, max_bytes)
            chunks.append(chunk)
    except httpx.RequestError as exc:
        raise NetworkError(f"{request.method} {request.url} failed: {exc}") from exc
    finally:
        await response.aclose()
    return b"".join(chunks)


__all__ = ["AuthorizedRequestExecutor", "DriveRequest", "NetworkError", "ResponseTooLarge", "read_body"]
