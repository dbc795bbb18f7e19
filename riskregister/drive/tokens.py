"""OAuth2 access-token lifecycle for the Drive backend.

``TokenManager`` owns exactly one access token and at most one pending
acquisition. Concurrent callers that need a token while an acquisition is in
flight join its waiter list and all observe the same outcome, so a burst of
requests never opens more than one consent prompt.

The token lives for the document session only: it is dropped on sign-out,
on any authorization error, and never written to disk. Silent re-authorization
relies on the identity provider's own refresh credential instead.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_delay, wait_fixed

from riskregister.config import ConfigError
from riskregister.errors import RiskRegisterError, UserCancelled
from riskregister.lib.log import get_logger

LOGGER = get_logger(__name__)

DEFAULT_EXPIRES_IN = 3600
DEFAULT_SKEW_SECONDS = 5.0
DEFAULT_PROVIDER_TIMEOUT = 6.0
DEFAULT_PROVIDER_POLL = 0.12


class AuthError(RiskRegisterError):
    """Consent denied, popup/redirect blocked, or an identity-provider error."""

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Authorization failed: {reason}")
        self.reason = reason


class ProviderUnavailable(RiskRegisterError):
    """The identity provider did not become ready within the timeout."""


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    expires_in: Optional[float] = None


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: float

    def is_valid(self, now: float, skew: float = DEFAULT_SKEW_SECONDS) -> bool:
        return bool(self.value) and now < self.expires_at - skew

    @property
    def header(self) -> str:
        return f"Bearer {self.value}"


@dataclass
class PendingTokenRequest:
    interactive: bool
    waiters: list[asyncio.Future[AccessToken]] = field(default_factory=list)
    task: Optional[asyncio.Task[None]] = None


class IdentityProvider(Protocol):
    def is_ready(self) -> bool:
        """Return True once the provider can accept token requests."""
        ...

    def initialize(self) -> None:
        """One-time client setup; called at most once per TokenManager."""
        ...

    async def request_token(self, *, interactive: bool) -> TokenGrant:
        ...

    def forget(self) -> None:
        """Drop any credential the provider keeps for silent re-authorization."""
        ...


class TokenManager:
    def __init__(
        self,
        provider: Optional[IdentityProvider],
        *,
        skew: float = DEFAULT_SKEW_SECONDS,
        provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT,
        provider_poll_interval: float = DEFAULT_PROVIDER_POLL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._skew = skew
        self._provider_timeout = provider_timeout
        self._provider_poll_interval = provider_poll_interval
        self._clock = clock
        self._token: Optional[AccessToken] = None
        self._pending: Optional[PendingTokenRequest] = None
        self._initialized = False

    @property
    def configured(self) -> bool:
        return self._provider is not None

    @property
    def token(self) -> Optional[AccessToken]:
        return self._token

    @property
    def pending(self) -> Optional[PendingTokenRequest]:
        return self._pending

    def require_configured(self) -> None:
        """Raise ConfigError without touching the network when no client is configured."""
        if self._provider is None:
            raise ConfigError("Google Drive client ID is not configured.")

    def has_valid_token(self) -> bool:
        return self._token is not None and self._token.is_valid(self._clock(), self._skew)

    def invalidate(self) -> None:
        self._token = None

    def sign_out(self) -> None:
        self.invalidate()
        if self._provider is not None:
            self._provider.forget()

    async def ensure_token(self, interactive: bool = True) -> AccessToken:
        self.require_configured()
        token = self._token
        if token is not None and token.is_valid(self._clock(), self._skew):
            return token

        waiter: asyncio.Future[AccessToken] = asyncio.get_running_loop().create_future()
        pending = self._pending
        if pending is None:
            pending = PendingTokenRequest(interactive=interactive)
            pending.waiters.append(waiter)
            self._pending = pending
            pending.task = asyncio.create_task(self._acquire(pending))
        else:
            LOGGER.debug("token.coalesced", waiters=len(pending.waiters) + 1)
            pending.waiters.append(waiter)
        return await waiter

    async def _acquire(self, pending: PendingTokenRequest) -> None:
        assert self._provider is not None
        try:
            await self._wait_for_provider()
            if not self._initialized:
                self._provider.initialize()
                self._initialized = True
            grant = await self._provider.request_token(interactive=pending.interactive)
        except asyncio.CancelledError:
            self._pending = None
            for waiter in pending.waiters:
                waiter.cancel()
            raise
        except Exception as exc:
            self._token = None
            self._pending = None
            error = exc if isinstance(exc, RiskRegisterError) else AuthError("provider_error", str(exc))
            if isinstance(error, UserCancelled):
                LOGGER.debug("token.cancelled")
            else:
                LOGGER.warning("token.failed", interactive=pending.interactive, error=str(error))
            for waiter in pending.waiters:
                if not waiter.done():
                    waiter.set_exception(error)
            return

        expires_in = DEFAULT_EXPIRES_IN if grant.expires_in is None else grant.expires_in
        token = AccessToken(value=grant.access_token, expires_at=self._clock() + float(expires_in))
        self._token = token
        self._pending = None
        LOGGER.debug("token.acquired", interactive=pending.interactive, expires_in=expires_in)
        for waiter in pending.waiters:
            if not waiter.done():
                waiter.set_result(token)

    async def _wait_for_provider(self) -> None:
        assert self._provider is not None
        provider = self._provider
        if provider.is_ready():
            return

        async def _check() -> bool:
            return provider.is_ready()

        retryer = AsyncRetrying(
            stop=stop_after_delay(self._provider_timeout),
            wait=wait_fixed(self._provider_poll_interval),
            retry=retry_if_result(lambda ready: not ready),
        )
        try:
            await retryer(_check)
        except RetryError as exc:
            raise ProviderUnavailable(
                f"Identity provider not available after {self._provider_timeout:g}s."
            ) from exc


__all__ = [
    "AccessToken",
    "AuthError",
    "IdentityProvider",
    "PendingTokenRequest",
    "ProviderUnavailable",
    "TokenGrant",
    "TokenManager",
]
