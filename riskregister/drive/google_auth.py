from __future__ import annotations

import asyncio
import importlib
import json
from datetime import datetime, timezone
from typing import Any, Optional

from riskregister.config import ConfigError, DriveConfig
from riskregister.lib.log import get_logger

from .token_store import DRIVE_TOKEN_KEY, TokenStore
from .tokens import AuthError, TokenGrant, TokenManager

LOGGER = get_logger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


def _import_module(name: str) -> Any:
    try:
        return importlib.import_module(name)
    except ModuleNotFoundError as exc:
        raise ConfigError(
            "Drive dependencies are not available. Install google-auth + google-auth-oauthlib."
        ) from exc


def _expires_in(expiry: Optional[datetime]) -> Optional[float]:
    # google-auth keeps expiry as a naive UTC datetime
    if expiry is None:
        return None
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return max(0.0, (expiry - datetime.now(timezone.utc)).total_seconds())


class GoogleIdentityProvider:
    """Google OAuth2 for an installed app.

    Interactive requests run the browser consent flow through a local
    redirect server. Silent requests refresh the authorized-user credential
    saved by an earlier consent and never show UI.
    """

    def __init__(self, config: DriveConfig, *, token_store: Optional[TokenStore] = None) -> None:
        self._config = config
        self._token_store = token_store
        self._client_config: Optional[dict[str, Any]] = None

    def is_ready(self) -> bool:
        path = self._config.credentials_path
        if self._config.client_id:
            return True
        return path is not None and path.is_file()

    def initialize(self) -> None:
        path = self._config.credentials_path
        if not self._config.client_id and path is not None:
            try:
                self._client_config = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                raise ConfigError(f"Drive credentials at {path} are unreadable: {exc}") from exc
            return
        self._client_config = {
            "installed": {
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": ["http://localhost"],
            }
        }

    async def request_token(self, *, interactive: bool) -> TokenGrant:
        if self._client_config is None:
            raise ConfigError("Identity provider used before initialization.")
        if interactive:
            creds = await self._consent()
        else:
            creds = await self._refresh_stored()
        self._persist(creds)
        return TokenGrant(access_token=creds.token, expires_in=_expires_in(creds.expiry))

    def forget(self) -> None:
        if self._token_store is not None:
            self._token_store.delete(DRIVE_TOKEN_KEY)

    async def _refresh_stored(self) -> Any:
        credentials_cls = _import_module("google.oauth2.credentials").Credentials
        request_cls = _import_module("google.auth.transport.requests").Request
        refresh_error = _import_module("google.auth.exceptions").RefreshError

        raw = self._token_store.load(DRIVE_TOKEN_KEY) if self._token_store is not None else None
        if not raw:
            raise AuthError("interaction_required", "No stored Drive authorization; consent is required.")
        try:
            creds = credentials_cls.from_authorized_user_info(json.loads(raw), [self._config.scope])
        except (ValueError, json.JSONDecodeError) as exc:
            raise AuthError("interaction_required", f"Stored Drive authorization is invalid: {exc}") from exc
        if not creds.refresh_token:
            raise AuthError("interaction_required", "Stored Drive authorization cannot be refreshed.")
        try:
            await asyncio.to_thread(creds.refresh, request_cls())
        except refresh_error as exc:
            raise AuthError("refresh_failed", f"Failed to refresh Drive authorization: {exc}") from exc
        return creds

    async def _consent(self) -> Any:
        flow_cls = _import_module("google_auth_oauthlib.flow").InstalledAppFlow
        flow = flow_cls.from_client_config(self._client_config, [self._config.scope])
        try:
            return await asyncio.to_thread(
                flow.run_local_server,
                port=0,
                open_browser=True,
                authorization_prompt_message="Open this URL in your browser to authorize Drive access: {url}",
            )
        except OSError as exc:
            raise AuthError("redirect_unavailable", f"Could not start the local consent redirect: {exc}") from exc
        except Exception as exc:
            # oauthlib reports denial and provider failures with an ``error`` code
            reason = getattr(exc, "error", None) or "provider_error"
            raise AuthError(str(reason), f"Drive authorization failed: {exc}") from exc

    def _persist(self, creds: Any) -> None:
        if self._token_store is None or not getattr(creds, "refresh_token", None):
            return
        self._token_store.save(DRIVE_TOKEN_KEY, creds.to_json())
        LOGGER.debug("drive.credentials_saved", scope=self._config.scope)


def build_token_manager(config: DriveConfig, *, token_store: Optional[TokenStore] = None) -> TokenManager:
    """TokenManager for ``config``; unconfigured clients get a manager that fails fast."""
    provider = GoogleIdentityProvider(config, token_store=token_store) if config.configured else None
    return TokenManager(
        provider,
        skew=config.token_skew,
        provider_timeout=config.provider_timeout,
        provider_poll_interval=config.provider_poll_interval,
    )


__all__ = ["GoogleIdentityProvider", "build_token_manager"]
