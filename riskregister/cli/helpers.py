"""CLI helper functions."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Coroutine, NoReturn, Optional, TypeVar

import httpx

from riskregister.cli.types import AppEnv
from riskregister.config import Config, ConfigError
from riskregister.document import SnapshotTracker
from riskregister.drive.client import CloudFileClient
from riskregister.drive.executor import AuthorizedRequestExecutor
from riskregister.drive.google_auth import build_token_manager
from riskregister.drive.token_store import create_token_store
from riskregister.drive.tokens import TokenManager
from riskregister.local import FilePicker, LocalFileBackend
from riskregister.paths import TOKEN_DIR
from riskregister.store import SessionStore
from riskregister.sync import SyncOrchestrator, SyncResult
from riskregister.ui import UI

T = TypeVar("T")


def fail(command: str, message: str) -> NoReturn:
    raise SystemExit(f"{command}: {message}")


def load_effective_config(env: AppEnv) -> Config:
    try:
        return env.config()
    except ConfigError as exc:
        fail("config", str(exc))


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


class PathPicker:
    """File picker that always answers with a path given on the command line."""

    def __init__(self, path: Path) -> None:
        self._path = path.expanduser()

    def pick_open(self) -> Optional[Path]:
        return self._path

    def pick_save(self, suggested_name: str) -> Optional[Path]:
        if self._path.is_dir():
            return self._path / suggested_name
        return self._path


def build_http_client(config: Config) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=config.drive.request_timeout, follow_redirects=True)


def build_tokens(config: Config) -> TokenManager:
    token_store = create_token_store(TOKEN_DIR) if config.drive.configured else None
    return build_token_manager(config.drive, token_store=token_store)


@asynccontextmanager
async def document_session(
    config: Config,
    ui: UI,
    *,
    picker: Optional[FilePicker] = None,
    tokens: Optional[TokenManager] = None,
) -> AsyncIterator[SyncOrchestrator]:
    """One editing session: an empty store bound to no backend, with its HTTP client open."""
    store = SessionStore()
    token_manager = tokens or build_tokens(config)
    async with build_http_client(config) as client:
        executor = AuthorizedRequestExecutor(client, token_manager, timeout=config.drive.request_timeout)
        cloud = CloudFileClient(
            executor,
            api_base=config.drive.api_base,
            upload_base=config.drive.upload_base,
            max_payload_bytes=config.max_payload_bytes,
        )
        local = LocalFileBackend(picker if picker is not None else ui, downloads_dir=config.downloads_dir)
        yield SyncOrchestrator(
            store,
            local=local,
            cloud=cloud,
            notifier=ui,
            prompter=ui,
            tracker=SnapshotTracker(store, debounce_seconds=config.debounce_seconds),
            default_file_name=config.default_file_name,
            app_url=config.drive.app_url,
            max_items=config.max_items,
            max_hazards=config.max_hazards,
            max_payload_bytes=config.max_payload_bytes,
        )


def require_ok(command: str, result: SyncResult) -> SyncResult:
    """Exit non-zero unless ``result`` reports a completed open or save."""
    if result.ok:
        return result
    fail(command, result.message or result.outcome.value)


__all__ = [
    "PathPicker",
    "build_http_client",
    "build_tokens",
    "document_session",
    "fail",
    "load_effective_config",
    "require_ok",
    "run_async",
]
