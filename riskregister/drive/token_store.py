"""Where the Drive refresh credential lives between runs.

Only the authorized-user JSON written by google-auth is stored. Access tokens
stay inside ``TokenManager`` and are never handed to a store.
"""

from __future__ import annotations

import contextlib
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

from riskregister.lib.log import get_logger

LOGGER = get_logger(__name__)

DRIVE_TOKEN_KEY = "drive"
KEYRING_SERVICE = "riskregister-drive"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class TokenStore(Protocol):
    def load(self, key: str) -> Optional[str]:
        """Return the stored credential JSON, or None."""
        ...

    def save(self, key: str, data: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class FileTokenStore:
    """One ``<key>.json`` per credential, readable by the owner only."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def path_for(self, key: str) -> Path:
        return self._directory / f"{_UNSAFE_KEY_CHARS.sub('_', key) or '_'}.json"

    def load(self, key: str) -> Optional[str]:
        try:
            return self.path_for(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def save(self, key: str, data: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # mkstemp creates the file 0o600, so the secret is never world-readable
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


class KeyringTokenStore:
    """System keyring first; every keyring failure falls through to ``fallback``."""

    def __init__(self, fallback: FileTokenStore, *, backend: Any = None) -> None:
        self._fallback = fallback
        self._keyring = backend if backend is not None else _usable_keyring()

    @property
    def available(self) -> bool:
        return self._keyring is not None

    def load(self, key: str) -> Optional[str]:
        if self._keyring is not None:
            try:
                data = self._keyring.get_password(KEYRING_SERVICE, key)
            except Exception as exc:
                LOGGER.debug("token_store.keyring_failed", op="load", key=key, error=str(exc))
            else:
                if data is not None:
                    return data
        return self._fallback.load(key)

    def save(self, key: str, data: str) -> None:
        if self._keyring is not None:
            try:
                self._keyring.set_password(KEYRING_SERVICE, key, data)
            except Exception as exc:
                LOGGER.debug("token_store.keyring_failed", op="save", key=key, error=str(exc))
            else:
                # a stale file copy would shadow nothing but still leak the secret
                self._fallback.delete(key)
                return
        self._fallback.save(key, data)

    def delete(self, key: str) -> None:
        if self._keyring is not None:
            try:
                self._keyring.delete_password(KEYRING_SERVICE, key)
            except Exception as exc:
                LOGGER.debug("token_store.keyring_failed", op="delete", key=key, error=str(exc))
        self._fallback.delete(key)


def _usable_keyring() -> Any:
    import keyring
    from keyring.errors import KeyringError

    try:
        backend = keyring.get_keyring()
    except KeyringError:
        return None
    # keyring picks a backend from keyring.backends.fail when nothing usable exists
    if type(backend).__module__.startswith("keyring.backends.fail"):
        return None
    return keyring


def create_token_store(directory: Path, *, use_keyring: bool = True) -> TokenStore:
    file_store = FileTokenStore(directory)
    if use_keyring:
        keyring_store = KeyringTokenStore(file_store)
        if keyring_store.available:
            LOGGER.debug("token_store.selected", backend="keyring")
            return keyring_store
    LOGGER.debug("token_store.selected", backend="file", directory=str(directory))
    return file_store


__all__ = [
    "DRIVE_TOKEN_KEY",
    "FileTokenStore",
    "KeyringTokenStore",
    "TokenStore",
    "create_token_store",
]
