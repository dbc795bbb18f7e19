"""Local ``.litl`` files.

With a ``FilePicker`` the backend hands out reusable ``LocalFileHandle``s that
later saves write to in place. Without one it degrades to one-shot
operations: ``offer_download`` writes a copy into the downloads directory and
``read_upload`` reads a file the user pointed at. Neither keeps a handle, so a
document loaded or saved that way has to go through save-as next time.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import aiofiles
import aiofiles.os

from .errors import RiskRegisterError, UserCancelled
from .lib.log import get_logger

LOGGER = get_logger(__name__)


class LocalFileError(RiskRegisterError):
    """Local read or write failure."""


class FilePicker(Protocol):
    def pick_open(self) -> Optional[Path]:
        """Return the chosen file, or None when the picker was dismissed."""
        ...

    def pick_save(self, suggested_name: str) -> Optional[Path]:
        ...


@dataclass(frozen=True)
class LocalFileHandle:
    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def supports_writing(self) -> bool:
        if self.path.exists():
            return os.access(self.path, os.W_OK)
        return os.access(self.path.parent, os.W_OK)


class LocalFileBackend:
    def __init__(self, picker: Optional[FilePicker] = None, *, downloads_dir: Optional[Path] = None) -> None:
        self._picker = picker
        self._downloads_dir = downloads_dir or Path.cwd()

    def is_available(self) -> bool:
        return self._picker is not None

    def open_picker(self) -> LocalFileHandle:
        if self._picker is None:
            raise LocalFileError("No file picker available; use read_upload instead.")
        path = self._picker.pick_open()
        if path is None:
            raise UserCancelled("Open cancelled.")
        return LocalFileHandle(path.expanduser())

    def save_picker(self, suggested_name: str) -> LocalFileHandle:
        if self._picker is None:
            raise LocalFileError("No file picker available; use offer_download instead.")
        path = self._picker.pick_save(suggested_name)
        if path is None:
            raise UserCancelled("Save cancelled.")
        return LocalFileHandle(path.expanduser())

    async def read(self, handle: LocalFileHandle) -> bytes:
        return await self._read_path(handle.path)

    async def read_upload(self, path: Path) -> bytes:
        return await self._read_path(path.expanduser())

    async def write(self, handle: LocalFileHandle, content: bytes) -> None:
        await self._write_path(handle.path, content)

    async def offer_download(self, content: bytes, suggested_name: str) -> Path:
        """Write a one-off copy into the downloads directory and return where it landed."""
        target = _unique_path(self._downloads_dir / Path(suggested_name).name)
        await self._write_path(target, content)
        LOGGER.info("local.download_offered", path=str(target))
        return target

    async def _read_path(self, path: Path) -> bytes:
        try:
            async with aiofiles.open(path, "rb") as stream:
                return await stream.read()
        except OSError as exc:
            raise LocalFileError(f"Unable to read {path}: {exc}") from exc

    async def _write_path(self, path: Path, content: bytes) -> None:
        """Write through a sibling temp file so a failed write leaves the old file intact."""
        tmp_path: Optional[Path] = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, raw_tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            os.close(fd)
            tmp_path = Path(raw_tmp)
            async with aiofiles.open(tmp_path, "wb") as stream:
                await stream.write(content)
                await stream.flush()
            await aiofiles.os.replace(tmp_path, path)
            tmp_path = None
        except OSError as exc:
            raise LocalFileError(f"Unable to write {path}: {exc}") from exc
        finally:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()


def _unique_path(path: Path) -> Path:
    if not path.exists():
        return path
    stem, suffix = path.stem, path.suffix
    counter = 1
    while True:
        candidate = path.with_name(f"{stem} ({counter}){suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


__all__ = ["FilePicker", "LocalFileBackend", "LocalFileError", "LocalFileHandle"]
