"""Which backend the open document is bound to, and whether it has unsaved changes.

``DocumentIdentity`` is the single record of where the document lives. Only
``SyncOrchestrator`` mutates it, and only after an open or save has fully
succeeded. ``SnapshotTracker`` compares a canonical serialization of the
dataset against the last saved one; edits mark the document dirty through a
cancelable debounce, bulk changes recompute immediately.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .envelope import Dataset
from .lib import json as jsonlib
from .local import LocalFileHandle
from .store import DatasetStore

DEFAULT_DEBOUNCE_SECONDS = 0.15


class Backend(str, enum.Enum):
    NONE = "none"
    LOCAL = "local"
    CLOUD = "cloud"


@dataclass
class DocumentIdentity:
    backend: Backend = Backend.NONE
    display_name: Optional[str] = None
    cloud_id: Optional[str] = None
    local_handle: Optional[LocalFileHandle] = None
    saving: bool = False

    def bind_cloud(self, file_id: str, name: Optional[str]) -> None:
        self.backend = Backend.CLOUD
        self.cloud_id = file_id
        self.local_handle = None
        self.display_name = name

    def bind_local(self, handle: LocalFileHandle) -> None:
        self.backend = Backend.LOCAL
        self.local_handle = handle
        self.cloud_id = None
        self.display_name = handle.name

    def detach(self, name: Optional[str]) -> None:
        """Unbind from any backend but keep a display name (uploads and downloads)."""
        self.backend = Backend.NONE
        self.cloud_id = None
        self.local_handle = None
        self.display_name = name

    def reset(self) -> None:
        self.detach(None)

    def can_save(self) -> bool:
        if self.backend is Backend.CLOUD:
            return bool(self.cloud_id)
        if self.backend is Backend.LOCAL:
            return self.local_handle is not None and self.local_handle.supports_writing
        return False

    @property
    def label(self) -> str:
        if self.backend is Backend.CLOUD:
            return " (Drive)"
        if self.backend is Backend.LOCAL:
            return " (Local)"
        return ""


def canonical_snapshot(dataset: Dataset) -> str:
    """Serialize ``dataset`` independent of in-memory ordering."""

    def by_id(records: list[dict]) -> list[dict]:
        return sorted(records, key=lambda record: _sort_key(record.get("id")))

    return jsonlib.dumps(
        {
            "items": by_id(dataset.items),
            "hazards": by_id(dataset.hazards),
            "objectives": by_id(dataset.objectives),
        },
        sort_keys=True,
    )


def _sort_key(value: object) -> tuple[int, str]:
    if isinstance(value, int) and not isinstance(value, bool):
        return (value, "")
    return (0, str(value or ""))


class Debouncer:
    """One pending callback at a time; scheduling again replaces the pending one."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._delay = delay
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()


class SnapshotTracker:
    def __init__(
        self,
        store: DatasetStore,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._clock = clock
        self._baseline: Optional[str] = None
        self._dirty = False
        self._saved_at: Optional[datetime] = None
        self._debouncer = Debouncer(debounce_seconds, self.mark_dirty)

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def saved_at(self) -> Optional[datetime]:
        return self._saved_at

    @property
    def debounce_pending(self) -> bool:
        return self._debouncer.pending

    def snapshot(self) -> str:
        return canonical_snapshot(self._store.snapshot())

    def mark_dirty(self) -> None:
        self._dirty = True

    def mark_dirty_later(self) -> None:
        """Call after every edit; a burst of edits collapses into one update."""
        self._debouncer.schedule()

    def recompute_dirty(self) -> bool:
        self._debouncer.cancel()
        self._dirty = self.snapshot() != self._baseline
        return self._dirty

    def after_successful_save(self) -> None:
        self._debouncer.cancel()
        self._baseline = self.snapshot()
        self._dirty = False
        self._saved_at = self._clock()

    def forget_baseline(self) -> None:
        """Drop the saved baseline: a fresh document counts as unsaved."""
        self._debouncer.cancel()
        self._baseline = None
        self._dirty = True
        self._saved_at = None


def describe_status(identity: DocumentIdentity, dirty: bool, saved_at: Optional[datetime]) -> str:
    base = f"File: {identity.display_name}{identity.label}" if identity.display_name else "Unsaved"
    if identity.saving:
        return f"{base} • Saving…"
    if dirty:
        return f"{base} • Unsaved changes"
    stamp = (saved_at or datetime.now()).strftime("%H:%M")
    return f"{base} • Saved {stamp}"


__all__ = [
    "Backend",
    "Debouncer",
    "DocumentIdentity",
    "SnapshotTracker",
    "canonical_snapshot",
    "describe_status",
]
