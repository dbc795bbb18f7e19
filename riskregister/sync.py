"""Open, save and save-as across the local and Drive backends.

``SyncOrchestrator`` is the only writer of ``DocumentIdentity``. Every public
operation returns a ``SyncResult`` instead of raising: project errors are
logged, reported through the ``Notifier`` and turned into ``FAILED``, while a
dismissed picker or prompt becomes ``CANCELLED`` without an error message.

The identity is rebound only after the underlying read or write succeeded, so
a failed save leaves the document bound exactly where it was. ``saving`` is
checked and set before the first suspension point, which makes a second save
requested while one is running return ``BUSY`` without touching any backend.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Protocol
from urllib.parse import urlsplit

from .config import DEFAULT_FILE_NAME, ConfigError
from .document import Backend, DocumentIdentity, SnapshotTracker, describe_status
from .drive.client import CloudFileClient, link_from_url, parse_identifier, share_url, view_link
from .envelope import (
    DEFAULT_MAX_HAZARDS,
    DEFAULT_MAX_ITEMS,
    DEFAULT_TITLE,
    Dataset,
    ParseError,
    check_limits,
    decode_envelope,
    decode_import_fragment,
    encode_envelope,
    normalize_payload,
)
from .errors import RiskRegisterError, UserCancelled
from .lib.log import get_logger
from .local import LocalFileBackend
from .paths import ensure_litl_suffix
from .store import DatasetStore

LOGGER = get_logger(__name__)


class SyncOutcome(str, enum.Enum):
    OPENED = "opened"
    SAVED = "saved"
    CREATED = "created"
    CANCELLED = "cancelled"
    BUSY = "busy"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncResult:
    outcome: SyncOutcome
    message: Optional[str] = None
    location: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome in {SyncOutcome.OPENED, SyncOutcome.SAVED, SyncOutcome.CREATED}


class Notifier(Protocol):
    def info(self, message: str) -> None:
        ...

    def success(self, message: str) -> None:
        ...

    def warning(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class Prompter(Protocol):
    def input(self, prompt: str, *, default: Optional[str] = None) -> Optional[str]:
        """Return the entered text, or None when the prompt was dismissed."""
        ...


BUSY_RESULT = SyncResult(SyncOutcome.BUSY, "A save is already in progress.")


class SyncOrchestrator:
    def __init__(
        self,
        store: DatasetStore,
        *,
        local: LocalFileBackend,
        cloud: CloudFileClient,
        notifier: Notifier,
        prompter: Prompter,
        identity: Optional[DocumentIdentity] = None,
        tracker: Optional[SnapshotTracker] = None,
        default_file_name: str = DEFAULT_FILE_NAME,
        app_url: Optional[str] = None,
        max_items: int = DEFAULT_MAX_ITEMS,
        max_hazards: int = DEFAULT_MAX_HAZARDS,
        max_payload_bytes: Optional[int] = None,
    ) -> None:
        self._store = store
        self._local = local
        self._cloud = cloud
        self._notifier = notifier
        self._prompter = prompter
        self.identity = identity or DocumentIdentity()
        self.tracker = tracker or SnapshotTracker(store)
        self._default_file_name = default_file_name
        self._app_url = app_url
        self._max_items = max_items
        self._max_hazards = max_hazards
        self._max_payload_bytes = max_payload_bytes

    # State -----------------------------------------------------------------
    @property
    def dirty(self) -> bool:
        return self.tracker.dirty

    def status(self) -> str:
        return describe_status(self.identity, self.tracker.dirty, self.tracker.saved_at)

    # Opening ---------------------------------------------------------------
    async def open_local(self) -> SyncResult:
        if self.identity.saving:
            return BUSY_RESULT

        async def _open() -> SyncResult:
            handle = self._local.open_picker()
            dataset, _ = self._decode(await self._local.read(handle))
            self._apply(dataset)
            self.identity.bind_local(handle)
            self.tracker.after_successful_save()
            LOGGER.info("sync.opened", backend="local", path=str(handle.path))
            self._notifier.success(f"Opened {handle.name}")
            return SyncResult(SyncOutcome.OPENED, location=str(handle.path))

        return await self._run("Open failed", _open)

    async def open_upload(self, path: Path) -> SyncResult:
        """Load a file without keeping a handle; the next save goes through save-as."""
        if self.identity.saving:
            return BUSY_RESULT

        async def _open() -> SyncResult:
            dataset, _ = self._decode(await self._local.read_upload(path))
            self._apply(dataset)
            self.identity.detach(path.name or "loaded.litl")
            self.tracker.after_successful_save()
            LOGGER.info("sync.opened", backend="upload", path=str(path))
            self._notifier.success(f"Loaded {path.name}")
            return SyncResult(SyncOutcome.OPENED, location=str(path))

        return await self._run("Invalid .litl file", _open)

    async def open_cloud(self, raw: str, *, interactive: bool = True) -> SyncResult:
        if self.identity.saving:
            return BUSY_RESULT
        return await self._run(
            "Failed to open Google Drive file",
            lambda: self._open_cloud(raw, interactive=interactive),
        )

    async def prompt_open_cloud(self) -> SyncResult:
        raw = self._prompter.input("Enter the Google Drive file link or ID to open:")
        if not raw or not raw.strip():
            return SyncResult(SyncOutcome.CANCELLED)
        return await self.open_cloud(raw, interactive=True)

    async def open_reference(self, raw: str) -> SyncResult:
        """Open without prompting first; fall back to consent only when Drive is configured."""
        if self.identity.saving:
            return BUSY_RESULT
        try:
            return await self._open_cloud(raw, interactive=False)
        except UserCancelled:
            return SyncResult(SyncOutcome.CANCELLED)
        except RiskRegisterError as exc:
            LOGGER.warning("sync.silent_open_failed", error=str(exc))
            if not self._cloud.configured:
                return self._failed("Failed to load Google Drive file from link", exc)
        return await self._run(
            "Failed to load Google Drive file from link",
            lambda: self._open_cloud(raw, interactive=True),
        )

    async def open_from_link(self, url: str) -> SyncResult:
        raw = link_from_url(url)
        if raw is None:
            return SyncResult(SyncOutcome.CANCELLED, "Link does not reference a Google Drive file.")
        return await self.open_reference(raw)

    async def _open_cloud(self, raw: str, *, interactive: bool) -> SyncResult:
        file_id = parse_identifier(raw)
        if not file_id:
            raise ParseError("Unable to determine Google Drive file ID.")
        parsed, meta = await self._cloud.download_content(file_id, interactive=interactive)
        dataset, title = normalize_payload(parsed)
        check_limits(dataset, max_items=self._max_items, max_hazards=self._max_hazards)
        if meta is not None and meta.name:
            name = meta.name
        elif title:
            name = f"{title}.litl"
        else:
            name = f"{file_id}.litl"
        self._apply(dataset)
        self.identity.bind_cloud(file_id, name)
        self.tracker.after_successful_save()
        LOGGER.info("sync.opened", backend="cloud", file_id=file_id, interactive=interactive)
        self._notifier.success(f"Opened {name} from Google Drive")
        return SyncResult(SyncOutcome.OPENED, location=view_link(file_id))

    # Saving ----------------------------------------------------------------
    async def save(self) -> SyncResult:
        if self.identity.saving:
            LOGGER.debug("sync.save_rejected", reason="busy")
            return BUSY_RESULT
        if not self.identity.can_save():
            return await self.save_as()
        if self.identity.backend is Backend.CLOUD:
            try:
                self._cloud.require_configured()
            except ConfigError as exc:
                return self._failed("Save failed", exc)

        self.identity.saving = True

        async def _save() -> SyncResult:
            try:
                content = self._encode()
                if self.identity.backend is Backend.CLOUD:
                    file_id = self.identity.cloud_id
                    assert file_id is not None
                    reference = await self._cloud.update_content(
                        file_id, content, self.identity.display_name, interactive=True
                    )
                    self.identity.bind_cloud(file_id, reference.name or self.identity.display_name)
                    location = view_link(file_id)
                else:
                    handle = self.identity.local_handle
                    assert handle is not None
                    await self._local.write(handle, content)
                    location = str(handle.path)
                self.tracker.after_successful_save()
            finally:
                self.identity.saving = False
            LOGGER.info("sync.saved", backend=self.identity.backend.value, name=self.identity.display_name)
            self._notifier.success(f"Saved {self.identity.display_name}")
            return SyncResult(SyncOutcome.SAVED, location=location)

        return await self._run("Save failed", _save)

    async def save_as(self) -> SyncResult:
        """Save to a newly chosen local file, or offer a download when no picker exists."""
        if self.identity.saving:
            return BUSY_RESULT
        self.identity.saving = True

        async def _save_as() -> SyncResult:
            try:
                content = self._encode()
                suggested = ensure_litl_suffix(self.identity.display_name or self._default_file_name)
                if self._local.is_available():
                    handle = self._local.save_picker(suggested)
                    await self._local.write(handle, content)
                    self.identity.bind_local(handle)
                    location = str(handle.path)
                else:
                    target = await self._local.offer_download(content, suggested)
                    self.identity.detach(self.identity.display_name or self._default_file_name)
                    location = str(target)
                self.tracker.after_successful_save()
            finally:
                self.identity.saving = False
            LOGGER.info("sync.saved_as", location=location)
            self._notifier.success(f"Saved {location}")
            return SyncResult(SyncOutcome.SAVED, location=location)

        return await self._run("Save As failed", _save_as)

    async def save_as_cloud(self, name: Optional[str] = None) -> SyncResult:
        """Create a new Drive file; the document is rebound to it on success."""
        if self.identity.saving:
            return BUSY_RESULT
        try:
            self._cloud.require_configured()
        except ConfigError as exc:
            return self._failed("Save to Google Drive failed", exc)
        if name is None:
            suggested = ensure_litl_suffix(self.identity.display_name or self._default_file_name)
            name = self._prompter.input("Save to Google Drive as:", default=suggested)
        if not name or not name.strip():
            return SyncResult(SyncOutcome.CANCELLED)
        file_name = name.strip()
        self.identity.saving = True

        async def _create() -> SyncResult:
            try:
                reference = await self._cloud.create_file(self._encode(), file_name, interactive=True)
                self.identity.bind_cloud(reference.id, reference.name or file_name)
                self.tracker.after_successful_save()
            finally:
                self.identity.saving = False
            LOGGER.info("sync.created", file_id=reference.id)
            self._notifier.success(f"Saved {self.identity.display_name} to Google Drive")
            return SyncResult(SyncOutcome.CREATED, location=view_link(reference.id))

        return await self._run("Save to Google Drive failed", _create)

    async def save_to_cloud(self, raw: str, name: Optional[str] = None) -> SyncResult:
        """Overwrite an existing Drive file named by link or id and bind to it."""
        if self.identity.saving:
            return BUSY_RESULT
        file_id = parse_identifier(raw)
        if not file_id:
            return self._failed("Save to Google Drive failed", ParseError("Unable to determine Google Drive file ID."))
        try:
            self._cloud.require_configured()
        except ConfigError as exc:
            return self._failed("Save to Google Drive failed", exc)
        self.identity.saving = True

        async def _update() -> SyncResult:
            fallback = name or self.identity.display_name or f"{file_id}.litl"
            try:
                reference = await self._cloud.update_content(file_id, self._encode(), fallback, interactive=True)
                self.identity.bind_cloud(file_id, reference.name or fallback)
                self.tracker.after_successful_save()
            finally:
                self.identity.saving = False
            LOGGER.info("sync.saved", backend="cloud", file_id=file_id)
            self._notifier.success(f"Saved {self.identity.display_name} to Google Drive")
            return SyncResult(SyncOutcome.SAVED, location=view_link(file_id))

        return await self._run("Save to Google Drive failed", _update)

    # Document lifecycle ----------------------------------------------------
    def new_document(self) -> SyncResult:
        if self.identity.saving:
            return BUSY_RESULT
        self._store.replace_all(Dataset())
        self.identity.reset()
        self.tracker.forget_baseline()
        LOGGER.debug("sync.new_document")
        return SyncResult(SyncOutcome.OPENED)

    def import_link(self, url: str) -> SyncResult:
        """Apply an ``#import=`` link as a new document bound to no backend."""
        if self.identity.saving:
            return BUSY_RESULT
        fragment = urlsplit(url).fragment if "://" in url else url
        try:
            dataset = decode_import_fragment(
                fragment, max_items=self._max_items, max_hazards=self._max_hazards
            )
        except RiskRegisterError as exc:
            return self._failed("Failed to import from link", exc)
        self._apply(dataset)
        self.identity.reset()
        self.tracker.after_successful_save()
        LOGGER.info("sync.imported", items=len(dataset.items), hazards=len(dataset.hazards))
        self._notifier.success("Imported from link")
        return SyncResult(SyncOutcome.OPENED)

    def share_link(self) -> Optional[str]:
        if self.identity.backend is not Backend.CLOUD or not self.identity.cloud_id:
            self._notifier.warning("No Google Drive file to share. Save to Google Drive first.")
            return None
        if self._app_url:
            return share_url(self._app_url, self.identity.cloud_id)
        return view_link(self.identity.cloud_id)

    # Internal utilities ----------------------------------------------------
    def _decode(self, raw: bytes) -> tuple[Dataset, Optional[str]]:
        return decode_envelope(
            raw,
            max_bytes=self._max_payload_bytes,
            max_items=self._max_items,
            max_hazards=self._max_hazards,
        )

    def _encode(self) -> bytes:
        return encode_envelope(self._store.snapshot(), title=DEFAULT_TITLE)

    def _apply(self, dataset: Dataset) -> None:
        self._store.replace_all(dataset)

    async def _run(self, failure: str, operation: Callable[[], Awaitable[SyncResult]]) -> SyncResult:
        try:
            return await operation()
        except UserCancelled:
            LOGGER.debug("sync.cancelled", action=failure)
            return SyncResult(SyncOutcome.CANCELLED)
        except RiskRegisterError as exc:
            return self._failed(failure, exc)

    def _failed(self, failure: str, exc: RiskRegisterError) -> SyncResult:
        message = f"{failure}: {exc}"
        LOGGER.error("sync.failed", action=failure, error=str(exc), error_type=type(exc).__name__, exc_info=exc)
        self._notifier.error(message)
        return SyncResult(SyncOutcome.FAILED, message)


__all__ = [
    "Notifier",
    "Prompter",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncResult",
]
