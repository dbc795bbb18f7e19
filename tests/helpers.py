"""Fakes shared by the riskregister tests: identity provider, Drive API, UI."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import httpx

from riskregister.document import SnapshotTracker
from riskregister.drive.client import CloudFileClient
from riskregister.drive.executor import AuthorizedRequestExecutor
from riskregister.drive.tokens import TokenGrant, TokenManager
from riskregister.envelope import LITL_MIME_TYPE, Dataset, encode_envelope
from riskregister.local import LocalFileBackend
from riskregister.store import SessionStore
from riskregister.sync import SyncOrchestrator

GOOD_TOKEN = "tok-1"


class FakeProvider:
    """Identity provider that hands out ``token`` and records every request."""

    def __init__(
        self,
        *,
        token: str = GOOD_TOKEN,
        expires_in: Optional[float] = 3600,
        silent_error: Optional[Exception] = None,
        interactive_error: Optional[Exception] = None,
        ready: bool = True,
        delay: float = 0.0,
    ) -> None:
        self.token = token
        self.expires_in = expires_in
        self.silent_error = silent_error
        self.interactive_error = interactive_error
        self.ready = ready
        self.delay = delay
        self.calls: list[bool] = []
        self.initialized = 0
        self.forgotten = 0

    def is_ready(self) -> bool:
        return self.ready

    def initialize(self) -> None:
        self.initialized += 1

    async def request_token(self, *, interactive: bool) -> TokenGrant:
        self.calls.append(interactive)
        if self.delay:
            await asyncio.sleep(self.delay)
        error = self.interactive_error if interactive else self.silent_error
        if error is not None:
            raise error
        return TokenGrant(access_token=self.token, expires_in=self.expires_in)

    def forget(self) -> None:
        self.forgotten += 1

    @property
    def consent_flows(self) -> int:
        return sum(1 for interactive in self.calls if interactive)


class FakeDrive:
    """In-memory stand-in for the Drive v3 REST endpoints, served through httpx.MockTransport."""

    def __init__(self, *, public: bool = False, token: str = GOOD_TOKEN) -> None:
        self.public = public
        self.token = token
        self.files: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.fail: dict[str, int] = {}
        self._created = 0

    def add(self, file_id: str, content: bytes, name: Optional[str] = "register.litl") -> None:
        self.files[file_id] = {"name": name, "content": content}

    def add_dataset(self, file_id: str, dataset: Dataset, name: Optional[str] = "register.litl") -> None:
        self.add(file_id, encode_envelope(dataset), name)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    def calls(self, method: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.method == method]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        authorized = request.headers.get("Authorization") == f"Bearer {self.token}"
        if not authorized and not (self.public and request.method == "GET"):
            return _error(401, "Request is missing required authentication credential.")

        path = request.url.path
        if request.method == "GET" and path.startswith("/drive/v3/files/"):
            file_id = path.rsplit("/", 1)[-1]
            entry = self.files.get(file_id)
            if entry is None:
                return _error(404, f"File not found: {file_id}.")
            if request.url.params.get("alt") == "media":
                if "download" in self.fail:
                    return _error(self.fail["download"], "Download failed.")
                return httpx.Response(200, content=entry["content"])
            if "metadata" in self.fail:
                return _error(self.fail["metadata"], "Metadata unavailable.")
            payload = {"id": file_id, "mimeType": LITL_MIME_TYPE}
            if entry["name"] is not None:
                payload["name"] = entry["name"]
            return httpx.Response(200, json=payload)

        if request.method == "PATCH" and path.startswith("/upload/drive/v3/files/"):
            if "update" in self.fail:
                return _error(self.fail["update"], "Update failed.")
            file_id = path.rsplit("/", 1)[-1]
            entry = self.files.get(file_id)
            if entry is None:
                return _error(404, f"File not found: {file_id}.")
            entry["content"] = request.content
            return httpx.Response(200, json={"id": file_id, "name": entry["name"]})

        if request.method == "POST" and path == "/upload/drive/v3/files":
            if "create" in self.fail:
                return _error(self.fail["create"], "Create failed.")
            metadata, content = parse_multipart(request)
            self._created += 1
            file_id = f"NEWFILE{self._created:05d}"
            self.files[file_id] = {"name": metadata["name"], "content": content}
            return httpx.Response(200, json={"id": file_id, "name": metadata["name"]})

        return _error(404, "Not found.")


def _error(status: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": status, "message": message}})


def parse_multipart(request: httpx.Request) -> tuple[dict[str, Any], bytes]:
    content_type = request.headers["Content-Type"]
    boundary = content_type.split("boundary=", 1)[1].encode("ascii")
    parts = request.content.split(b"--" + boundary)
    bodies = []
    for part in parts[1:]:
        if part.startswith(b"--"):
            break
        _, _, body = part.partition(b"\r\n\r\n")
        bodies.append(body[:-2] if body.endswith(b"\r\n") else body)
    metadata = json.loads(bodies[0])
    return metadata, bodies[1]


class RecordingUI:
    """Notifier + prompter that records messages and answers prompts from a script."""

    def __init__(self, answers: Optional[list[Optional[str]]] = None) -> None:
        self.messages: list[tuple[str, str]] = []
        self.prompts: list[str] = []
        self._answers = list(answers or [])

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def input(self, prompt: str, *, default: Optional[str] = None) -> Optional[str]:
        self.prompts.append(prompt)
        if self._answers:
            return self._answers.pop(0)
        return default

    def of(self, level: str) -> list[str]:
        return [message for kind, message in self.messages if kind == level]


class StaticPicker:
    def __init__(self, open_path: Optional[Path] = None, save_path: Optional[Path] = None) -> None:
        self.open_path = open_path
        self.save_path = save_path
        self.suggestions: list[str] = []

    def pick_open(self) -> Optional[Path]:
        return self.open_path

    def pick_save(self, suggested_name: str) -> Optional[Path]:
        self.suggestions.append(suggested_name)
        return self.save_path


def sample_dataset() -> Dataset:
    return Dataset(
        items=[
            {"id": 1, "title": "River flood", "hazardId": 1, "planMitigations": [{"id": "m1", "objectiveId": 1}]},
            {"id": 2, "title": "Heatwave", "hazardId": 2},
        ],
        hazards=[{"id": 1, "title": "Flooding"}, {"id": 2, "title": "Extreme heat"}],
        objectives=[
            {
                "id": 1,
                "title": "Raise levee",
                "description": "",
                "status": "Planned",
                "owner": "Works",
                "color": "",
                "createdAt": "2024-01-01T00:00:00+00:00",
                "updatedAt": "2024-01-01T00:00:00+00:00",
            }
        ],
    )


def make_tokens(provider: Optional[FakeProvider], **kwargs: Any) -> TokenManager:
    kwargs.setdefault("provider_timeout", 0.2)
    kwargs.setdefault("provider_poll_interval", 0.01)
    return TokenManager(provider, **kwargs)


def make_orchestrator(
    http: httpx.AsyncClient,
    *,
    provider: Optional[FakeProvider] = None,
    ui: Optional[RecordingUI] = None,
    picker: Optional[StaticPicker] = None,
    downloads_dir: Optional[Path] = None,
    store: Optional[SessionStore] = None,
    **kwargs: Any,
) -> SyncOrchestrator:
    store = store or SessionStore()
    ui = ui or RecordingUI()
    executor = AuthorizedRequestExecutor(http, make_tokens(provider))
    return SyncOrchestrator(
        store,
        local=LocalFileBackend(picker, downloads_dir=downloads_dir),
        cloud=CloudFileClient(executor),
        notifier=ui,
        prompter=ui,
        tracker=SnapshotTracker(store, debounce_seconds=0.01),
        **kwargs,
    )
