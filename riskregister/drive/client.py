from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, quote, unquote, urlencode, urlsplit, urlunsplit

import httpx

from riskregister.config import DRIVE_API_BASE, DRIVE_UPLOAD_BASE
from riskregister.envelope import LITL_MIME_TYPE, ParseError
from riskregister.errors import RiskRegisterError, UserCancelled
from riskregister.lib import json as jsonlib
from riskregister.lib.log import get_logger

from .executor import AuthorizedRequestExecutor, DriveRequest, ResponseTooLarge, read_body

LOGGER = get_logger(__name__)

METADATA_FIELDS = "id,name,mimeType"
SHARE_PARAM = "driveFile"

_BARE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{10,}$")
_PATH_ID_RE = re.compile(r"/d/([A-Za-z0-9_-]{10,})")
_QUERY_ID_RE = re.compile(r"[?&]id=([A-Za-z0-9_-]{10,})")
_ANY_ID_RE = re.compile(r"[-\w]{10,}", re.ASCII)


class RemoteError(RiskRegisterError):
    """Non-success HTTP response from the storage API."""

    def __init__(self, operation: str, status: int, body: str = "") -> None:
        self.operation = operation
        self.status = status
        self.body = body
        super().__init__(f"Google Drive {operation} failed ({status}) {_error_message(body)}".rstrip())


def _error_message(body: str) -> str:
    try:
        payload = jsonlib.loads(body) if body else None
    except jsonlib.JSONDecodeError:
        return body.strip()
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"].strip()
    return body.strip()


@dataclass(frozen=True)
class RemoteFileReference:
    id: str
    name: Optional[str] = None
    mime_type: str = LITL_MIME_TYPE

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        *,
        fallback_id: Optional[str] = None,
        fallback_name: Optional[str] = None,
    ) -> Optional["RemoteFileReference"]:
        data = payload if isinstance(payload, dict) else {}
        file_id = data.get("id") or fallback_id
        if not isinstance(file_id, str) or not file_id:
            return None
        name = data.get("name") or fallback_name
        mime_type = data.get("mimeType") or LITL_MIME_TYPE
        return cls(id=file_id, name=name if isinstance(name, str) else None, mime_type=str(mime_type))


def parse_identifier(raw: Optional[str]) -> Optional[str]:
    """Extract a Drive file id from a bare id, a view URL, or an ``?id=`` URL.

    The last resort accepts the first id-shaped run anywhere in the input.
    That fallback is deliberately loose: it keeps pasted links from odd
    sources working, at the price of occasionally matching a non-id token.
    """
    if not raw:
        return None
    text = str(raw).strip()
    try:
        text = unquote(text, errors="strict")
    except UnicodeDecodeError:
        pass
    if not text:
        return None
    if _BARE_ID_RE.match(text):
        return text
    match = _PATH_ID_RE.search(text)
    if match:
        return match.group(1)
    match = _QUERY_ID_RE.search(text)
    if match:
        return match.group(1)
    match = _ANY_ID_RE.search(text)
    if match:
        return match.group(0)
    return None


def view_link(file_id: str) -> str:
    return f"https://drive.google.com/file/d/{file_id}/view"


def share_url(app_url: str, file_id: str) -> str:
    """App URL carrying the file's view link in the ``driveFile`` parameter, without fragment."""
    parts = urlsplit(app_url)
    query = {key: values[-1] for key, values in parse_qs(parts.query, keep_blank_values=True).items()}
    query[SHARE_PARAM] = view_link(file_id)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


def link_from_url(url: str) -> Optional[str]:
    values = parse_qs(urlsplit(url).query).get(SHARE_PARAM)
    if not values:
        return None
    return values[-1].strip() or None


def _multipart_body(metadata: Dict[str, str], content: bytes, boundary: str) -> bytes:
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{jsonlib.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {LITL_MIME_TYPE}\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--".encode("utf-8")
    return head + content + tail


class CloudFileClient:
    def __init__(
        self,
        executor: AuthorizedRequestExecutor,
        *,
        api_base: str = DRIVE_API_BASE,
        upload_base: str = DRIVE_UPLOAD_BASE,
        max_payload_bytes: Optional[int] = None,
    ) -> None:
        self._executor = executor
        self._api_base = api_base.rstrip("/")
        self._upload_base = upload_base.rstrip("/")
        self._max_payload_bytes = max_payload_bytes

    @property
    def configured(self) -> bool:
        return self._executor.tokens.configured

    def require_configured(self) -> None:
        self._executor.tokens.require_configured()

    def _file_url(self, file_id: str) -> str:
        return f"{self._api_base}/files/{quote(file_id, safe='')}"

    async def fetch_metadata(self, file_id: str, *, interactive: bool = True) -> Optional[RemoteFileReference]:
        """Best-effort metadata lookup; any non-success answer yields None."""
        if not file_id:
            return None
        request = DriveRequest(
            "GET",
            self._file_url(file_id),
            params={"fields": METADATA_FIELDS, "supportsAllDrives": "true"},
        )
        response = await self._executor.execute(request, interactive=interactive)
        if not response.is_success:
            LOGGER.debug("drive.metadata_unavailable", file_id=file_id, status=response.status_code)
            return None
        try:
            payload = response.json()
        except ValueError:
            return None
        return RemoteFileReference.from_payload(payload, fallback_id=file_id)

    async def download_content(
        self, file_id: str, *, interactive: bool = True
    ) -> tuple[Any, Optional[RemoteFileReference]]:
        if not file_id:
            raise ParseError("Missing Google Drive file ID.")
        request = DriveRequest(
            "GET",
            self._file_url(file_id),
            params={"alt": "media", "supportsAllDrives": "true"},
        )
        response = await self._executor.execute(request, interactive=interactive, stream=True)
        try:
            body = await read_body(response, max_bytes=self._max_payload_bytes)
        except ResponseTooLarge as exc:
            if not response.is_success:
                raise RemoteError("download", response.status_code) from exc
            raise ParseError(f"Payload too large ({exc.size} bytes > {exc.limit})") from exc
        if not response.is_success:
            raise RemoteError("download", response.status_code, body.decode("utf-8", "replace"))
        try:
            parsed = jsonlib.loads(body)
        except jsonlib.JSONDecodeError as exc:
            raise ParseError(f"Google Drive file {file_id} is not valid JSON: {exc}") from exc

        try:
            meta = await self.fetch_metadata(file_id, interactive=interactive)
        except UserCancelled:
            LOGGER.debug("drive.metadata_cancelled", file_id=file_id)
            meta = None
        except RiskRegisterError as exc:
            # content already arrived; only the display name is lost
            LOGGER.warning("drive.metadata_failed", file_id=file_id, error=str(exc), error_type=type(exc).__name__)
            meta = None
        return parsed, meta

    async def update_content(
        self,
        file_id: str,
        content: bytes,
        name: Optional[str] = None,
        *,
        interactive: bool = True,
    ) -> RemoteFileReference:
        if not file_id:
            raise ParseError("Missing Google Drive file ID.")
        request = DriveRequest(
            "PATCH",
            f"{self._upload_base}/files/{quote(file_id, safe='')}",
            params={"uploadType": "media", "supportsAllDrives": "true", "fields": "id,name"},
            headers={"Content-Type": LITL_MIME_TYPE},
            content=content,
        )
        response = await self._executor.execute(
            request, try_unauthenticated_first=False, interactive=interactive
        )
        if not response.is_success:
            raise RemoteError("save", response.status_code, response.text)
        reference = RemoteFileReference.from_payload(
            _json_or_none(response), fallback_id=file_id, fallback_name=name
        )
        assert reference is not None
        return reference

    async def create_file(
        self,
        content: bytes,
        name: str,
        *,
        interactive: bool = True,
    ) -> RemoteFileReference:
        boundary = "litl-" + secrets.token_hex(8)
        body = _multipart_body({"name": name, "mimeType": LITL_MIME_TYPE}, content, boundary)
        request = DriveRequest(
            "POST",
            f"{self._upload_base}/files",
            params={"uploadType": "multipart", "supportsAllDrives": "true", "fields": "id,name"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            content=body,
        )
        response = await self._executor.execute(
            request, try_unauthenticated_first=False, interactive=interactive
        )
        if not response.is_success:
            raise RemoteError("create", response.status_code, response.text)
        reference = RemoteFileReference.from_payload(_json_or_none(response), fallback_name=name)
        if reference is None:
            raise RemoteError("create", response.status_code, "response carried no file id")
        return reference


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


__all__ = [
    "CloudFileClient",
    "RemoteError",
    "RemoteFileReference",
    "link_from_url",
    "parse_identifier",
    "share_url",
    "view_link",
]
