"""The versioned ``.litl`` envelope shared by local files and cloud objects.

Current shape::

    {"litlVersion": 1, "appId": "crr-v1", "title": "Community Risk Register",
     "data": {"items": [...], "hazards": [...], "objectives": [...]}}

Older files carry ``items``/``hazards``/``objectives`` at the top level and
very old exports are a bare JSON array of items. All three decode to the same
``Dataset``.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import RiskRegisterError
from .lib import json as jsonlib

LITL_VERSION = 1
APP_ID = "crr-v1"
DEFAULT_TITLE = "Community Risk Register"
LITL_MIME_TYPE = "application/x-litl"

DEFAULT_MAX_ITEMS = 10000
DEFAULT_MAX_HAZARDS = 5000


class ParseError(RiskRegisterError):
    """Malformed JSON, an unrecognised envelope, or an oversized payload."""


def _list_or_empty(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


class Dataset(BaseModel):
    """Events (``items``), hazards and objectives of one register."""

    model_config = ConfigDict(extra="ignore")

    items: list[dict[str, Any]] = Field(default_factory=list)
    hazards: list[dict[str, Any]] = Field(default_factory=list)
    objectives: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("items", "hazards", "objectives", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> list[dict[str, Any]]:
        return _list_or_empty(value)

    def is_empty(self) -> bool:
        return not (self.items or self.hazards or self.objectives)


class LitlEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    litl_version: int = Field(default=LITL_VERSION, alias="litlVersion")
    app_id: str = Field(default=APP_ID, alias="appId")
    title: str = DEFAULT_TITLE
    data: Dataset = Field(default_factory=Dataset)


def check_limits(
    dataset: Dataset,
    *,
    max_items: int = DEFAULT_MAX_ITEMS,
    max_hazards: int = DEFAULT_MAX_HAZARDS,
) -> Dataset:
    if len(dataset.items) > max_items:
        raise ParseError(f"Too many items ({len(dataset.items)} > {max_items})")
    if len(dataset.hazards) > max_hazards:
        raise ParseError(f"Too many hazards ({len(dataset.hazards)} > {max_hazards})")
    return dataset


def normalize_payload(raw: Any) -> tuple[Dataset, str | None]:
    """Map any accepted JSON shape to a ``Dataset`` and the stored title."""
    if raw is None:
        return Dataset(), None
    if isinstance(raw, list):
        return Dataset(items=raw), None
    if not isinstance(raw, dict):
        raise ParseError(f"Unsupported .litl payload of type {type(raw).__name__}")
    title = raw.get("title") if isinstance(raw.get("title"), str) else None
    inner = raw.get("data")
    if isinstance(inner, dict):
        return Dataset.model_validate(inner), title
    return Dataset.model_validate(raw), title


def encode_envelope(dataset: Dataset, *, title: str = DEFAULT_TITLE) -> bytes:
    envelope = LitlEnvelope(title=title, data=dataset)
    return jsonlib.dumps_bytes(envelope.model_dump(by_alias=True), indent=True)


def decode_envelope(
    raw: bytes | str,
    *,
    max_bytes: int | None = None,
    max_items: int = DEFAULT_MAX_ITEMS,
    max_hazards: int = DEFAULT_MAX_HAZARDS,
) -> tuple[Dataset, str | None]:
    """Parse envelope bytes, rejecting oversized or malformed input."""
    size = len(raw.encode("utf-8") if isinstance(raw, str) else raw)
    if max_bytes is not None and size > max_bytes:
        raise ParseError(f"Payload too large ({size} bytes > {max_bytes})")
    try:
        parsed = jsonlib.loads(raw)
    except jsonlib.JSONDecodeError as exc:
        raise ParseError(f"Invalid .litl file: {exc}") from exc
    dataset, title = normalize_payload(parsed)
    return check_limits(dataset, max_items=max_items, max_hazards=max_hazards), title


def decode_import_fragment(
    fragment: str,
    *,
    max_items: int = DEFAULT_MAX_ITEMS,
    max_hazards: int = DEFAULT_MAX_HAZARDS,
) -> Dataset:
    """Decode an ``#import=<base64 JSON>`` link fragment."""
    fragment = fragment.lstrip("#")
    if not fragment.startswith("import="):
        raise ParseError("Link does not carry an import payload")
    encoded = fragment[len("import="):]
    try:
        text = base64.b64decode(encoded + "=" * (-len(encoded) % 4), validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"Import payload is not base64: {exc}") from exc
    dataset, _ = decode_envelope(text, max_items=max_items, max_hazards=max_hazards)
    return dataset


def encode_import_fragment(dataset: Dataset) -> str:
    payload = jsonlib.dumps_bytes(dataset.model_dump())
    return "#import=" + base64.b64encode(payload).decode("ascii")


__all__ = [
    "APP_ID",
    "DEFAULT_TITLE",
    "LITL_MIME_TYPE",
    "LITL_VERSION",
    "Dataset",
    "LitlEnvelope",
    "ParseError",
    "check_limits",
    "decode_envelope",
    "decode_import_fragment",
    "encode_envelope",
    "encode_import_fragment",
    "normalize_payload",
]
