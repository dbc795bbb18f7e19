"""Shared filesystem paths and helpers for riskregister."""

from __future__ import annotations

import os
from pathlib import Path


def _xdg_path(env_var: str, fallback: Path) -> Path:
    raw = os.environ.get(env_var)
    if raw:
        return Path(raw).expanduser()
    return fallback


CONFIG_ROOT = _xdg_path("XDG_CONFIG_HOME", Path.home() / ".config")
STATE_ROOT = _xdg_path("XDG_STATE_HOME", Path.home() / ".local/state")

CONFIG_HOME = CONFIG_ROOT / "riskregister"
STATE_HOME = STATE_ROOT / "riskregister"

TOKEN_DIR = STATE_HOME / "tokens"
DRIVE_CREDENTIALS_PATH = CONFIG_HOME / "credentials.json"
DEFAULT_DOWNLOADS_DIR = Path.home() / "Downloads"


def ensure_litl_suffix(name: str) -> str:
    """Return ``name`` with a ``.litl`` extension appended when missing."""
    name = name.strip()
    if not name.lower().endswith(".litl"):
        name += ".litl"
    return name


__all__ = [
    "CONFIG_HOME",
    "STATE_HOME",
    "CONFIG_ROOT",
    "STATE_ROOT",
    "TOKEN_DIR",
    "DRIVE_CREDENTIALS_PATH",
    "DEFAULT_DOWNLOADS_DIR",
    "ensure_litl_suffix",
]
