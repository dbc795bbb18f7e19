from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .errors import RiskRegisterError
from .lib.log import REDACTED
from .paths import CONFIG_HOME, DEFAULT_DOWNLOADS_DIR, DRIVE_CREDENTIALS_PATH


CONFIG_VERSION = 1
DEFAULT_CONFIG_NAME = "config.json"
DEFAULT_FILE_NAME = "community_risk_register.litl"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.file"
DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"

_ALLOWED_TOP_LEVEL_KEYS = {
    "version",
    "drive",
    "debounce_seconds",
    "max_items",
    "max_hazards",
    "max_payload_bytes",
    "default_file_name",
    "downloads_dir",
}
_ALLOWED_DRIVE_KEYS = {
    "client_id",
    "client_secret",
    "credentials_path",
    "scope",
    "api_base",
    "upload_base",
    "app_url",
    "provider_timeout",
    "provider_poll_interval",
    "token_skew",
    "request_timeout",
}


class ConfigError(RiskRegisterError):
    pass


@dataclass
class DriveConfig:
    client_id: str = ""
    client_secret: str = ""
    credentials_path: Optional[Path] = None
    scope: str = DRIVE_SCOPE
    api_base: str = DRIVE_API_BASE
    upload_base: str = DRIVE_UPLOAD_BASE
    app_url: Optional[str] = None
    provider_timeout: float = 6.0
    provider_poll_interval: float = 0.12
    token_skew: float = 5.0
    request_timeout: float = 60.0

    @property
    def configured(self) -> bool:
        if self.client_id.strip():
            return True
        return self.credentials_path is not None and self.credentials_path.exists()

    def as_dict(self, *, redact: bool = False) -> dict:
        payload: dict = {
            "client_id": self.client_id,
            "scope": self.scope,
            "api_base": self.api_base,
            "upload_base": self.upload_base,
            "provider_timeout": self.provider_timeout,
            "provider_poll_interval": self.provider_poll_interval,
            "token_skew": self.token_skew,
            "request_timeout": self.request_timeout,
        }
        if self.credentials_path is not None:
            payload["credentials_path"] = str(self.credentials_path)
        if self.client_secret:
            payload["client_secret"] = REDACTED if redact else self.client_secret
        if self.app_url:
            payload["app_url"] = self.app_url
        return payload


@dataclass
class Config:
    version: int = CONFIG_VERSION
    drive: DriveConfig = field(default_factory=DriveConfig)
    debounce_seconds: float = 0.15
    max_items: int = 10000
    max_hazards: int = 5000
    max_payload_bytes: int = 20 * 1024 * 1024
    default_file_name: str = DEFAULT_FILE_NAME
    downloads_dir: Path = DEFAULT_DOWNLOADS_DIR
    path: Optional[Path] = None

    def as_dict(self, *, redact: bool = False) -> dict:
        """Serializable form; ``redact`` masks the client secret for display."""
        return {
            "version": self.version,
            "drive": self.drive.as_dict(redact=redact),
            "debounce_seconds": self.debounce_seconds,
            "max_items": self.max_items,
            "max_hazards": self.max_hazards,
            "max_payload_bytes": self.max_payload_bytes,
            "default_file_name": self.default_file_name,
            "downloads_dir": str(self.downloads_dir),
        }


def _config_path(explicit: Optional[Path] = None) -> Path:
    env_path = os.environ.get("RISKREGISTER_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    if explicit:
        return explicit.expanduser()
    return CONFIG_HOME / DEFAULT_CONFIG_NAME


def _ensure_keys(data: dict, *, allowed: Iterable[str], context: str) -> None:
    unknown = set(data.keys()) - set(allowed)
    if unknown:
        keys = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown {context} key(s): {keys}")


def _positive_number(raw: dict, key: str, default: float, *, context: str) -> float:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{context} '{key}' must be a positive number")
    return float(value)


def _positive_int(raw: dict, key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"Config '{key}' must be a positive integer")
    return value


def _optional_str(raw: dict, key: str, *, context: str) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{context} '{key}' must be a string")
    return value.strip() or None


def _parse_drive(raw: object) -> DriveConfig:
    if raw is None:
        return DriveConfig()
    if not isinstance(raw, dict):
        raise ConfigError("Config 'drive' must be a mapping")
    _ensure_keys(raw, allowed=_ALLOWED_DRIVE_KEYS, context="drive")
    defaults = DriveConfig()
    credentials = _optional_str(raw, "credentials_path", context="Drive")
    return DriveConfig(
        client_id=_optional_str(raw, "client_id", context="Drive") or "",
        client_secret=_optional_str(raw, "client_secret", context="Drive") or "",
        credentials_path=Path(credentials).expanduser() if credentials else None,
        scope=_optional_str(raw, "scope", context="Drive") or defaults.scope,
        api_base=(_optional_str(raw, "api_base", context="Drive") or defaults.api_base).rstrip("/"),
        upload_base=(_optional_str(raw, "upload_base", context="Drive") or defaults.upload_base).rstrip("/"),
        app_url=_optional_str(raw, "app_url", context="Drive"),
        provider_timeout=_positive_number(raw, "provider_timeout", defaults.provider_timeout, context="Drive"),
        provider_poll_interval=_positive_number(
            raw, "provider_poll_interval", defaults.provider_poll_interval, context="Drive"
        ),
        token_skew=_positive_number(raw, "token_skew", defaults.token_skew, context="Drive"),
        request_timeout=_positive_number(raw, "request_timeout", defaults.request_timeout, context="Drive"),
    )


def _apply_env(config: Config) -> Config:
    drive = config.drive
    client_id = os.environ.get("RISKREGISTER_DRIVE_CLIENT_ID")
    if client_id:
        drive.client_id = client_id.strip()
    client_secret = os.environ.get("RISKREGISTER_DRIVE_CLIENT_SECRET")
    if client_secret:
        drive.client_secret = client_secret.strip()
    credential_path = os.environ.get("RISKREGISTER_CREDENTIAL_PATH")
    if credential_path:
        drive.credentials_path = Path(credential_path).expanduser()
    elif drive.credentials_path is None and DRIVE_CREDENTIALS_PATH.exists():
        drive.credentials_path = DRIVE_CREDENTIALS_PATH
    app_url = os.environ.get("RISKREGISTER_APP_URL")
    if app_url:
        drive.app_url = app_url.strip()
    downloads = os.environ.get("RISKREGISTER_DOWNLOADS_DIR")
    if downloads:
        config.downloads_dir = Path(downloads).expanduser()
    return config


def default_config(path: Optional[Path] = None) -> Config:
    return _apply_env(Config(path=_config_path(path)))


def load_config(path: Optional[Path] = None) -> Config:
    """Load the config file, falling back to defaults when it does not exist."""
    config_path = _config_path(path)
    if not config_path.exists():
        return default_config(path)
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config at {config_path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("Config payload must be a JSON object")
    _ensure_keys(raw, allowed=_ALLOWED_TOP_LEVEL_KEYS, context="config")
    version = raw.get("version", CONFIG_VERSION)
    if version != CONFIG_VERSION:
        raise ConfigError(f"Unsupported config version '{version}', expected {CONFIG_VERSION}")
    default_name = raw.get("default_file_name", DEFAULT_FILE_NAME)
    if not isinstance(default_name, str) or not default_name.strip():
        raise ConfigError("Config 'default_file_name' must be a non-empty string")
    downloads = raw.get("downloads_dir")
    if downloads is not None and (not isinstance(downloads, str) or not downloads.strip()):
        raise ConfigError("Config 'downloads_dir' must be a non-empty string")

    config = Config(
        version=CONFIG_VERSION,
        drive=_parse_drive(raw.get("drive")),
        debounce_seconds=_positive_number(raw, "debounce_seconds", 0.15, context="Config"),
        max_items=_positive_int(raw, "max_items", 10000),
        max_hazards=_positive_int(raw, "max_hazards", 5000),
        max_payload_bytes=_positive_int(raw, "max_payload_bytes", 20 * 1024 * 1024),
        default_file_name=default_name.strip(),
        downloads_dir=Path(downloads).expanduser() if downloads else DEFAULT_DOWNLOADS_DIR,
        path=config_path,
    )
    return _apply_env(config)


def write_config(config: Config) -> None:
    if config.path is None:
        raise ConfigError("Config has no path to write to")
    config.path.parent.mkdir(parents=True, exist_ok=True)
    config.path.write_text(json.dumps(config.as_dict(), indent=2), encoding="utf-8")


__all__ = [
    "Config",
    "ConfigError",
    "DriveConfig",
    "DEFAULT_FILE_NAME",
    "default_config",
    "load_config",
    "write_config",
]
