import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tests.helpers import FakeDrive, RecordingUI  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point config, state and downloads at tmp_path and drop any Drive credentials from the host."""
    config_root = tmp_path / "config"
    state_root = tmp_path / "state"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_root))
    monkeypatch.setenv("XDG_STATE_HOME", str(state_root))
    monkeypatch.setenv("RISKREGISTER_CONFIG", str(config_root / "riskregister" / "config.json"))
    monkeypatch.setenv("RISKREGISTER_CREDENTIAL_PATH", str(tmp_path / "missing-credentials.json"))
    monkeypatch.setenv("RISKREGISTER_DOWNLOADS_DIR", str(tmp_path / "downloads"))
    monkeypatch.setenv("RISKREGISTER_FORCE_PLAIN", "1")
    for name in ("RISKREGISTER_DRIVE_CLIENT_ID", "RISKREGISTER_DRIVE_CLIENT_SECRET", "RISKREGISTER_APP_URL"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def drive():
    return FakeDrive()


@pytest.fixture
def public_drive():
    return FakeDrive(public=True)


@pytest.fixture
def ui():
    return RecordingUI()
