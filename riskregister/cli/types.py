"""State shared by every riskregister command."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from riskregister.config import Config, load_config
from riskregister.ui import UI


@dataclass
class AppEnv:
    ui: UI
    config_path: Path | None = None
    _config: Config | None = field(default=None, init=False, repr=False)

    def config(self) -> Config:
        """Load the config once per invocation; raises ConfigError."""
        if self._config is None:
            self._config = load_config(self.config_path)
        return self._config
