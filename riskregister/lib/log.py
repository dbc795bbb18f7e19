"""structlog setup for the CLI and library code.

Library modules only call ``get_logger(__name__)``; the CLI calls
``configure_logging`` once per invocation. Event dicts pass through
``redact_secrets`` so bearer tokens and OAuth secrets never reach a log line.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping, TextIO

import structlog
from structlog.types import Processor

SECRET_KEYS = frozenset(
    {"access_token", "authorization", "client_secret", "refresh_token", "token"}
)
REDACTED = "***"


class _CurrentStderr:
    """Writes to whatever ``sys.stderr`` is at call time.

    Loggers are cached on first use, and CliRunner swaps stderr per
    invocation; holding the original stream would write to a closed file.
    """

    def write(self, s: str) -> int:
        return sys.stderr.write(s)

    def flush(self) -> None:
        sys.stderr.flush()

    def isatty(self) -> bool:
        return sys.stderr.isatty()


_stderr: TextIO = _CurrentStderr()  # type: ignore[assignment]


def redact_secrets(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _renderer(json_logs: bool) -> list[Processor]:
    if json_logs:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_logging(verbose: bool = False, json_logs: bool = False) -> None:
    """Warnings and errors by default; ``verbose`` adds info and debug events."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_secrets,
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        *_renderer(json_logs),
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.WARNING),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=_stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


__all__ = ["configure_logging", "get_logger", "redact_secrets"]
