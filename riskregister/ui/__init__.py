from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, Optional, Set

from .facade import ConsoleFacade, ConsoleLike, create_console_facade

__all__ = [
    "UI",
    "create_ui",
    "ConsoleFacade",
    "ConsoleLike",
]


class UI:
    """Everything user-facing in a document session.

    One object serves as the session's notifier, text prompter and file
    picker. Plain mode reads answers from stdin and refuses to prompt when
    stdin is not a terminal, so scripted runs fail instead of hanging.
    """

    def __init__(self, plain: bool) -> None:
        self._facade: ConsoleFacade = create_console_facade(plain)
        self._plain_warnings: Set[str] = set()

    @property
    def plain(self) -> bool:
        return self._facade.plain

    @property
    def console(self) -> ConsoleLike:
        return self._facade.console

    @console.setter
    def console(self, value: ConsoleLike) -> None:
        self._facade.console = value

    # Presentation -----------------------------------------------------------
    def summary(self, title: str, lines: Iterable[str]) -> None:
        self._facade.summary(title, lines)

    def document_status(self, status: str) -> None:
        self._facade.document_status(status)

    # Notifier ---------------------------------------------------------------
    def info(self, message: str) -> None:
        self._facade.notice("info", message)

    def success(self, message: str) -> None:
        self._facade.notice("success", message)

    def warning(self, message: str) -> None:
        self._facade.notice("warning", message)

    def error(self, message: str) -> None:
        self._facade.notice("error", message)

    # Prompter ---------------------------------------------------------------
    def input(self, prompt: str, *, default: Optional[str] = None) -> Optional[str]:
        if not self.plain:
            return self._facade.input(prompt, default=default)
        self._require_tty("text input")
        suffix = f" [{default}]" if default else ""
        try:
            value = input(f"{prompt}{suffix}: ").strip()
        except EOFError:
            return None
        return value or default

    # FilePicker -------------------------------------------------------------
    def pick_open(self) -> Optional[Path]:
        return self._ask_path("Open .litl file:", default=None)

    def pick_save(self, suggested_name: str) -> Optional[Path]:
        return self._ask_path("Save .litl file as:", default=suggested_name)

    def _ask_path(self, prompt: str, *, default: Optional[str]) -> Optional[Path]:
        raw = self.input(prompt, default=default) if self.plain else self._facade.path(prompt, default=default)
        return Path(raw).expanduser() if raw else None

    def _require_tty(self, topic: str) -> None:
        if sys.stdin.isatty():
            return
        if topic not in self._plain_warnings:
            self._plain_warnings.add(topic)
            self.console.print(
                f"Plain mode cannot prompt for {topic}; rerun with --interactive or pass explicit arguments."
            )
        raise SystemExit(1)


def create_ui(plain: bool) -> UI:
    return UI(plain=plain)
