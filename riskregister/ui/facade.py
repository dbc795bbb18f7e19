"""Terminal rendering for document sessions.

Interactive mode draws with rich and asks through questionary. Plain mode
prints bare lines so output stays greppable, and its prompts answer with the
default (the ``UI`` wrapper decides whether plain mode may prompt at all).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

import questionary
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme

SAVING_MARK = "Saving…"
DIRTY_MARK = "Unsaved changes"

THEME = Theme(
    {
        "panel.border": "#3b82f6",
        "summary.bullet": "bold #34d399",
        "summary.text": "#d6dee8",
        "doc.name": "bold #e0f2f1",
        "doc.saved": "#34d399",
        "doc.dirty": "bold #f9a825",
        "doc.saving": "italic #38bdf8",
        "notice.error": "bold #ff6b6b",
        "notice.warning": "bold #f9a825",
        "notice.success": "bold #34d399",
        "notice.info": "bold #38bdf8",
        "notice.text": "#e5e7eb",
    }
)

_ICONS = {"error": "✗", "warning": "!", "success": "✓", "info": "ℹ"}


class ConsoleLike(Protocol):
    def print(self, *objects: object, **kwargs: object) -> None:
        ...


class PlainConsole:
    def print(self, *objects: object, **_: object) -> None:
        print(" ".join(str(obj) for obj in objects))


def _state_style(status: str) -> str:
    if status.endswith(SAVING_MARK):
        return "doc.saving"
    if status.endswith(DIRTY_MARK):
        return "doc.dirty"
    return "doc.saved"


@dataclass
class ConsoleFacade:
    plain: bool
    console: ConsoleLike = field(init=False)

    def __post_init__(self) -> None:
        self.console = PlainConsole() if self.plain else Console(theme=THEME)

    def summary(self, title: str, lines: Iterable[str]) -> None:
        lines = list(lines)
        if self.plain:
            self.console.print(f"-- {title} --")
            for line in lines:
                self.console.print(line)
            return
        body = Text()
        for line in lines:
            body.append("• ", style="summary.bullet")
            body.append(line + "\n", style="summary.text")
        self.console.print(
            Panel(body, title=f"  {title}  ", title_align="left", border_style="panel.border", box=box.ROUNDED)
        )

    def document_status(self, status: str) -> None:
        """Render a ``describe_status`` line, colouring the trailing state."""
        if self.plain:
            self.console.print(status)
            return
        head, sep, state = status.rpartition(" • ")
        text = Text()
        if sep:
            text.append(head, style="doc.name")
            text.append(sep)
        text.append(state, style=_state_style(status))
        self.console.print(text)

    def input(self, prompt: str, *, default: Optional[str] = None) -> Optional[str]:
        """Entered text, or None when the prompt is dismissed (Ctrl-C) or left empty."""
        if self.plain:
            return default
        return _clean(questionary.text(prompt, default=default or "").ask())

    def path(self, prompt: str, *, default: Optional[str] = None) -> Optional[str]:
        if self.plain:
            return default
        return _clean(questionary.path(prompt, default=default or "").ask())

    def notice(self, level: str, message: str) -> None:
        icon = _ICONS[level]
        if self.plain:
            self.console.print(message if level == "info" else f"{icon} {message}")
            return
        text = Text()
        text.append(f"{icon} ", style=f"notice.{level}")
        text.append(message, style="notice.text")
        self.console.print(text)


def _clean(answer: Optional[str]) -> Optional[str]:
    if answer is None:
        return None
    return answer.strip() or None


def create_console_facade(plain: bool) -> ConsoleFacade:
    return ConsoleFacade(plain=plain)
