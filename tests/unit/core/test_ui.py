from __future__ import annotations

import io

import pytest

from riskregister.ui import create_ui


class _TtyStdin(io.StringIO):
    def isatty(self) -> bool:
        return True


class TestPlainPrompts:
    def test_refuses_to_prompt_without_terminal(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("answer\n"))
        ui = create_ui(plain=True)

        with pytest.raises(SystemExit) as excinfo:
            ui.input("Save to Google Drive as:")
        with pytest.raises(SystemExit):
            ui.input("Save to Google Drive as:")

        assert excinfo.value.code == 1
        assert capsys.readouterr().out.count("Plain mode cannot prompt for text input") == 1

    def test_empty_answer_takes_default(self, monkeypatch):
        monkeypatch.setattr("sys.stdin", _TtyStdin())
        monkeypatch.setattr("builtins.input", lambda prompt: "  ")
        ui = create_ui(plain=True)

        assert ui.input("Save to Google Drive as:", default="plan.litl") == "plan.litl"

    def test_end_of_input_is_a_dismissal(self, monkeypatch):
        def _eof(prompt):
            raise EOFError

        monkeypatch.setattr("sys.stdin", _TtyStdin())
        monkeypatch.setattr("builtins.input", _eof)

        assert create_ui(plain=True).pick_open() is None

    def test_pick_save_expands_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setattr("sys.stdin", _TtyStdin())
        prompts: list[str] = []

        def _answer(prompt):
            prompts.append(prompt)
            return "~/out.litl"

        monkeypatch.setattr("builtins.input", _answer)

        assert create_ui(plain=True).pick_save("plan.litl") == tmp_path / "out.litl"
        assert prompts == ["Save .litl file as: [plan.litl]: "]


def test_plain_notices_and_status(capsys):
    ui = create_ui(plain=True)

    ui.info("Opened plan.litl")
    ui.success("Saved plan.litl")
    ui.error("Save failed: disk full")
    ui.document_status("File: plan.litl (Local) • Unsaved changes")

    assert capsys.readouterr().out.splitlines() == [
        "Opened plan.litl",
        "✓ Saved plan.litl",
        "✗ Save failed: disk full",
        "File: plan.litl (Local) • Unsaved changes",
    ]


def test_rich_status_line_renders(capsys):
    ui = create_ui(plain=False)

    ui.document_status("File: plan.litl (Drive) • Saving…")

    assert "plan.litl (Drive)" in capsys.readouterr().out
