from __future__ import annotations

import asyncio
import builtins
import io
from pathlib import Path

import pytest

from editorbridge import status
from editorbridge.coordinator import STAY_CHOICE, SWITCH_CHOICE
from editorbridge.hosts.base import Range, Uri
from editorbridge.hosts.console import ConsoleHost


def _host(tmp_path: Path, interactive: bool = True) -> ConsoleHost:
    return ConsoleHost(str(tmp_path), out=io.StringIO(), interactive=interactive)


def test_status_and_messages_are_printed(tmp_path: Path) -> None:
    host = _host(tmp_path)
    host.set_status(status.bind_conflict("Editor Bridge"))
    host.show_message("error", "port busy")
    out = host.out.getvalue().splitlines()
    assert out[0].startswith("[!] $(error) Editor Bridge - ")
    assert out[1] == "ERROR: port busy"
    assert host.window_id() == str(tmp_path)


@pytest.mark.parametrize("answer, expected", [("1", SWITCH_CHOICE), ("stay with previous project", STAY_CHOICE), ("9", None)])
def test_prompt_accepts_number_or_name(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, answer, expected) -> None:
    monkeypatch.setattr(builtins, "input", lambda prompt="": answer)
    host = _host(tmp_path)
    choice = asyncio.run(host.prompt_choice("Switch?", [SWITCH_CHOICE, STAY_CHOICE]))
    assert choice == expected
    assert f"  1. {SWITCH_CHOICE}" in host.out.getvalue()


def test_non_interactive_declines(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(builtins, "input", lambda prompt="": pytest.fail("should not read stdin"))
    host = _host(tmp_path, interactive=False)
    assert asyncio.run(host.prompt_choice("Switch?", [SWITCH_CHOICE, STAY_CHOICE])) is None
    uri = Uri.file(str(tmp_path / "a.dart"))
    assert asyncio.run(host.request_decision(uri, Range.of(0, 0, 0, 1), Range.of(0, 0, 0, 1))) is False


def test_decision_reads_yes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(builtins, "input", lambda prompt="": " Y ")
    host = _host(tmp_path)
    path = str(tmp_path / "a.dart")
    host.open_text(path, "proposed")
    assert asyncio.run(host.request_decision(Uri.file(path), Range.of(0, 0, 0, 8), Range.of(0, 0, 0, 0))) is True
    assert "proposed" in host.out.getvalue()
