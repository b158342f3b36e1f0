from __future__ import annotations

import re
import threading
from pathlib import Path

import pytest

from editorbridge import telemetry
from editorbridge.log import OutputLog
from editorbridge.telemetry import MISSING_KEY_WARNING, RemoteLogSink


def test_lines_are_timestamped_and_bounded() -> None:
    log = OutputLog(max_lines=2)
    for n in range(3):
        log.append_line(f"line {n}")
    assert log.messages() == ["line 1", "line 2"]
    assert re.match(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] line 1$", log.lines()[0])
    log.clear()
    assert log.lines() == []


def test_log_file_is_appended(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "bridge.log"
    log = OutputLog(path=path)
    log.append_line("first")
    log.clear()
    log.append_line("second")
    log.close()
    written = path.read_text(encoding="utf-8").splitlines()
    assert [line.split("] ", 1)[1] for line in written] == ["first", "second"]


def test_sink_receives_source_and_message() -> None:
    seen = []
    log = OutputLog(sink=lambda source, message: seen.append((source, message)))
    log.append_line("hello")
    assert seen == [("Extension", "hello")]


def test_failing_sink_does_not_break_logging(capsys: pytest.CaptureFixture) -> None:
    def _boom(source: str, message: str) -> None:
        raise RuntimeError("down")

    log = OutputLog(sink=_boom)
    log.append_line("still logged")
    assert log.messages() == ["still logged"]
    assert "log sink failure: down" in capsys.readouterr().err


def test_sink_disabled_without_endpoint_or_user() -> None:
    assert not RemoteLogSink(None, "1", "key").enabled
    assert not RemoteLogSink("http://logs.test", None, "key").enabled
    assert RemoteLogSink("http://logs.test", "1", None).enabled


def test_payload_uses_numeric_user_id() -> None:
    assert RemoteLogSink("http://x", "42", "k").payload("Extension", "m") == {
        "user_id": 42,
        "source": "Extension",
        "message": "m",
    }
    assert RemoteLogSink("http://x", "abc", "k").payload("S", "m")["user_id"] == "abc"


def test_missing_key_warns_once_and_sends_nothing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(telemetry, "post_json", lambda *a, **kw: pytest.fail("should not post"))
    warnings = []
    sink = RemoteLogSink("http://logs.test", "7", None, warn=warnings.append)
    sink("Extension", "one")
    sink("Extension", "two")
    assert warnings == [MISSING_KEY_WARNING]


def test_lines_are_posted_with_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    done = threading.Event()

    def _fake_post(url, payload, timeout, headers):
        calls.append((url, payload, headers))
        done.set()
        return {"ok": False, "status": 500, "error": "boom"}

    monkeypatch.setattr(telemetry, "post_json", _fake_post)
    errors = []
    sink = RemoteLogSink("http://logs.test/api", "7", "secret", on_error=errors.append)
    try:
        sink("Extension", "hello")
        assert done.wait(5.0)
    finally:
        sink.close()
    assert calls == [
        ("http://logs.test/api", {"user_id": 7, "source": "Extension", "message": "hello"}, {"X-API-KEY": "secret"})
    ]
    # on_error runs right after the post returns on the worker thread.
    for _ in range(100):
        if errors:
            break
        threading.Event().wait(0.01)
    assert errors == ["Log POST failed (500): boom"]
