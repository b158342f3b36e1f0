from __future__ import annotations

import sys
import time
from collections import deque
from pathlib import Path
from typing import Callable, Deque, List, Optional, TextIO

LineSink = Callable[[str, str], None]

DEFAULT_MAX_LINES = 2000


class OutputLog:
    """Output channel for the bridge.

    Lines are timestamped, kept in a bounded buffer (what an editor output
    panel would show), appended to an optional log file and forwarded to a
    sink such as :class:`editorbridge.telemetry.RemoteLogSink`.
    """

    def __init__(
        self,
        name: str = "Editor Bridge",
        path: Optional[str | Path] = None,
        echo: bool = False,
        sink: Optional[LineSink] = None,
        source: str = "Extension",
        max_lines: int = DEFAULT_MAX_LINES,
    ) -> None:
        self.name = name
        self.path = Path(path).expanduser() if path else None
        self.echo = echo
        self.sink = sink
        self.source = source
        self._lines: Deque[str] = deque(maxlen=max_lines)
        self._file: Optional[TextIO] = None
        self._file_failed = False

    def append_line(self, message: str) -> None:
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{timestamp}] {message}"
        self._lines.append(line)
        if self.echo:
            sys.stderr.write(line + "\n")
            sys.stderr.flush()
        self._write_file(line)
        if self.sink is not None:
            try:
                self.sink(self.source, message)
            except Exception as exc:
                self._report_failure(f"log sink failure: {exc}")

    def lines(self) -> List[str]:
        return list(self._lines)

    def messages(self) -> List[str]:
        # Lines without the timestamp prefix.
        return [line.split("] ", 1)[1] if "] " in line else line for line in self._lines]

    def clear(self) -> None:
        self._lines.clear()

    def close(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            finally:
                self._file = None

    def _write_file(self, line: str) -> None:
        if self.path is None or self._file_failed:
            return
        try:
            if self._file is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._file = open(self.path, "a", encoding="utf-8")
            self._file.write(line + "\n")
            self._file.flush()
        except OSError as exc:
            self._file_failed = True
            self._report_failure(f"{self.name} log file failure ({self.path}): {exc}")

    def _report_failure(self, message: str) -> None:
        try:
            sys.stderr.write(message + "\n")
            sys.stderr.flush()
        except Exception:
            pass
