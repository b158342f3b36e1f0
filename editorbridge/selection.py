from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence

from .hosts.base import Diagnostic, Range, Severity

_SEVERITY_NAMES = {
    Severity.ERROR: "Error",
    Severity.WARNING: "Warning",
}


def selected_line_numbers(selections: Iterable[Range]) -> List[int]:
    """1-based line numbers covered by the selections."""
    lines: List[int] = []
    for sel in selections:
        start = sel.start.line + 1
        end = sel.end.line + 1
        lines.extend(range(start, end + 1))
    return lines


def _diagnostic_payload(diag: Diagnostic) -> Dict[str, Any]:
    return {
        "message": diag.message,
        "severity": _SEVERITY_NAMES.get(diag.severity, "Information"),
        "source": diag.source or "Unknown",
        "range": {
            "start": {"line": diag.range.start.line + 1, "character": diag.range.start.character},
            "end": {"line": diag.range.end.line + 1, "character": diag.range.end.character},
        },
    }


def group_consecutive_lines(
    selected_lines: Iterable[int],
    diagnostics: Sequence[Diagnostic],
    file_lines: Sequence[str],
) -> List[Dict[str, Any]]:
    """Merge selected lines into contiguous blocks.

    Each block carries its text and the diagnostics lying entirely inside
    it. Line numbers are 1-based.
    """
    ordered = sorted(set(selected_lines))
    if not ordered:
        return []

    def _line(n: int) -> str:
        return file_lines[n - 1] if 0 < n <= len(file_lines) else ""

    groups: List[Dict[str, Any]] = []
    current = {"start_line": ordered[0], "end_line": ordered[0], "content": _line(ordered[0]), "errors": []}
    for n in ordered[1:]:
        if n == current["end_line"] + 1:
            current["end_line"] = n
            current["content"] += "\n" + _line(n)
        else:
            groups.append(current)
            current = {"start_line": n, "end_line": n, "content": _line(n), "errors": []}
    groups.append(current)

    for group in groups:
        for diag in diagnostics:
            first = diag.range.start.line + 1
            last = diag.range.end.line + 1
            if first >= group["start_line"] and last <= group["end_line"]:
                group["errors"].append(_diagnostic_payload(diag))
    return groups
