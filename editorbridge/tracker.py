from __future__ import annotations

import os
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Set

MODIFIED = "modified"
SAME = "same"

_PATH_KEYS = ("fsPath", "fs_path", "path")


@dataclass
class LastChangeInfo:
    subject_path: str
    display_name: str
    edit_count: int
    timestamp: float
    origin_kind: str  # "edit" | "save"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _field(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def _has_field(value: Any, name: str) -> bool:
    if isinstance(value, Mapping):
        return name in value
    return hasattr(value, name)


def _direct_identity(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (str, bytes)):
        return None
    scheme = _field(value, "scheme")
    if not isinstance(scheme, str):
        return None
    for key in _PATH_KEYS:
        path = _field(value, key)
        if isinstance(path, str) and path:
            return os.path.normpath(path)
    return None


def decode_identity(value: Any) -> Optional[str]:
    """Canonical key for a document identity, or None.

    Shapes are tried in order: a Uri (or Uri-like mapping with a scheme and
    a path), a wrapper exposing ``uri``, then a bare path string.
    """
    try:
        key = _direct_identity(value)
        if key is not None:
            return key
        if value is not None and not isinstance(value, str) and _has_field(value, "uri"):
            key = _direct_identity(_field(value, "uri"))
            if key is not None:
                return key
        if isinstance(value, str) and value:
            return os.path.normpath(value)
    except Exception:
        return None
    return None


def comparison_subject(tab_input: Any) -> Optional[str]:
    """Right-hand key of a comparison view input, None for anything else."""
    if tab_input is None or isinstance(tab_input, str):
        return None
    if not (_has_field(tab_input, "original") and _has_field(tab_input, "modified")):
        return None
    return decode_identity(_field(tab_input, "modified"))


class ChangeTracker:
    """Answers "has a watched document changed since the last poll?".

    Watched documents are the right-hand sides of open comparison views.
    Any edit or save on one of them raises a single flag; :meth:`drain`
    reads and clears it, so a burst of edits between two polls is reported
    once.
    """

    def __init__(self, on_error: Optional[Callable[[str], None]] = None, clock: Callable[[], float] = time.time) -> None:
        self._watched: Set[str] = set()
        self._dirty = False
        self.last_change: Optional[LastChangeInfo] = None
        self._on_error = on_error
        self._clock = clock

    @property
    def watched(self) -> Set[str]:
        return set(self._watched)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def is_watched(self, identity: Any) -> bool:
        key = decode_identity(identity)
        return key is not None and key in self._watched

    def on_topology_changed(self, tab_inputs: Iterable[Any]) -> None:
        try:
            nxt: Set[str] = set()
            for tab_input in tab_inputs:
                key = comparison_subject(tab_input)
                if key:
                    nxt.add(key)
        except Exception as exc:
            self._error(f"Refreshing watched documents failed: {exc}")
            return
        self._watched = nxt

    def watch(self, identity: Any, reset: bool = True) -> Optional[str]:
        key = decode_identity(identity)
        if key is None:
            return None
        self._watched.add(key)
        if reset:
            self._dirty = False
        return key

    def on_document_event(self, identity: Any, is_edit: bool, change_count: int = 0, closed: bool = False) -> bool:
        if closed:
            return False
        key = decode_identity(identity)
        if key is None or key not in self._watched:
            return False
        self._dirty = True
        self.last_change = LastChangeInfo(
            subject_path=key,
            display_name=os.path.basename(key),
            edit_count=int(change_count or 0) if is_edit else 0,
            timestamp=self._clock(),
            origin_kind="edit" if is_edit else "save",
        )
        return True

    def drain(self) -> str:
        # No await between read and clear.
        if self._dirty:
            self._dirty = False
            return MODIFIED
        return SAME

    def _error(self, message: str) -> None:
        if self._on_error is not None:
            self._on_error(message)
