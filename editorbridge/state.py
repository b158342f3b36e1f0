from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

ACTIVE_WINDOW_KEY = "activeWindow"


class StateStore:
    """Process-wide key/value state, the editor's "global state" equivalent."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def update(self, key: str, value: Any) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        self._persist()

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._data)

    def reload(self) -> None:
        pass

    def _persist(self) -> None:
        pass


def _write_atomic_json(path: Path, data: Dict[str, Any]) -> None:
    # Per-process temp name; several windows may write at once.
    tmp = path.with_name(f"{path.name}.{os.getpid()}.tmp")
    tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


class JsonStateStore(StateStore):
    """State kept in a JSON file shared by every window on the machine.

    Other processes write the same file, so reads and updates start from
    what is on disk rather than from what this process last saw.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(self._read())

    def _read(self) -> Dict[str, Any]:
        try:
            loaded = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return loaded if isinstance(loaded, dict) else {}

    def reload(self) -> None:
        self._data = self._read()

    def get(self, key: str, default: Any = None) -> Any:
        self.reload()
        return super().get(key, default)

    def update(self, key: str, value: Any) -> None:
        self.reload()
        super().update(key, value)

    def snapshot(self) -> Dict[str, Any]:
        self.reload()
        return super().snapshot()

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        _write_atomic_json(self.path, self._data)
