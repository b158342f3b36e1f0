from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Iterable, Optional, Tuple

from .errors import UnsupportedPlatformError

APP_FOLDER = "EditorBridge"
EDITOR_JSON = "editor.json"
USER_ID_FILE = "userId.txt"


def _platform(platform: Optional[str]) -> str:
    return platform if platform is not None else sys.platform


def config_root(platform: Optional[str] = None, home: Optional[Path] = None) -> Path:
    home = home or Path.home()
    plat = _platform(platform)
    if plat == "win32":
        return Path(os.environ.get("LOCALAPPDATA") or home / "AppData" / "Local")
    if plat == "darwin":
        return home / "Library" / "Application Support"
    if plat.startswith("linux"):
        return Path(os.environ.get("XDG_CONFIG_HOME") or home / ".config")
    raise UnsupportedPlatformError(f"Unsupported OS for the editor bridge: {plat}")


def editor_json_path(platform: Optional[str] = None, home: Optional[Path] = None) -> Tuple[Path, Path]:
    folder = config_root(platform, home) / APP_FOLDER
    return folder, folder / EDITOR_JSON


def read_user_id(platform: Optional[str] = None, home: Optional[Path] = None) -> Optional[str]:
    try:
        path = config_root(platform, home) / APP_FOLDER / USER_ID_FILE
        value = path.read_text(encoding="utf-8").strip()
    except (OSError, UnsupportedPlatformError):
        return None
    return value or None


def ensure_editor_marker(
    ide_name: str,
    replace_ides: Iterable[str] = (),
    platform: Optional[str] = None,
    home: Optional[Path] = None,
) -> Path:
    """Create ``editor.json`` or take it over from a replaceable IDE.

    Raises :class:`UnsupportedPlatformError` on platforms without a config
    folder; IO failures are left to the caller.
    """
    folder, path = editor_json_path(platform, home)
    folder.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_text(json.dumps({"ide": ide_name}, indent=2), encoding="utf-8")
        return path
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError:
        # Someone else's file; leave it alone.
        return path
    if isinstance(data, dict) and data.get("ide") in set(replace_ides):
        data["ide"] = ide_name
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def _rmdir_if_empty(folder: Path) -> bool:
    try:
        if folder.exists() and not any(folder.iterdir()):
            folder.rmdir()
            return True
    except OSError:
        return False
    return False


def remove_editor_marker(platform: Optional[str] = None, home: Optional[Path] = None) -> bool:
    folder, path = editor_json_path(platform, home)
    removed = False
    if path.exists():
        path.unlink()
        removed = True
    _rmdir_if_empty(folder)
    return removed
