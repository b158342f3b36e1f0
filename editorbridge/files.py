from __future__ import annotations

import json
import os
from typing import Callable, Dict, List, Optional

from .errors import FileLookupError

OnError = Optional[Callable[[str], None]]

EXCLUDED_DIRS = frozenset({
    "nbproject", "node_modules", "bower_components", ".vscode-test", "debug", ".vscode",
    ".flutter-plugins", ".flutter-plugins-dependencies", ".plugin_symlinks", "ephemeral",
    "dist", "build", ".git", "coverage", "out", "bin", "obj", "Runner", "target",
    "__pycache__", ".idea", ".gradle", ".mvn", ".settings", ".classpath", ".project",
    "CMakeFiles", "CMakeCache.txt", ".vs", "packages", ".history", ".terraform",
    ".serverless", ".pytest_cache", ".venv", "Pods", "DerivedData", ".next", ".nuxt",
    "vendor", ".sass-cache", ".cache", ".parcel-cache", "elm-stuff", "_site", "public",
    ".docusaurus", "static", ".expo", ".cache-loader", ".dart_tool", "runner",
})

EXCLUDED_FILES = frozenset({
    ".gitignore", "README.md", "yarn.lock", "package-lock.json", ".metadata", ".DS_Store",
    ".editorconfig", ".gitattributes", ".gitkeep", ".gitmodules", ".npmignore",
    ".prettierignore", ".prettierrc", ".stylelintrc", ".eslintignore", ".eslintrc",
    ".babelrc", "analysis_options.yaml",
})

EXCLUDED_EXTENSIONS = frozenset({
    ".properties", ".lock", ".h", ".jpg", ".jpeg", ".iml", ".jar", ".png", ".gif", ".bmp",
    ".svg", ".ico", ".webp", ".tif", ".tiff", ".mp3", ".wav", ".ogg", ".flac", ".mp4",
    ".avi", ".mkv", ".mov", ".wmv", ".flv", ".webm", ".m4v", ".3gp", ".mpg", ".mpeg",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".ods", ".odp",
    ".epub", ".mobi", ".azw", ".azw3", ".lit", ".lrf", ".cbr", ".cbz", ".cb7", ".cbt",
    ".cba", ".psd", ".ai", ".eps", ".indd", ".xd", ".sketch", ".fig", ".zip", ".tar",
    ".gz", ".rar", ".7z", ".bz2", ".xz", ".iso", ".dmg", ".exe", ".msi", ".dll", ".deb",
    ".rpm", ".sh", ".bat", ".com", ".vbs", ".ps1", ".apk", ".ipa", ".war", ".ear",
    ".phar", ".xcconfig",
})

ASSET_FOLDERS = ("assets", "asset", "image")
SPECIAL_FILES = frozenset({"pubspec.yaml", "AndroidManifest.xml"})
README_ENTRY = "Readme.txt"


def should_exclude(path: str) -> bool:
    name = os.path.basename(path)
    ext = os.path.splitext(path)[1].lower()
    return name in EXCLUDED_DIRS or name in EXCLUDED_FILES or ext in EXCLUDED_EXTENSIONS


def _report(on_error: OnError, message: str) -> None:
    if on_error is not None:
        on_error(message)


def list_files(root: str, on_error: OnError = None) -> List[str]:
    """Absolute paths of all non-excluded files under ``root``."""
    results: List[str] = []
    try:
        names = sorted(os.listdir(root))
    except OSError as exc:
        _report(on_error, f"Error reading directory {root}: {exc}")
        return results
    for name in names:
        full = os.path.abspath(os.path.join(root, name))
        if should_exclude(full):
            continue
        if os.path.isdir(full):
            results.extend(list_files(full, on_error))
        elif os.path.isfile(full):
            results.append(full)
    return results


def find_file_details(file_names: List[str], root: str, on_error: OnError = None) -> List[Dict[str, object]]:
    all_files = list_files(root, on_error)
    details: List[Dict[str, object]] = []
    for file_name in file_names:
        wanted = str(file_name).lower()
        match = next((f for f in all_files if os.path.basename(f).lower() == wanted), None)
        if match is None:
            raise FileLookupError(f"File not found in the project: {file_name}")
        with open(match, "r", encoding="utf-8", errors="replace") as f:
            content = f.read()
        details.append({"file_path": match, "content": content, "imports": [], "dependencies": []})
    return details


def read_files(paths: List[str]) -> List[Dict[str, object]]:
    out = []
    for path in paths:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            out.append({"file_path": path, "content": f.read()})
    return out


def identify_project_type(root: str) -> Optional[str]:
    """``"flutter"``, ``"react-native"`` or None."""
    try:
        if os.path.exists(os.path.join(root, "pubspec.yaml")):
            return "flutter"
        lib = os.path.join(root, "lib")
        if os.path.isdir(lib) and any(n.endswith(".dart") for n in os.listdir(lib)):
            return "flutter"
        package_json = os.path.join(root, "package.json")
        if os.path.exists(package_json):
            with open(package_json, "r", encoding="utf-8") as f:
                data = json.load(f)
            deps = data.get("dependencies") if isinstance(data, dict) else None
            if isinstance(deps, dict) and "react-native" in deps:
                return "react-native"
    except (OSError, ValueError):
        return None
    return None


def source_dir_for_role(root: str, role: Optional[str]) -> str:
    lowered = (role or "").lower()
    if "flutter" in lowered:
        return os.path.join(root, "lib")
    if "react native" in lowered:
        return os.path.join(root, "src")
    return root


def generate_folder_structure(root: str, on_error: OnError = None) -> str:
    """Tree rendering of the project's source folder (``lib/`` or ``src/``).

    Empty when the project type is unknown or the folder is missing.
    """
    project_type = identify_project_type(root)
    if project_type is None:
        return ""
    target = os.path.join(root, "lib" if project_type == "flutter" else "src")
    if not os.path.isdir(target):
        return ""

    lines = [f"{os.path.basename(target)}/"]

    def _walk(directory: str, prefix: str) -> None:
        try:
            names = sorted(os.listdir(directory))
        except OSError as exc:
            _report(on_error, f"Error reading directory {directory}: {exc}")
            return
        items = [n for n in names if not should_exclude(os.path.join(directory, n))]
        for idx, name in enumerate(items):
            full = os.path.join(directory, name)
            last = idx == len(items) - 1
            branch = "└── " if last else "├── "
            if os.path.isdir(full):
                lines.append(f"{prefix}{branch}{name}/")
                _walk(full, prefix + ("    " if last else "│   "))
            elif os.path.isfile(full):
                lines.append(f"{prefix}{branch}{name}")

    _walk(target, "    ")
    return "\n".join(lines) + "\n"


def readme_entry(root: str, on_error: OnError = None, with_meta: bool = True) -> Dict[str, object]:
    entry: Dict[str, object] = {"file_path": README_ENTRY, "content": generate_folder_structure(root, on_error)}
    if with_meta:
        entry["imports"] = []
        entry["dependencies"] = []
    return entry


def find_asset_folder(root: str) -> Optional[str]:
    for name in ASSET_FOLDERS:
        candidate = os.path.join(root, name)
        if os.path.exists(candidate):
            return candidate
    return None


def list_asset_files(directory: str, base: str = "", on_error: OnError = None) -> List[str]:
    results: List[str] = []
    try:
        names = sorted(os.listdir(directory))
    except OSError as exc:
        _report(on_error, f"Error reading directory {directory}: {exc}")
        return results
    for name in names:
        full = os.path.join(directory, name)
        rel = os.path.join(base, name)
        if os.path.isfile(full):
            results.append(rel)
        elif os.path.isdir(full):
            results.extend(list_asset_files(full, rel, on_error))
    return results


def _lib_relative(path: str) -> Optional[str]:
    parts = os.path.normpath(path).split(os.sep)
    if "lib" not in parts:
        return None
    return "/".join(parts[parts.index("lib"):])


def find_special_match(root: str, file_name: str, new_path: str, on_error: OnError = None) -> Optional[str]:
    wanted = file_name.lower()
    new_norm = os.path.normpath(new_path)
    for f in list_files(root, on_error):
        if os.path.basename(f).lower() == wanted and os.path.normpath(f) != new_norm:
            return f
    return None


def find_lib_match(root: str, file_name: str, new_path: str, on_error: OnError = None) -> Optional[str]:
    """Workspace ``lib/`` file sharing the new file's lib-relative path.

    Raises ValueError when the new file is not under a ``lib`` folder.
    """
    rel = _lib_relative(new_path)
    if rel is None:
        raise ValueError("New file is not inside the lib/ folder.")
    wanted = file_name.lower()
    new_norm = os.path.normpath(new_path)
    for f in list_files(os.path.join(root, "lib"), on_error):
        if os.path.basename(f).lower() != wanted:
            continue
        if _lib_relative(f) == rel and os.path.normpath(f) != new_norm:
            return f
    return None
