from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_PORT = 45678
ENV_PREFIX = "EDITORBRIDGE_"


@dataclass
class BridgeConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    probe_timeout_sec: float = 0.5
    wait_interval_sec: float = 0.1
    wait_timeout_sec: float = 5.0
    shutdown_delay_sec: float = 0.1
    startup_timeout_sec: float = 5.0
    ide_name: str = "vs-code"
    replace_ides: List[str] = field(default_factory=lambda: ["android-studio"])
    api_key: Optional[str] = None
    log_endpoint: Optional[str] = None
    log_path: Optional[str] = None
    product_name: str = "Editor Bridge"
    debug: bool = False

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


_FLOAT_FIELDS = {
    "probe_timeout_sec",
    "wait_interval_sec",
    "wait_timeout_sec",
    "shutdown_delay_sec",
    "startup_timeout_sec",
}


def _coerce(name: str, value: Any) -> Any:
    if name == "port":
        return int(value)
    if name in _FLOAT_FIELDS:
        return float(value)
    if name == "debug":
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    if name == "replace_ides":
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return [str(v) for v in value]
    if value is None:
        return None
    return str(value)


def _parse(raw: Dict[str, Any], base: Optional[BridgeConfig] = None) -> BridgeConfig:
    known = {f.name for f in fields(BridgeConfig)}
    updates = {k: _coerce(k, v) for k, v in raw.items() if k in known}
    return replace(base or BridgeConfig(), **updates)


# Keep parsing straightforward so configs stay human-editable.
def load_config(path: str | Path) -> BridgeConfig:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a JSON object: {path}")
    return _parse(data)


def config_from_env(base: Optional[BridgeConfig] = None, environ: Optional[Dict[str, str]] = None) -> BridgeConfig:
    env = os.environ if environ is None else environ
    raw: Dict[str, Any] = {}
    for f in fields(BridgeConfig):
        value = env.get(ENV_PREFIX + f.name.upper())
        if value is not None and value != "":
            raw[f.name] = value
    if "api_key" not in raw:
        fallback = env.get(ENV_PREFIX + "LOG_API_KEY")
        if fallback:
            raw["api_key"] = fallback
    return _parse(raw, base)


def resolve_config(path: Optional[str] = None) -> BridgeConfig:
    base = load_config(path) if path else None
    return config_from_env(base)
