from __future__ import annotations

import socket
from typing import Optional

from editorbridge.config import BridgeConfig
from editorbridge.hosts.memory import MemoryHost
from editorbridge.service import BridgeService


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


def make_config(port: int, **overrides) -> BridgeConfig:
    values = dict(
        port=port,
        probe_timeout_sec=0.2,
        wait_interval_sec=0.05,
        wait_timeout_sec=2.0,
        shutdown_delay_sec=0.1,
        startup_timeout_sec=5.0,
    )
    values.update(overrides)
    return BridgeConfig(**values)


def make_service(port: int, host: Optional[MemoryHost] = None, **overrides) -> BridgeService:
    return BridgeService(make_config(port, **overrides), host or MemoryHost(), write_marker=False)
