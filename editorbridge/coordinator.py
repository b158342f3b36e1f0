from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

from . import status
from .client import is_failure, post_json
from .config import BridgeConfig
from .hosts.base import EditorHost
from .lifecycle import ServerLifecycle
from .log import OutputLog
from .probe import probe, wait_until_free
from .state import ACTIVE_WINDOW_KEY

SWITCH_CHOICE = "Switch to this project"
STAY_CHOICE = "Stay with previous project"


class Phase(str, Enum):
    IDLE = "idle"
    CONTENDING = "contending"
    EVICTING = "evicting"
    SOLO_START = "solo_start"
    INACTIVE = "inactive"
    ACTIVE = "active"
    FAILED = "failed"


class InstanceCoordinator:
    """Decides at startup whether this window runs the bridge server.

    The port probe is the only source of truth: an existing server means
    the operator picks between switching the bridge to this window or
    staying with the old one. Switching asks the old server to shut down,
    waits for the port, then starts locally. Nothing here retries; a
    failed bind ends in ``Phase.FAILED``.
    """

    def __init__(self, config: BridgeConfig, host: EditorHost, lifecycle: ServerLifecycle, log: OutputLog) -> None:
        self.config = config
        self.host = host
        self.lifecycle = lifecycle
        self.log = log
        self.phase = Phase.IDLE

    async def run(self) -> Phase:
        self.phase = Phase.IDLE
        present = await probe(self.config.port, self.config.host, self.config.probe_timeout_sec)
        if present:
            self.phase = Phase.CONTENDING
            if not await self._operator_wants_switch():
                return self._stay()
            self.phase = Phase.EVICTING
            await self._evict()
        return await self._solo_start()

    async def _operator_wants_switch(self) -> bool:
        product = self.config.product_name
        choice: Optional[str] = await self.host.prompt_choice(
            f"{product} is already active in another editor window. "
            "Do you want to switch it to this project?",
            [SWITCH_CHOICE, STAY_CHOICE],
        )
        return choice == SWITCH_CHOICE

    def _stay(self) -> Phase:
        self.log.append_line(
            "User opted to stay with the previously active project. This window will remain inactive."
        )
        self.host.set_status(status.stayed(self.config.product_name))
        self.phase = Phase.INACTIVE
        return self.phase

    async def _evict(self) -> None:
        url = f"http://{self.config.host}:{self.config.port}/shutdown"
        result = await asyncio.to_thread(
            post_json, url, {"reason": "switch"}, max(self.config.wait_timeout_sec, 1.0)
        )
        if is_failure(result):
            detail = result.get("error") if isinstance(result, dict) else result
            self.log.append_line(f"Could not contact existing server for shutdown: {detail}")
        freed = await wait_until_free(
            self.config.port,
            self.config.host,
            interval=self.config.wait_interval_sec,
            timeout=self.config.wait_timeout_sec,
            probe_timeout=self.config.probe_timeout_sec,
        )
        if not freed:
            self.log.append_line(
                f"Port {self.config.port} still in use after {self.config.wait_timeout_sec}s; trying anyway."
            )

    async def _solo_start(self) -> Phase:
        self.phase = Phase.SOLO_START
        if not await self.lifecycle.start():
            self.phase = Phase.FAILED
            return self.phase
        self.host.global_state.update(ACTIVE_WINDOW_KEY, self.host.window_id())
        self.host.set_status(status.running(self.config.product_name))
        self.phase = Phase.ACTIVE
        return self.phase
