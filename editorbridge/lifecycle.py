from __future__ import annotations

import asyncio
import contextlib
import errno
import socket
import sys
from enum import Enum
from typing import Any, Callable, Iterator, Optional

import uvicorn

from . import status
from .config import BridgeConfig
from .hosts.base import EditorHost
from .log import OutputLog
from .state import ACTIVE_WINDOW_KEY

STARTUP_POLL_SEC = 0.01
GRACEFUL_SHUTDOWN_SEC = 2.0
LISTEN_BACKLOG = 128
_ADDR_IN_USE = {errno.EADDRINUSE, 10048}


class ServerState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


class _BridgeServer(uvicorn.Server):
    # Signals belong to the host process, not to the bridge.
    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def bind_socket(host: str, port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        # Windows SO_REUSEADDR would let a second process steal the port.
        if sys.platform != "win32":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(LISTEN_BACKLOG)
    except OSError:
        sock.close()
        raise
    sock.setblocking(False)
    return sock


class ServerLifecycle:
    """Owns the listening socket and the uvicorn server serving the bridge.

    ``start`` never retries: a bind conflict is reported and the lifecycle
    stays stopped. ``request_shutdown`` is what ``POST /shutdown`` calls; it
    answers right away and closes after a short delay on a task this object
    owns, so repeated requests schedule nothing new.
    """

    def __init__(
        self,
        config: BridgeConfig,
        host: EditorHost,
        log: OutputLog,
        app_factory: Callable[[], Any],
    ) -> None:
        self.config = config
        self.host = host
        self.log = log
        self._app_factory = app_factory
        self._state = ServerState.STOPPED
        self._server: Optional[_BridgeServer] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._socket: Optional[socket.socket] = None
        self._shutdown_task: Optional[asyncio.Task] = None
        self._closing = False
        self.last_error: Optional[str] = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ServerState.RUNNING

    @property
    def bound_port(self) -> Optional[int]:
        if self._socket is None:
            return None
        try:
            return int(self._socket.getsockname()[1])
        except OSError:
            return None

    async def start(self) -> bool:
        if self._state in (ServerState.RUNNING, ServerState.STARTING):
            self.log.append_line("Server is already running.")
            return True
        if self._state is ServerState.SHUTTING_DOWN:
            self.log.append_line("Server is shutting down; start ignored.")
            return False

        self._state = ServerState.STARTING
        self._shutdown_task = None
        self.last_error = None
        try:
            sock = bind_socket(self.config.host, self.config.port)
        except OSError as exc:
            self._state = ServerState.STOPPED
            self._report_bind_failure(exc)
            return False

        server = _BridgeServer(
            uvicorn.Config(
                self._app_factory(),
                log_level="debug" if self.config.debug else "warning",
                access_log=self.config.debug,
                lifespan="off",
                timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_SEC,
            )
        )
        self._server = server
        self._socket = sock
        task = asyncio.create_task(server.serve(sockets=[sock]))
        self._serve_task = task

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.startup_timeout_sec
        while not server.started:
            if task.done() or loop.time() >= deadline:
                await self._abort_start()
                return False
            await asyncio.sleep(STARTUP_POLL_SEC)

        task.add_done_callback(self._on_serve_done)
        self._state = ServerState.RUNNING
        self.log.append_line(f"Server listening on {self.config.host}:{self.bound_port}")
        return True

    def request_shutdown(self) -> bool:
        if self._state is not ServerState.RUNNING or self._shutdown_task is not None:
            return False
        self._state = ServerState.SHUTTING_DOWN
        self.log.append_line("Shutdown requested; closing server shortly.")
        self._shutdown_task = asyncio.get_running_loop().create_task(self._deferred_shutdown())
        return True

    async def close(self) -> None:
        """Stop serving; returns once the listening socket is released."""
        task = self._shutdown_task
        if task is not None and not task.done():
            if self._closing:
                await task
            else:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        if await self._stop_serving():
            self.log.append_line("Server closed gracefully.")

    async def _deferred_shutdown(self) -> None:
        await asyncio.sleep(self.config.shutdown_delay_sec)
        await self._stop_serving()
        product = self.config.product_name
        self.log.clear()
        self.log.append_line(f"{product} is active in another workspace")
        self.host.set_status(status.evicted(product))
        # The new owner may have written its marker while we were closing.
        state = self.host.global_state
        state.reload()
        if state.get(ACTIVE_WINDOW_KEY) in (None, self.host.window_id()):
            state.update(ACTIVE_WINDOW_KEY, None)

    async def _stop_serving(self) -> bool:
        server, task, sock = self._server, self._serve_task, self._socket
        if server is None or task is None:
            self._state = ServerState.STOPPED
            return False
        self._closing = True
        server.should_exit = True
        try:
            await task
        except Exception as exc:
            self.log.append_line(f"Error closing server: {exc}")
        finally:
            if sock is not None:
                sock.close()
            self._server = None
            self._serve_task = None
            self._socket = None
            self._state = ServerState.STOPPED
            self._closing = False
        return True

    async def _abort_start(self) -> None:
        task = self._serve_task
        message = "server did not start in time"
        if task is not None:
            if task.done():
                exc = None if task.cancelled() else task.exception()
                if exc is not None:
                    message = str(exc)
            elif self._server is not None:
                self._server.should_exit = True
                with contextlib.suppress(Exception):
                    await task
        if self._socket is not None:
            self._socket.close()
        self._server = None
        self._serve_task = None
        self._socket = None
        self._state = ServerState.STOPPED
        self.last_error = message
        self.log.append_line(f"Server error: {message}")
        self.host.set_status(status.server_error(self.config.product_name, message))

    def _on_serve_done(self, task: asyncio.Task) -> None:
        if self._closing or self._state is not ServerState.RUNNING or task is not self._serve_task:
            return
        exc = None if task.cancelled() else task.exception()
        message = str(exc) if exc is not None else "server stopped unexpectedly"
        if self._socket is not None:
            self._socket.close()
        self._server = None
        self._serve_task = None
        self._socket = None
        self._state = ServerState.STOPPED
        self.last_error = message
        self.log.append_line(f"Server error: {message}")
        self.host.set_status(status.server_error(self.config.product_name, message))

    def _report_bind_failure(self, exc: OSError) -> None:
        product = self.config.product_name
        self.last_error = str(exc)
        if exc.errno in _ADDR_IN_USE:
            self.log.clear()
            self.log.append_line(
                f"{product} is active in another project (port {self.config.port} already in use)"
            )
            self.host.set_status(status.bind_conflict(product))
        else:
            self.log.append_line(f"Server error: {exc}")
            self.host.set_status(status.server_error(product, str(exc)))
        self.host.show_message(
            "error",
            f"Some error occurred starting the {product} server. "
            "Please check if another editor window is running the server.",
        )
