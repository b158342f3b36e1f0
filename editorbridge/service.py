from __future__ import annotations

import sys
from typing import Callable, List, Optional

from . import install, status
from .app import create_app
from .config import BridgeConfig
from .coordinator import InstanceCoordinator, Phase
from .errors import UnsupportedPlatformError
from .hosts.base import ActiveEditor, Document, DocumentChangeEvent, EditorHost
from .lifecycle import ServerLifecycle
from .log import OutputLog
from .telemetry import RemoteLogSink
from .tracker import ChangeTracker

_PLATFORM_NAMES = {"win32": "Windows", "darwin": "macOS", "linux": "Linux"}


def _stderr(message: str) -> None:
    sys.stderr.write(message + "\n")
    sys.stderr.flush()


class BridgeService:
    """Everything one editor window needs to run the bridge.

    Holds the change tracker, the server lifecycle and the coordinator,
    wires them to the host's events on :meth:`activate` and tears them
    down on :meth:`deactivate`.
    """

    def __init__(
        self,
        config: BridgeConfig,
        host: EditorHost,
        log: Optional[OutputLog] = None,
        telemetry: Optional[RemoteLogSink] = None,
        write_marker: bool = True,
    ) -> None:
        self.config = config
        self.host = host
        self.telemetry = telemetry
        self.log = log or OutputLog(
            f"{config.product_name} Logs",
            path=config.log_path,
            echo=config.debug,
            sink=telemetry,
        )
        self.write_marker = write_marker
        self.tracker = ChangeTracker(on_error=self.log.append_line)
        self.lifecycle = ServerLifecycle(config, host, self.log, lambda: create_app(self))
        self.coordinator = InstanceCoordinator(config, host, self.lifecycle, self.log)
        self._unsubscribe: List[Callable[[], None]] = []

    @classmethod
    def with_telemetry(cls, config: BridgeConfig, host: EditorHost) -> "BridgeService":
        sink = RemoteLogSink(
            config.log_endpoint,
            install.read_user_id(),
            config.api_key,
            warn=lambda text: host.show_message("warning", text),
            on_error=_stderr,
        )
        return cls(config, host, telemetry=sink)

    async def activate(self) -> Phase:
        product = self.config.product_name
        self.host.set_status(status.running(product))
        self.log.append_line(f"{product} extension is active in current workspace")

        if self.write_marker:
            try:
                install.ensure_editor_marker(self.config.ide_name, self.config.replace_ides)
            except UnsupportedPlatformError as exc:
                self.log.append_line(str(exc))
                self.host.set_status(status.unsupported(product, str(exc)))
                self.coordinator.phase = Phase.FAILED
                return Phase.FAILED
            except OSError as exc:
                self.log.append_line(f"Error writing editor.json: {exc}")

        self.attach()
        phase = await self.coordinator.run()
        platform = _PLATFORM_NAMES.get(sys.platform, sys.platform)
        self.log.append_line(f"Extension is running on: {platform}")
        return phase

    async def deactivate(self) -> None:
        self.log.append_line("Deactivating extension and disposing resources.")
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        try:
            await self.lifecycle.close()
        finally:
            if self.telemetry is not None:
                self.telemetry.close()
            self.log.close()

    def attach(self) -> None:
        """Subscribe the tracker to the host's tab and document events."""
        self._subscribe()
        self.refresh_watched()

    def refresh_watched(self) -> None:
        self.tracker.on_topology_changed(self.host.tab_inputs())

    def _subscribe(self) -> None:
        if self._unsubscribe:
            return
        self._unsubscribe = [
            self.host.on_did_change_tabs.subscribe(self._on_tabs_changed),
            self.host.on_did_change_active_editor.subscribe(self._on_active_editor_changed),
            self.host.on_did_change_document.subscribe(self._on_document_changed),
            self.host.on_did_save_document.subscribe(self._on_document_saved),
            self.host.register_command(status.SHOW_STATUS_COMMAND, self.show_status),
        ]

    def show_status(self) -> None:
        self.host.show_message("info", f"{self.config.product_name} is Active and Running!")

    def _on_tabs_changed(self, _event: None) -> None:
        self.refresh_watched()

    def _on_active_editor_changed(self, _editor: Optional[ActiveEditor]) -> None:
        self.refresh_watched()

    def _on_document_changed(self, event: DocumentChangeEvent) -> None:
        doc = event.document
        try:
            self.tracker.on_document_event(doc.uri, True, event.change_count, doc.is_closed)
        except Exception as exc:
            self.log.append_line(f"Document change notify error: {exc}")

    def _on_document_saved(self, doc: Document) -> None:
        try:
            self.tracker.on_document_event(doc.uri, False, 0, doc.is_closed)
        except Exception as exc:
            self.log.append_line(f"Document save notify error: {exc}")
