from __future__ import annotations

from .hosts.base import StatusDisplay

ERROR_COLOR = "errorForeground"
SHOW_STATUS_COMMAND = "editorbridge.showStatus"


def running(product: str) -> StatusDisplay:
    return StatusDisplay(f"$(robot) {product}", f"{product} is running", None, SHOW_STATUS_COMMAND)


def _error(product: str, tooltip: str) -> StatusDisplay:
    return StatusDisplay(f"$(error) {product}", tooltip, ERROR_COLOR, None)


def evicted(product: str) -> StatusDisplay:
    return _error(product, f"Inactive: another workspace is running {product}")


def stayed(product: str) -> StatusDisplay:
    return _error(
        product,
        f"Inactive: another workspace is running {product} (you chose to stay on the old project).",
    )


def bind_conflict(product: str) -> StatusDisplay:
    return _error(
        product,
        "Extension is inactive (Please verify if it's active in another project or workspace.)",
    )


def server_error(product: str, message: str) -> StatusDisplay:
    return _error(product, f"Server encountered an error: {message}")


def unsupported(product: str, message: str) -> StatusDisplay:
    return _error(product, f"Inactive: {message}")
