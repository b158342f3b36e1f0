from __future__ import annotations


class BridgeError(Exception):
    """Base error for the editor bridge."""


class UnsupportedPlatformError(BridgeError):
    pass


class WorkspaceError(BridgeError):
    """Raised by route glue when the workspace cannot serve a request."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class FileLookupError(WorkspaceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404)
