from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from .client import is_failure, post_json

Warn = Callable[[str], None]

MISSING_KEY_WARNING = (
    "Editor Bridge log API key missing. Set EDITORBRIDGE_API_KEY "
    "(or EDITORBRIDGE_LOG_API_KEY) in your environment or config file."
)


class RemoteLogSink:
    """Best-effort forwarding of output log lines to a remote log store.

    Posts run on a single worker thread so the event loop never waits on
    the network. Failures are reported through ``on_error`` and dropped.
    """

    def __init__(
        self,
        endpoint: Optional[str],
        user_id: Optional[str],
        api_key: Optional[str],
        warn: Optional[Warn] = None,
        on_error: Optional[Warn] = None,
        timeout: float = 5.0,
    ) -> None:
        self.endpoint = endpoint
        self.user_id = user_id
        self.api_key = api_key
        self.warn = warn
        self.on_error = on_error
        self.timeout = timeout
        self._warned = False
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint and self.user_id)

    def payload(self, source: str, message: str) -> dict:
        user_id: object = self.user_id
        if isinstance(user_id, str) and user_id.isdigit():
            user_id = int(user_id)
        return {"user_id": user_id, "source": source, "message": message}

    def __call__(self, source: str, message: str) -> None:
        if not self.enabled:
            return
        if not self.api_key:
            if not self._warned:
                self._warned = True
                if self.warn is not None:
                    self.warn(MISSING_KEY_WARNING)
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bridge-telemetry")
        self._executor.submit(self._send, self.payload(source, message))

    def _send(self, payload: dict) -> None:
        result = post_json(
            str(self.endpoint),
            payload,
            timeout=self.timeout,
            headers={"X-API-KEY": str(self.api_key)},
        )
        if is_failure(result) and self.on_error is not None:
            status = result.get("status") if isinstance(result, dict) else None
            detail = result.get("error") if isinstance(result, dict) else result
            prefix = f"Log POST failed ({status})" if status else "Log POST error"
            self.on_error(f"{prefix}: {detail}")

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
