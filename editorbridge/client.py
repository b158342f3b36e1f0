from __future__ import annotations

import json
from typing import Dict, Optional
from urllib import error, request


def get_json(url: str, timeout: float = 3.0) -> Optional[dict]:
    try:
        with request.urlopen(url, timeout=timeout) as resp:
            data = resp.read().decode("utf-8")
        return json.loads(data) if data else {}
    except Exception:
        return None


def post_json(
    url: str,
    payload: Optional[dict] = None,
    timeout: float = 6.0,
    headers: Optional[Dict[str, str]] = None,
) -> dict:
    """POST a JSON body; failures come back as ``{"ok": False, "error": ...}``."""
    data = json.dumps(payload or {}).encode("utf-8")
    all_headers = {"Content-Type": "application/json"}
    if headers:
        all_headers.update(headers)
    req = request.Request(url, data=data, headers=all_headers, method="POST")
    try:
        with request.urlopen(req, timeout=timeout) as resp:
            body = resp.read().decode("utf-8")
        return json.loads(body) if body else {"ok": True}
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8") if exc.fp else ""
        return {"ok": False, "status": exc.code, "error": body or str(exc)}
    except Exception as exc:
        return {"ok": False, "error": str(exc)}


def is_failure(result: Optional[dict]) -> bool:
    return not isinstance(result, dict) or result.get("ok") is False
