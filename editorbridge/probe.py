from __future__ import annotations

import asyncio

LOCALHOST = "127.0.0.1"
DEFAULT_PROBE_TIMEOUT_SEC = 0.5
MIN_PROBE_TIMEOUT_SEC = 0.01


async def probe(port: int, host: str = LOCALHOST, timeout: float = DEFAULT_PROBE_TIMEOUT_SEC) -> bool:
    """Return True when something accepts TCP connections on ``host:port``."""
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def wait_until_free(
    port: int,
    host: str = LOCALHOST,
    interval: float = 0.1,
    timeout: float = 5.0,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SEC,
) -> bool:
    """Probe until the port stops answering or ``timeout`` elapses.

    Returns True when the port was seen free. False only means the timeout
    ran out; the port may or may not be free by then.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        remaining = deadline - loop.time()
        per_probe = max(min(probe_timeout, remaining), MIN_PROBE_TIMEOUT_SEC)
        if not await probe(port, host, per_probe):
            return True
        remaining = deadline - loop.time()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(interval, remaining))
