from __future__ import annotations

import argparse
import asyncio
import json
import time
from pathlib import Path
from typing import List, Optional

from . import install
from .client import get_json, is_failure, post_json
from .config import BridgeConfig, resolve_config
from .coordinator import Phase
from .errors import UnsupportedPlatformError
from .hosts.console import ConsoleHost
from .lifecycle import ServerState
from .probe import probe
from .service import BridgeService
from .state import JsonStateStore, StateStore

STOP_POLL_SEC = 0.2

# Small CLI for running the bridge headless and poking a running one.


def _default_state_path() -> Optional[Path]:
    try:
        return install.config_root() / install.APP_FOLDER / "state.json"
    except UnsupportedPlatformError:
        return None


async def _serve(cfg: BridgeConfig, workspace: str, state_path: Optional[str], interactive: bool) -> int:
    path = Path(state_path) if state_path else _default_state_path()
    store = JsonStateStore(path) if path else StateStore()
    host = ConsoleHost(workspace, global_state=store, interactive=interactive)
    service = BridgeService.with_telemetry(cfg, host)
    try:
        phase = await service.activate()
        if phase is not Phase.ACTIVE:
            return 1
        while service.lifecycle.state is not ServerState.STOPPED:
            await asyncio.sleep(STOP_POLL_SEC)
        return 0
    finally:
        await service.deactivate()


def _cmd_serve(cfg: BridgeConfig, args: argparse.Namespace) -> int:
    try:
        return asyncio.run(_serve(cfg, args.workspace, args.state, not args.no_input))
    except KeyboardInterrupt:
        return 130


def _cmd_probe(cfg: BridgeConfig, args: argparse.Namespace) -> int:
    present = asyncio.run(probe(cfg.port, cfg.host, cfg.probe_timeout_sec))
    print(f"Server: {'running' if present else 'offline'} ({cfg.host}:{cfg.port})")
    return 0 if present else 1


def _cmd_poll(cfg: BridgeConfig, args: argparse.Namespace) -> int:
    url = f"{cfg.base_url}/diff-events"
    remaining = args.count
    while remaining is None or remaining > 0:
        data = get_json(url, timeout=2.0)
        print(data.get("status") if isinstance(data, dict) else "offline", flush=True)
        if remaining is not None:
            remaining -= 1
            if remaining == 0:
                break
        try:
            time.sleep(args.interval)
        except KeyboardInterrupt:
            break
    return 0


def _cmd_shutdown(cfg: BridgeConfig, args: argparse.Namespace) -> int:
    res = post_json(f"{cfg.base_url}/shutdown", {"reason": args.reason}, timeout=3.0)
    print(json.dumps(res, indent=2))
    return 1 if is_failure(res) else 0


def _cmd_status(cfg: BridgeConfig, args: argparse.Namespace) -> int:
    data = get_json(f"{cfg.base_url}/status", timeout=2.0)
    if data is None:
        print("Server: offline")
        return 1
    print(json.dumps(data, indent=2))
    return 0


def _cmd_uninstall(cfg: BridgeConfig, args: argparse.Namespace) -> int:
    try:
        removed = install.remove_editor_marker()
    except UnsupportedPlatformError as exc:
        print(f"{exc}; skipping.")
        return 0
    except OSError as exc:
        print(f"Uninstall cleanup failed: {exc}")
        return 1
    print("Deleted editor.json." if removed else "editor.json not found; nothing to delete.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="editorbridge", description="Editor bridge for external AI coding tools")
    parser.add_argument("--config", default=None, help="Path to config.json")
    parser.add_argument("--port", type=int, default=None, help="Override the bridge port")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the bridge headless over a workspace folder")
    serve.add_argument("--workspace", default=".", help="Workspace folder")
    serve.add_argument("--state", default=None, help="Global state file (default: config folder)")
    serve.add_argument("--no-input", action="store_true", help="Never prompt; treat prompts as declined")
    serve.set_defaults(func=_cmd_serve)

    p = sub.add_parser("probe", help="Check whether a bridge server is listening")
    p.set_defaults(func=_cmd_probe)

    poll = sub.add_parser("poll", help="Poll /diff-events")
    poll.add_argument("--interval", type=float, default=1.0)
    poll.add_argument("--count", type=int, default=None)
    poll.set_defaults(func=_cmd_poll)

    shutdown = sub.add_parser("shutdown", help="Ask the running bridge to shut down")
    shutdown.add_argument("--reason", default="cli")
    shutdown.set_defaults(func=_cmd_shutdown)

    st = sub.add_parser("status", help="Show /status of the running bridge")
    st.set_defaults(func=_cmd_status)

    un = sub.add_parser("uninstall", help="Remove the editor.json marker")
    un.set_defaults(func=_cmd_uninstall)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = resolve_config(args.config)
    if args.port is not None:
        cfg.port = args.port
    return args.func(cfg, args)


if __name__ == "__main__":
    raise SystemExit(main())
