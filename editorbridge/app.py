# app.py
# Editor Bridge: local HTTP surface (FastAPI)
#
# Endpoints:
#   GET  /health
#   GET  /status
#   GET  /diff-events            (poll; "modified" once per change, else "same")
#   POST /shutdown               (handoff; closes the server ~100ms later)
#
# Editor glue:
#   GET  /selected-lines
#   POST /modify-code
#   GET  /addMarketTocode
#   POST /multiple-file-contents
#   GET  /all-files
#   GET  /assets
#   POST /compare-file
# Note: keep the endpoint list above in sync with any new routes.

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from fastapi import Body, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__, files
from .errors import FileLookupError, WorkspaceError
from .hosts.base import Range, TextEdit, Uri
from .selection import group_consecutive_lines, selected_line_numbers
from .state import ACTIVE_WINDOW_KEY
from .tracker import SAME

if TYPE_CHECKING:
    from .service import BridgeService

SERVER_NAME = "EditorBridge"
GENERATED_MARKER = "\n/* BRIDGE GENERATED CODE BELOW */\n"
UPDATED_PREFIX = "// Updated code by Editor Bridge\n"
SELECTION_START = "/* SELECTED CODE START */"
SELECTION_END = "/* SELECTED CODE END */"

# ----------------------------
# Models
# ----------------------------

class ShutdownIn(BaseModel):
    reason: Optional[str] = None

class ModifyCodeIn(BaseModel):
    updatedCode: Optional[str] = None

class MultipleFilesIn(BaseModel):
    fileNames: Optional[Any] = None

class CompareFileIn(BaseModel):
    fileName: Optional[str] = None
    newFilePath: Optional[str] = None


def create_app(service: "BridgeService") -> FastAPI:
    """Build the bridge's FastAPI app around one service instance."""
    config = service.config
    host = service.host
    tracker = service.tracker
    log = service.log

    # Local-only server; keep it off public interfaces.
    app = FastAPI(title=f"{config.product_name} Server", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _error(status_code: int, message: str) -> JSONResponse:
        log.append_line(f"Error: {message}")
        return JSONResponse(status_code=status_code, content={"error": message})

    def _workspace(missing: str = "No workspace folder open") -> str:
        root = host.workspace_root()
        if not root:
            raise WorkspaceError(missing)
        log.append_line(f"Workspace root path: {root}")
        return root

    @app.exception_handler(WorkspaceError)
    async def workspace_error(request: Request, exc: WorkspaceError):
        return _error(exc.status_code, str(exc))

    # Unhandled route errors: one log line, one 500 answer.
    @app.middleware("http")
    async def unexpected_error(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            log.append_line(f"Unhandled error on {request.url.path}: {exc}")
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # ----------------------------
    # Core routes
    # ----------------------------

    @app.get("/health")
    async def health():
        return {
            "ok": True,
            "serverName": SERVER_NAME,
            "version": __version__,
            "port": config.port,
            "endpoints": {
                "health": "/health",
                "status": "/status",
                "diff_events": "/diff-events",
                "shutdown": "/shutdown",
                "selected_lines": "/selected-lines",
                "modify_code": "/modify-code",
                "add_marker": "/addMarketTocode",
                "multiple_file_contents": "/multiple-file-contents",
                "all_files": "/all-files",
                "assets": "/assets",
                "compare_file": "/compare-file",
            },
        }

    @app.get("/status")
    async def status():
        last = tracker.last_change
        return {
            "ok": True,
            "server": service.lifecycle.state.value,
            "phase": service.coordinator.phase.value,
            "activeWindow": host.global_state.get(ACTIVE_WINDOW_KEY),
            "watched": sorted(tracker.watched),
            "pending": tracker.dirty,
            "lastChange": last.to_dict() if last else None,
        }

    # Polling endpoint: "modified" once per change, otherwise "same".
    @app.get("/diff-events")
    async def diff_events():
        try:
            return {"status": tracker.drain()}
        except Exception as exc:
            log.append_line(f"/diff-events error: {exc}")
            return JSONResponse(status_code=500, content={"status": SAME})

    @app.post("/shutdown")
    async def shutdown(inp: Optional[ShutdownIn] = Body(None)):
        reason = inp.reason if inp and inp.reason else "unspecified"
        scheduled = service.lifecycle.request_shutdown()
        log.append_line(f"Shutdown requested (reason: {reason}, scheduled: {scheduled})")
        return {"message": f"Shutting down {config.product_name} server"}

    # ----------------------------
    # Editor glue
    # ----------------------------

    @app.get("/selected-lines")
    async def selected_lines():
        log.append_line("Received request for lines")
        response: Dict[str, Any] = {
            "selected": False,
            "file_name": "",
            "file_path": "",
            "project_path": host.workspace_root() or "",
            "message": "",
            "data": [],
        }
        editor = host.active_editor()
        if editor is None:
            response["message"] = "No active editor found."
            log.append_line("Error: No active editor found.")
            return response

        doc = editor.document
        response["file_name"] = doc.file_name
        response["file_path"] = doc.uri.fs_path
        if not editor.selections:
            response["message"] = "No lines selected."
            log.append_line("Error: No lines selected.")
            return response
        if any(sel.is_empty for sel in editor.selections):
            response["message"] = "Empty line selected."
            log.append_line("info: Empty line selected.")
            return response

        file_lines = doc.text.replace("\r\n", "\n").split("\n")
        groups = group_consecutive_lines(
            selected_line_numbers(editor.selections),
            host.diagnostics(doc.uri),
            file_lines,
        )
        if groups:
            response["selected"] = True
            response["data"] = groups
        return response

    @app.post("/modify-code")
    async def modify_code(inp: ModifyCodeIn):
        log.append_line("Received request for /modify-code")
        code = inp.updatedCode
        if not code:
            return _error(400, "The updatedCode field is required.")
        editor = host.active_editor()
        if editor is None:
            return _error(400, "No active editor found.")
        selection = editor.selections[0] if editor.selections else None
        if selection is None or selection.is_empty:
            return _error(400, "Please select some code first.")

        doc = editor.document
        inserted_text = GENERATED_MARKER + code
        anchor = Range(selection.end, selection.end)
        if not await host.apply_edits(doc.uri, [TextEdit(anchor, inserted_text)]):
            return _error(500, "Failed to update the code in the editor.")
        start = doc.offset_at(selection.end)
        inserted = Range(selection.end, doc.position_at(start + len(inserted_text)))

        if await host.request_decision(doc.uri, inserted, selection):
            await host.apply_edits(
                doc.uri,
                [TextEdit(selection, UPDATED_PREFIX + code), TextEdit(inserted, "")],
            )
            host.show_message("info", "Changes accepted!")
            return {"message": "Changes accepted! Original code replaced with updated code."}

        await host.apply_edits(doc.uri, [TextEdit(inserted, "")])
        host.show_message("info", "Changes rejected.")
        return {"message": "Changes rejected. Original code remains unchanged."}

    @app.get("/addMarketTocode")
    async def add_marker_to_code():
        log.append_line("Received request for /addMarketTocode")
        editor = host.active_editor()
        if editor is None:
            return _error(400, "No active editor found.")
        if not editor.selections:
            return _error(400, "No lines selected.")
        if any(sel.is_empty for sel in editor.selections):
            return _error(400, "One or more selections are empty. Please select the desired code.")

        doc = editor.document
        snippets: List[str] = []
        edits: List[TextEdit] = []
        for sel in editor.selections:
            wrapped = f"{SELECTION_START}\n{doc.get_text(sel)}\n{SELECTION_END}"
            snippets.append(wrapped)
            edits.append(TextEdit(sel, wrapped))
        if not await host.apply_edits(doc.uri, edits):
            return _error(500, "Failed to update the code in the editor.")
        return {"file_name": doc.file_name, "code": "\n".join(snippets)}

    @app.post("/multiple-file-contents")
    async def multiple_file_contents(inp: MultipleFilesIn):
        names = inp.fileNames
        log.append_line(f"Received request for /multiple-file-contents with fileNames: {names}")
        if not isinstance(names, list):
            return _error(400, "fileNames array is required")
        root = _workspace()
        try:
            details = files.find_file_details([str(n) for n in names], root, log.append_line)
        except (FileLookupError, OSError) as exc:
            return _error(404, str(exc))
        log.append_line(f"File details retrieved for: {', '.join(str(n) for n in names)}")
        details.append(files.readme_entry(root, log.append_line))
        return details

    @app.get("/all-files")
    async def all_files(role: Optional[str] = Query(None)):
        log.append_line(f"Received request for files with role: {role}")
        root = _workspace()
        try:
            paths = files.list_files(files.source_dir_for_role(root, role), log.append_line)
            details = files.read_files(paths)
            details.append(files.readme_entry(root, log.append_line, with_meta=False))
        except OSError as exc:
            log.append_line(f"Error retrieving all files: {exc}")
            return JSONResponse(status_code=500, content={"error": "Failed to retrieve all files"})
        return details

    @app.get("/assets")
    async def assets():
        log.append_line("Received request for project assets")
        root = _workspace()
        folder = files.find_asset_folder(root)
        if folder is None:
            return _error(404, "No asset, assets, or image folder found")
        log.append_line(f"Asset folder found: {folder}")
        return files.list_asset_files(folder, os.path.basename(folder), log.append_line)

    @app.post("/compare-file")
    async def compare_file(inp: CompareFileIn):
        file_name, new_path = inp.fileName, inp.newFilePath
        log.append_line(
            f"Received request for /compare-file with fileName: {file_name} and newFilePath: {new_path}"
        )
        if not file_name or not new_path:
            return _error(400, "Both fileName and newFilePath are required.")
        if os.path.basename(file_name) != file_name:
            return _error(400, "Invalid fileName provided.")
        root = _workspace("No workspace folder open.")
        new_abs = new_path if os.path.isabs(new_path) else os.path.abspath(os.path.join(root, new_path))
        if not os.path.exists(new_abs):
            return _error(400, f"New file does not exist at path: {new_abs}")

        title = f"{config.product_name} Comparison for {file_name}"
        try:
            if file_name in files.SPECIAL_FILES:
                match = files.find_special_match(root, file_name, new_abs, log.append_line)
                found, missing = "Special file compared successfully.", "Special file opened. No match found."
            else:
                try:
                    match = files.find_lib_match(root, file_name, new_abs, log.append_line)
                except ValueError as exc:
                    return _error(400, str(exc))
                found, missing = "Files opened in compare mode.", "New file opened. No matching lib/ file found."

            if match is None:
                log.append_line(f"No match found for {file_name}. Opening new file instead.")
                await host.open_document(Uri.file(new_abs))
                host.show_message("info", f"Opened new file: {file_name}.")
                return {"message": missing}

            log.append_line(f"Matching file found: {match}")
            right = Uri.file(match)
            await host.open_diff(Uri.file(new_abs), right, title)
            # The right-hand side is the one we report changes for.
            tracker.watch(right)
            host.show_message("info", f"Compared: {file_name}")
            return {"message": found}
        except Exception as exc:
            log.append_line(f"Error in /compare-file: {exc}")
            host.show_message("error", f"Failed to compare or open file: {exc}")
            return JSONResponse(status_code=500, content={"error": "Failed to compare or open file."})

    return app
