from __future__ import annotations

from pathlib import Path
from typing import Tuple

import pytest
from fastapi.testclient import TestClient

from editorbridge.app import GENERATED_MARKER, SERVER_NAME, UPDATED_PREFIX, create_app
from editorbridge.hosts.base import Diagnostic, Range, Severity
from editorbridge.hosts.memory import MemoryHost
from editorbridge.service import BridgeService
from tests.helpers import make_service


def _write(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    _write(root / "pubspec.yaml", "name: demo\n")
    _write(root / "README.md", "# demo\n")
    _write(root / "lib" / "main.dart", "void main() {}\n")
    _write(root / "lib" / "widgets" / "button.dart", "class Button {}\n")
    _write(root / "build" / "app.dart", "// generated\n")
    _write(root / "assets" / "logo.png", "png")
    _write(root / "assets" / "icons" / "a.svg", "<svg/>")
    return root


@pytest.fixture
def bridge(project: Path, port: int) -> Tuple[BridgeService, MemoryHost, TestClient]:
    host = MemoryHost(workspace=str(project))
    service = make_service(port, host)
    service.attach()
    return service, host, TestClient(create_app(service))


def test_health_lists_endpoints(bridge) -> None:
    service, _, client = bridge
    body = client.get("/health").json()
    assert body["ok"] is True
    assert body["serverName"] == SERVER_NAME
    assert body["port"] == service.config.port
    assert body["endpoints"]["diff_events"] == "/diff-events"
    assert body["endpoints"]["shutdown"] == "/shutdown"


def test_cors_allows_any_origin(bridge) -> None:
    _, _, client = bridge
    res = client.get("/diff-events", headers={"Origin": "http://example.test"})
    assert res.headers["access-control-allow-origin"] == "*"


def test_diff_events_reports_once_per_change(bridge, tmp_path: Path, project: Path) -> None:
    _, host, client = bridge
    left = str(_write(tmp_path / "generated" / "lib" / "main.dart", "void main() { run(); }\n"))
    right = str(project / "lib" / "main.dart")
    host.add_diff_tab(left, right)

    assert client.get("/diff-events").json() == {"status": "same"}
    host.emit_save(right)
    host.emit_save(right)
    assert client.get("/diff-events").json() == {"status": "modified"}
    assert client.get("/diff-events").json() == {"status": "same"}

    # Edits on the left side never count.
    host.emit_change(left)
    assert client.get("/diff-events").json() == {"status": "same"}


def test_diff_events_failure_answers_same_with_500(bridge, monkeypatch: pytest.MonkeyPatch) -> None:
    service, _, client = bridge

    def broken() -> str:
        raise RuntimeError("tracker exploded")

    monkeypatch.setattr(service.tracker, "drain", broken)
    res = client.get("/diff-events")
    assert res.status_code == 500
    assert res.json() == {"status": "same"}
    assert "/diff-events error: tracker exploded" in service.log.messages()


def test_unexpected_route_error_is_logged_once(bridge, monkeypatch: pytest.MonkeyPatch) -> None:
    service, host, client = bridge

    def broken():
        raise RuntimeError("editor gone")

    monkeypatch.setattr(host, "active_editor", broken)
    res = client.get("/selected-lines")
    assert res.status_code == 500
    assert res.json() == {"error": "Internal server error"}
    logged = [m for m in service.log.messages() if "editor gone" in m]
    assert logged == ["Unhandled error on /selected-lines: editor gone"]


def test_diff_events_ignores_documents_after_tab_closes(bridge, project: Path, tmp_path: Path) -> None:
    _, host, client = bridge
    right = str(project / "lib" / "main.dart")
    tab = host.add_diff_tab(str(tmp_path / "left.dart"), right)
    host.close_tab(tab)
    host.emit_change(right, 2)
    assert client.get("/diff-events").json() == {"status": "same"}


def test_status_reports_tracker_and_server(bridge, project: Path, tmp_path: Path) -> None:
    _, host, client = bridge
    right = str(project / "lib" / "main.dart")
    host.add_diff_tab(str(tmp_path / "left.dart"), right)
    host.emit_change(right, 4)
    body = client.get("/status").json()
    assert body["server"] == "stopped"
    assert body["phase"] == "idle"
    assert body["watched"] == [right]
    assert body["pending"] is True
    assert body["lastChange"]["edit_count"] == 4
    assert body["lastChange"]["origin_kind"] == "edit"


def test_shutdown_acknowledges_even_when_not_running(bridge) -> None:
    service, _, client = bridge
    assert client.post("/shutdown").json() == {"message": "Shutting down Editor Bridge server"}
    res = client.post("/shutdown", json={"reason": "switch"})
    assert res.status_code == 200
    assert any("reason: switch" in m for m in service.log.messages())


def test_selected_lines_without_editor(bridge) -> None:
    _, _, client = bridge
    body = client.get("/selected-lines").json()
    assert body["selected"] is False
    assert body["message"] == "No active editor found."
    assert body["data"] == []


def test_selected_lines_groups_and_diagnostics(bridge, project: Path) -> None:
    _, host, client = bridge
    path = str(project / "lib" / "util.dart")
    host.open_text(path, "a\nb\nc\nd\n")
    host.diagnostics_by_path[path] = [
        Diagnostic("unused", Range.of(0, 0, 0, 1), Severity.WARNING),
        Diagnostic("spans groups", Range.of(1, 0, 3, 1), Severity.ERROR, "dart"),
    ]
    host.select(path, [Range.of(0, 0, 1, 1), Range.of(3, 0, 3, 1)])

    body = client.get("/selected-lines").json()
    assert body["selected"] is True
    assert body["file_name"] == "util.dart"
    assert body["file_path"] == path
    first, second = body["data"]
    assert (first["start_line"], first["end_line"], first["content"]) == (1, 2, "a\nb")
    assert (second["start_line"], second["end_line"], second["content"]) == (4, 4, "d")
    assert first["errors"] == [
        {
            "message": "unused",
            "severity": "Warning",
            "source": "Unknown",
            "range": {"start": {"line": 1, "character": 0}, "end": {"line": 1, "character": 1}},
        }
    ]
    assert second["errors"] == []


def test_selected_lines_with_empty_selection(bridge, project: Path) -> None:
    _, host, client = bridge
    path = str(project / "lib" / "main.dart")
    host.select(path, [Range.of(0, 2, 0, 2)])
    body = client.get("/selected-lines").json()
    assert body["selected"] is False
    assert body["message"] == "Empty line selected."


def _select_old(host: MemoryHost, project: Path) -> str:
    path = str(project / "lib" / "edit.dart")
    host.open_text(path, "line0\nold\nline2\n")
    host.select(path, [Range.of(1, 0, 1, 3)])
    return path


def test_modify_code_requires_code_and_selection(bridge, project: Path) -> None:
    _, host, client = bridge
    res = client.post("/modify-code", json={})
    assert res.status_code == 400
    assert res.json() == {"error": "The updatedCode field is required."}

    assert client.post("/modify-code", json={"updatedCode": "x"}).json() == {"error": "No active editor found."}

    path = str(project / "lib" / "main.dart")
    host.select(path, [Range.of(0, 0, 0, 0)])
    res = client.post("/modify-code", json={"updatedCode": "x"})
    assert res.status_code == 400
    assert res.json() == {"error": "Please select some code first."}


def test_modify_code_accept_replaces_selection(bridge, project: Path) -> None:
    _, host, client = bridge
    path = _select_old(host, project)
    host.decisions.append(True)
    res = client.post("/modify-code", json={"updatedCode": "new"})
    assert res.json() == {"message": "Changes accepted! Original code replaced with updated code."}
    assert host.documents[path].text == "line0\n" + UPDATED_PREFIX + "new\nline2\n"
    assert GENERATED_MARKER.strip() not in host.documents[path].text
    assert ("info", "Changes accepted!") in host.messages


def test_modify_code_reject_restores_document(bridge, project: Path) -> None:
    _, host, client = bridge
    path = _select_old(host, project)
    host.decisions.append(False)
    res = client.post("/modify-code", json={"updatedCode": "new"})
    assert res.json() == {"message": "Changes rejected. Original code remains unchanged."}
    assert host.documents[path].text == "line0\nold\nline2\n"


def test_add_marker_wraps_each_selection(bridge, project: Path) -> None:
    _, host, client = bridge
    path = _select_old(host, project)
    body = client.get("/addMarketTocode").json()
    wrapped = "/* SELECTED CODE START */\nold\n/* SELECTED CODE END */"
    assert body == {"file_name": "edit.dart", "code": wrapped}
    assert host.documents[path].text == f"line0\n{wrapped}\nline2\n"


def test_add_marker_rejects_empty_selection(bridge, project: Path) -> None:
    _, host, client = bridge
    host.select(str(project / "lib" / "main.dart"), [Range.of(0, 0, 0, 0)])
    res = client.get("/addMarketTocode")
    assert res.status_code == 400
    assert "selections are empty" in res.json()["error"]


def test_multiple_file_contents(bridge, project: Path) -> None:
    _, _, client = bridge
    res = client.post("/multiple-file-contents", json={"fileNames": ["MAIN.dart"]})
    assert res.status_code == 200
    entry, readme = res.json()
    assert entry == {
        "file_path": str(project / "lib" / "main.dart"),
        "content": "void main() {}\n",
        "imports": [],
        "dependencies": [],
    }
    assert readme["file_path"] == "Readme.txt"
    assert readme["content"].startswith("lib/\n")
    assert "button.dart" in readme["content"]


def test_multiple_file_contents_errors(bridge) -> None:
    _, _, client = bridge
    res = client.post("/multiple-file-contents", json={"fileNames": "main.dart"})
    assert res.status_code == 400
    assert res.json() == {"error": "fileNames array is required"}

    res = client.post("/multiple-file-contents", json={"fileNames": ["app.dart"]})
    # build/ is excluded, so its app.dart is never found.
    assert res.status_code == 404
    assert res.json() == {"error": "File not found in the project: app.dart"}


def test_routes_without_workspace(port: int) -> None:
    client = TestClient(create_app(make_service(port, MemoryHost())))
    assert client.get("/all-files").status_code == 400
    assert client.get("/assets").json() == {"error": "No workspace folder open"}
    res = client.post("/multiple-file-contents", json={"fileNames": ["a"]})
    assert res.status_code == 400


def test_all_files_by_role(bridge, project: Path) -> None:
    _, _, client = bridge
    body = client.get("/all-files", params={"role": "Flutter developer"}).json()
    paths = [item["file_path"] for item in body]
    assert paths == [
        str(project / "lib" / "main.dart"),
        str(project / "lib" / "widgets" / "button.dart"),
        "Readme.txt",
    ]
    assert "imports" not in body[-1]

    everything = [item["file_path"] for item in client.get("/all-files").json()]
    assert str(project / "pubspec.yaml") in everything
    assert str(project / "README.md") not in everything
    assert not any("/build/" in p for p in everything)


def test_assets(bridge, project: Path) -> None:
    _, _, client = bridge
    assert client.get("/assets").json() == ["assets/icons/a.svg", "assets/logo.png"]


def test_assets_missing_folder(port: int, tmp_path: Path) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()
    client = TestClient(create_app(make_service(port, MemoryHost(workspace=str(empty)))))
    res = client.get("/assets")
    assert res.status_code == 404
    assert res.json() == {"error": "No asset, assets, or image folder found"}


def test_compare_file_validation(bridge, project: Path, tmp_path: Path) -> None:
    _, _, client = bridge
    assert client.post("/compare-file", json={"fileName": "main.dart"}).status_code == 400
    res = client.post("/compare-file", json={"fileName": "lib/main.dart", "newFilePath": "x"})
    assert res.json() == {"error": "Invalid fileName provided."}
    missing = str(tmp_path / "nowhere" / "main.dart")
    res = client.post("/compare-file", json={"fileName": "main.dart", "newFilePath": missing})
    assert res.json() == {"error": f"New file does not exist at path: {missing}"}
    outside = str(_write(tmp_path / "generated" / "main.dart", "x"))
    res = client.post("/compare-file", json={"fileName": "main.dart", "newFilePath": outside})
    assert res.status_code == 400
    assert res.json() == {"error": "New file is not inside the lib/ folder."}


def test_compare_file_opens_diff_and_watches_right_side(bridge, project: Path, tmp_path: Path) -> None:
    service, host, client = bridge
    new_file = str(_write(tmp_path / "generated" / "lib" / "widgets" / "button.dart", "class Button2 {}\n"))
    match = str(project / "lib" / "widgets" / "button.dart")

    res = client.post("/compare-file", json={"fileName": "button.dart", "newFilePath": new_file})
    assert res.json() == {"message": "Files opened in compare mode."}
    assert host.opened[-1] == ("diff", new_file, match, "Editor Bridge Comparison for button.dart")
    assert service.tracker.watched == {match}

    assert client.get("/diff-events").json() == {"status": "same"}
    host.emit_change(match)
    assert client.get("/diff-events").json() == {"status": "modified"}


def test_compare_file_without_match_opens_new_file(bridge, tmp_path: Path) -> None:
    _, host, client = bridge
    new_file = str(_write(tmp_path / "generated" / "lib" / "fresh.dart", "// fresh\n"))
    res = client.post("/compare-file", json={"fileName": "fresh.dart", "newFilePath": new_file})
    assert res.json() == {"message": "New file opened. No matching lib/ file found."}
    assert host.opened[-1] == ("document", new_file)
    assert host.editor is not None and host.editor.document.text == "// fresh\n"


def test_compare_special_file(bridge, project: Path, tmp_path: Path) -> None:
    _, host, client = bridge
    new_file = str(_write(tmp_path / "generated" / "pubspec.yaml", "name: demo2\n"))
    res = client.post("/compare-file", json={"fileName": "pubspec.yaml", "newFilePath": new_file})
    assert res.json() == {"message": "Special file compared successfully."}
    assert host.opened[-1][2] == str(project / "pubspec.yaml")
