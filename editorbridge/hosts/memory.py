from __future__ import annotations

import os
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional, Tuple

from ..state import StateStore
from .base import (
    ActiveEditor,
    Diagnostic,
    DiffInput,
    Document,
    DocumentChangeEvent,
    EditorHost,
    Range,
    StatusDisplay,
    Tab,
    TabGroup,
    TextEdit,
    TextInput,
    Uri,
)


class MemoryHost(EditorHost):
    """Editor host kept entirely in memory.

    Handy for exercising the bridge without an editor: tests drive it with
    the ``emit_*`` helpers, scripted prompt answers and scripted decisions.
    Documents not yet open are read from disk on demand.
    """

    platform_name = "memory"

    def __init__(
        self,
        workspace: Optional[str] = None,
        window: str = "memory-window",
        global_state: Optional[StateStore] = None,
        prompt_answers: Iterable[Optional[str]] = (),
        decisions: Iterable[bool] = (),
        default_decision: bool = True,
    ) -> None:
        super().__init__(global_state)
        self._workspace = workspace
        self._window = window
        self.tab_groups: List[TabGroup] = [TabGroup()]
        self.documents: Dict[str, Document] = {}
        self.editor: Optional[ActiveEditor] = None
        self.diagnostics_by_path: Dict[str, List[Diagnostic]] = {}
        self.status: Optional[StatusDisplay] = None
        self.status_history: List[StatusDisplay] = []
        self.messages: List[Tuple[str, str]] = []
        self.prompts: List[str] = []
        self.prompt_answers: Deque[Optional[str]] = deque(prompt_answers)
        self.decisions: Deque[bool] = deque(decisions)
        self.default_decision = default_decision
        self.opened: List[Tuple[str, ...]] = []

    # EditorHost

    def window_id(self) -> str:
        return self._workspace or self._window

    def workspace_root(self) -> Optional[str]:
        return self._workspace

    def tab_inputs(self) -> List[Any]:
        return [tab.input for group in self.tab_groups for tab in group.tabs]

    def set_status(self, status: StatusDisplay) -> None:
        self.status = status
        self.status_history.append(status)

    def show_message(self, level: str, text: str) -> None:
        self.messages.append((level, text))

    async def prompt_choice(self, message: str, choices: List[str]) -> Optional[str]:
        self.prompts.append(message)
        if self.prompt_answers:
            return self.prompt_answers.popleft()
        return None

    def active_editor(self) -> Optional[ActiveEditor]:
        return self.editor

    def diagnostics(self, uri: Uri) -> List[Diagnostic]:
        return list(self.diagnostics_by_path.get(uri.fs_path, []))

    async def apply_edits(self, uri: Uri, edits: List[TextEdit]) -> bool:
        doc = self.documents.get(uri.fs_path)
        if doc is None or doc.is_closed:
            return False
        text = doc.text
        spans = sorted(
            ((doc.offset_at(e.range.start), doc.offset_at(e.range.end), e.new_text) for e in edits),
            key=lambda s: s[0],
            reverse=True,
        )
        for start, end, new_text in spans:
            text = text[:start] + new_text + text[end:]
        doc.text = text
        doc.version += 1
        self.on_did_change_document.fire(DocumentChangeEvent(doc, len(edits)))
        return True

    async def request_decision(self, uri: Uri, proposed: Range, original: Range) -> bool:
        if self.decisions:
            return self.decisions.popleft()
        return self.default_decision

    async def open_diff(self, left: Uri, right: Uri, title: str) -> None:
        self.load(left)
        self.load(right)
        self.opened.append(("diff", left.fs_path, right.fs_path, title))
        self.tab_groups[0].tabs.append(Tab(title, DiffInput(left, right)))
        self.on_did_change_tabs.fire(None)

    async def open_document(self, uri: Uri) -> None:
        doc = self.load(uri)
        self.opened.append(("document", uri.fs_path))
        self.tab_groups[0].tabs.append(Tab(doc.file_name, TextInput(uri)))
        self.editor = ActiveEditor(doc, [])
        self.on_did_change_tabs.fire(None)
        self.on_did_change_active_editor.fire(self.editor)

    # Helpers

    def load(self, uri: Uri) -> Document:
        doc = self.documents.get(uri.fs_path)
        if doc is None:
            text = ""
            if os.path.isfile(uri.fs_path):
                with open(uri.fs_path, "r", encoding="utf-8") as f:
                    text = f.read()
            doc = Document(uri, text)
            self.documents[uri.fs_path] = doc
        return doc

    def open_text(self, path: str, text: str) -> Document:
        doc = Document(Uri.file(path), text)
        self.documents[doc.uri.fs_path] = doc
        return doc

    def select(self, path: str, selections: List[Range]) -> ActiveEditor:
        doc = self.documents.get(os.path.normpath(path)) or self.load(Uri.file(path))
        self.editor = ActiveEditor(doc, list(selections))
        self.on_did_change_active_editor.fire(self.editor)
        return self.editor

    def add_tab(self, label: str, tab_input: Any, group: int = 0) -> Tab:
        while len(self.tab_groups) <= group:
            self.tab_groups.append(TabGroup())
        tab = Tab(label, tab_input)
        self.tab_groups[group].tabs.append(tab)
        self.on_did_change_tabs.fire(None)
        return tab

    def add_diff_tab(self, left: str, right: str, label: Optional[str] = None, group: int = 0) -> Tab:
        return self.add_tab(label or os.path.basename(right), DiffInput(Uri.file(left), Uri.file(right)), group)

    def close_tab(self, tab: Tab) -> None:
        for group in self.tab_groups:
            if tab in group.tabs:
                group.tabs.remove(tab)
        self.on_did_change_tabs.fire(None)

    def emit_change(self, path: str, change_count: int = 1) -> None:
        doc = self.documents.get(os.path.normpath(path)) or self.open_text(path, "")
        doc.version += 1
        self.on_did_change_document.fire(DocumentChangeEvent(doc, change_count))

    def emit_save(self, path: str) -> None:
        doc = self.documents.get(os.path.normpath(path)) or self.open_text(path, "")
        self.on_did_save_document.fire(doc)

    def close_document(self, path: str) -> None:
        doc = self.documents.get(os.path.normpath(path))
        if doc is not None:
            doc.is_closed = True
