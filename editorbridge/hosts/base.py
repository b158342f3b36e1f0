from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from ..state import StateStore

T = TypeVar("T")


@dataclass(frozen=True)
class Uri:
    scheme: str
    path: str

    @classmethod
    def file(cls, path: str) -> "Uri":
        return cls("file", os.path.normpath(path))

    @property
    def fs_path(self) -> str:
        return self.path


@dataclass(frozen=True, order=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @classmethod
    def of(cls, start_line: int, start_char: int, end_line: int, end_char: int) -> "Range":
        return cls(Position(start_line, start_char), Position(end_line, end_char))

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


@dataclass
class Document:
    uri: Uri
    text: str = ""
    is_closed: bool = False
    version: int = 1

    @property
    def file_name(self) -> str:
        return os.path.basename(self.uri.fs_path)

    def offset_at(self, pos: Position) -> int:
        lines = self.text.split("\n")
        line = min(max(pos.line, 0), len(lines) - 1)
        offset = sum(len(lines[i]) + 1 for i in range(line))
        return offset + min(max(pos.character, 0), len(lines[line]))

    def position_at(self, offset: int) -> Position:
        offset = min(max(offset, 0), len(self.text))
        before = self.text[:offset]
        line = before.count("\n")
        return Position(line, offset - (before.rfind("\n") + 1))

    def get_text(self, rng: Optional[Range] = None) -> str:
        if rng is None:
            return self.text
        return self.text[self.offset_at(rng.start) : self.offset_at(rng.end)]


@dataclass(frozen=True)
class TextEdit:
    range: Range
    new_text: str


@dataclass
class DocumentChangeEvent:
    document: Document
    change_count: int


# Tab inputs. Only inputs with both ``original`` and ``modified`` count as
# comparison views.
@dataclass
class TextInput:
    uri: Any


@dataclass
class DiffInput:
    original: Any
    modified: Any


@dataclass
class Tab:
    label: str
    input: Any = None


@dataclass
class TabGroup:
    tabs: List[Tab] = field(default_factory=list)


class Severity(IntEnum):
    ERROR = 0
    WARNING = 1
    INFORMATION = 2
    HINT = 3


@dataclass
class Diagnostic:
    message: str
    range: Range
    severity: Severity = Severity.ERROR
    source: Optional[str] = None


@dataclass
class ActiveEditor:
    document: Document
    selections: List[Range] = field(default_factory=list)


@dataclass
class StatusDisplay:
    text: str
    tooltip: str
    color: Optional[str] = None
    command: Optional[str] = None


class EventEmitter(Generic[T]):
    def __init__(self) -> None:
        self._listeners: List[Callable[[T], None]] = []

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def fire(self, event: T) -> None:
        for listener in list(self._listeners):
            listener(event)

    def __len__(self) -> int:
        return len(self._listeners)


class EditorHost(ABC):
    """Interface to the editor the bridge runs inside.

    Everything the bridge reads or changes in the editor goes through here:
    tabs and documents, status display, prompts, global state and edits.
    Listeners are called on the bridge's event loop.
    """

    platform_name: str = "unknown"

    def __init__(self, global_state: Optional[StateStore] = None) -> None:
        self.global_state = global_state if global_state is not None else StateStore()
        self.on_did_change_tabs: EventEmitter[None] = EventEmitter()
        self.on_did_change_active_editor: EventEmitter[Optional[ActiveEditor]] = EventEmitter()
        self.on_did_change_document: EventEmitter[DocumentChangeEvent] = EventEmitter()
        self.on_did_save_document: EventEmitter[Document] = EventEmitter()
        self._commands: Dict[str, Callable[[], None]] = {}

    def register_command(self, name: str, callback: Callable[[], None]) -> Callable[[], None]:
        """Bind a command id (e.g. the one on a status display); returns an unregister callable."""
        self._commands[name] = callback

        def _unregister() -> None:
            if self._commands.get(name) is callback:
                del self._commands[name]

        return _unregister

    def execute_command(self, name: str) -> bool:
        callback = self._commands.get(name)
        if callback is None:
            return False
        callback()
        return True

    @abstractmethod
    def window_id(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def workspace_root(self) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def tab_inputs(self) -> List[Any]:
        raise NotImplementedError

    @abstractmethod
    def set_status(self, status: StatusDisplay) -> None:
        raise NotImplementedError

    @abstractmethod
    def show_message(self, level: str, text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def prompt_choice(self, message: str, choices: List[str]) -> Optional[str]:
        raise NotImplementedError

    def active_editor(self) -> Optional[ActiveEditor]:
        return None

    def diagnostics(self, uri: Uri) -> List[Diagnostic]:
        return []

    async def apply_edits(self, uri: Uri, edits: List[TextEdit]) -> bool:
        raise NotImplementedError("Editing not supported by this host.")

    async def request_decision(self, uri: Uri, proposed: Range, original: Range) -> bool:
        """Ask the user to accept (True) or reject (False) a proposed block."""
        raise NotImplementedError("Accept/reject not supported by this host.")

    async def open_diff(self, left: Uri, right: Uri, title: str) -> None:
        raise NotImplementedError("Diff views not supported by this host.")

    async def open_document(self, uri: Uri) -> None:
        raise NotImplementedError("Opening documents not supported by this host.")
