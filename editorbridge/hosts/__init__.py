# Explicit exports keep host discovery predictable.
from .base import (
    ActiveEditor,
    Diagnostic,
    DiffInput,
    Document,
    DocumentChangeEvent,
    EditorHost,
    EventEmitter,
    Position,
    Range,
    Severity,
    StatusDisplay,
    Tab,
    TabGroup,
    TextEdit,
    TextInput,
    Uri,
)
from .console import ConsoleHost
from .memory import MemoryHost

__all__ = [
    "ActiveEditor",
    "ConsoleHost",
    "Diagnostic",
    "DiffInput",
    "Document",
    "DocumentChangeEvent",
    "EditorHost",
    "EventEmitter",
    "MemoryHost",
    "Position",
    "Range",
    "Severity",
    "StatusDisplay",
    "Tab",
    "TabGroup",
    "TextEdit",
    "TextInput",
    "Uri",
]
