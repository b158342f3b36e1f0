from __future__ import annotations

import asyncio
import os
import sys
from typing import List, Optional, TextIO

from ..state import StateStore
from .base import Range, StatusDisplay, Uri
from .memory import MemoryHost


class ConsoleHost(MemoryHost):
    """Headless host for running the bridge from a terminal.

    Documents come from the workspace directory, prompts and accept/reject
    decisions are answered on stdin, status changes are printed.
    """

    platform_name = "console"

    def __init__(
        self,
        workspace: str,
        global_state: Optional[StateStore] = None,
        out: Optional[TextIO] = None,
        interactive: bool = True,
    ) -> None:
        super().__init__(workspace=os.path.abspath(workspace), global_state=global_state)
        self.out = out or sys.stderr
        self.interactive = interactive

    def _print(self, text: str) -> None:
        self.out.write(text + "\n")
        self.out.flush()

    def set_status(self, status: StatusDisplay) -> None:
        super().set_status(status)
        marker = "!" if status.color else "*"
        self._print(f"[{marker}] {status.text} - {status.tooltip}")

    def show_message(self, level: str, text: str) -> None:
        super().show_message(level, text)
        self._print(f"{level.upper()}: {text}")

    async def _ask(self, question: str) -> str:
        if not self.interactive:
            return ""
        try:
            answer = await asyncio.to_thread(input, question)
        except EOFError:
            return ""
        return answer.strip()

    async def prompt_choice(self, message: str, choices: List[str]) -> Optional[str]:
        self.prompts.append(message)
        self._print(message)
        for idx, choice in enumerate(choices, start=1):
            self._print(f"  {idx}. {choice}")
        answer = await self._ask("Choice: ")
        if answer.isdigit() and 1 <= int(answer) <= len(choices):
            return choices[int(answer) - 1]
        for choice in choices:
            if answer and answer.lower() == choice.lower():
                return choice
        return None

    async def request_decision(self, uri: Uri, proposed: Range, original: Range) -> bool:
        doc = self.documents.get(uri.fs_path)
        if doc is not None:
            self._print(doc.get_text(proposed))
        answer = await self._ask(f"Accept changes to {os.path.basename(uri.fs_path)}? [y/N] ")
        return answer.lower() in {"y", "yes"}
