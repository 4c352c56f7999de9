"""Human I/O boundary.

The turn engine only talks to a HumanIO. ConsoleIO is the rich-backed
terminal implementation; tests substitute a scripted one.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel


class HumanIO(Protocol):
    async def ask(self, prompt: str) -> str:
        """Return one trimmed line of input, never None."""
        ...

    def draft(self, text: str, preamble: str | None = None) -> None: ...

    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class ConsoleIO:
    """Terminal I/O via rich. EOF on stdin answers with eof_answer."""

    def __init__(self, console: Console | None = None, eof_answer: str = "exit") -> None:
        self.console = console or Console(highlight=False)
        self._eof_answer = eof_answer

    async def ask(self, prompt: str) -> str:
        # Blocking input runs in a worker thread so the event loop stays free
        try:
            answer = await asyncio.to_thread(self.console.input, f"[bold cyan]{escape(prompt)}[/bold cyan] ")
        except EOFError:
            self.console.print()
            return self._eof_answer
        return answer.strip()

    def draft(self, text: str, preamble: str | None = None) -> None:
        if preamble:
            self.console.print(f"[dim]{escape(preamble)}[/dim]")
        self.console.print(Panel(escape(text), border_style="green", padding=(1, 2)))

    def info(self, message: str) -> None:
        self.console.print(f"[dim]{escape(message)}[/dim]")

    def warn(self, message: str) -> None:
        self.console.print(f"[yellow bold]Warning:[/yellow bold] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red bold]Error:[/red bold] {escape(message)}")
