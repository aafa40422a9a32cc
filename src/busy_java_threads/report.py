"""Report output: colored console plus optional plain-text append file."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console

from busy_java_threads.jstack import PermissionDenied, ThreadNotFoundInDump, ToolFailed

if TYPE_CHECKING:
    from busy_java_threads.ranker import SelectedThread
    from busy_java_threads.sampler import ReportEntry

RULE = "=" * 80


def _busy(selected: SelectedThread) -> str:
    return (
        f"Busy({selected.cpu_percent}%) thread({selected.tid}/{selected.nid}) "
        f"stack of java process({selected.pid}) under user({selected.user})"
    )


class Reporter:
    """Writes one block per selected thread.

    Console output is styled by Rich (plain when stdout is not a terminal);
    every line is also appended, unstyled, to `append_file` when given.
    """

    def __init__(self, console: Console | None = None, append_file: Path | None = None):
        self.console = console or Console(highlight=False, emoji=False)
        self.append_file = append_file

    def _append(self, text: str) -> None:
        if self.append_file is not None:
            with open(self.append_file, "a", encoding="utf-8") as f:
                f.write(text + "\n")

    def _emit(self, text: str = "", style: str | None = None) -> None:
        # Dump text is printed verbatim: no markup for [brackets], no emoji for :name: pairs
        self.console.print(
            text, style=style, markup=False, emoji=False, highlight=False, soft_wrap=True
        )
        self._append(text)

    def round_banner(
        self,
        iteration: int,
        update_count: int,
        command_line: Sequence[str],
        now: datetime | None = None,
    ) -> None:
        """Header naming the round; on the console only for repeated runs."""
        now = now or datetime.now()
        total = update_count if update_count > 0 else "∞"
        stamp = now.strftime("%Y-%m-%d %H:%M:%S.%f")
        lines = [
            RULE,
            f"{stamp} [{iteration}/{total}]: {' '.join(command_line)}",
            RULE,
            "",
        ]
        for line in lines:
            if update_count != 1:
                self.console.print(
                    line, markup=False, emoji=False, highlight=False, soft_wrap=True
                )
            self._append(line)

    def report(self, entry: ReportEntry) -> None:
        selected = entry.selected
        error = entry.error
        if error is None:
            self._emit(f"[{selected.rank}] {_busy(selected)}:", style="bold cyan")
            self._emit(entry.stack or "")
        elif isinstance(error, ThreadNotFoundInDump):
            self._emit(f"[{selected.rank}] {_busy(selected)}:", style="bold cyan")
            self._emit("thread exited before dump", style="yellow")
            self._emit()
        elif isinstance(error, PermissionDenied):
            self._emit(f"[{selected.rank}] Fail to jstack {_busy(selected)}.", style="bold red")
            self._emit(
                f"User of java process({error.owner}) is not current user({error.invoker}), "
                "need sudo to run again:",
                style="bold red",
            )
            self._emit(f"    {error.hint}", style="bold yellow")
            self._emit()
        elif isinstance(error, ToolFailed):
            self._emit(f"[{selected.rank}] Fail to jstack {_busy(selected)}.", style="bold red")
            if error.stderr:
                self._emit(f"    {error.stderr}", style="red")
            self._emit()
        else:
            self._emit(
                f"[{selected.rank}] Fail to jstack {_busy(selected)}: {error}", style="bold red"
            )
            self._emit()
