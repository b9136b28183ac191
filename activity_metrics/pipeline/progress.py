"""Console progress output for interactive runs."""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from activity_metrics.retrieval.progress import ProgressSink


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


class ConsoleProgress(ProgressSink):
    """Prints one status line per notification and a counter per finished repository.

    Quiet mode discards everything so JSON/CSV/markdown on stdout stay parseable.
    """

    def __init__(self, quiet: bool = False, stream: Optional[TextIO] = None) -> None:
        self.quiet = quiet
        self.stream = stream
        self.total = 0
        self.completed = 0

    def _print(self, message: str) -> None:
        if not self.quiet:
            print(message, file=self.stream or sys.stdout, flush=True)

    def begin(self, total: int) -> None:
        self.total = total
        self.completed = 0

    def notify(self, repo_name: str, task: str) -> None:
        self._print(f"  -> {_truncate(repo_name, 25)}: {_truncate(task, 50)}")

    def complete(self, repo_name: str) -> None:
        self.completed += 1
        self._print(f"  [{self.completed}/{self.total}] {repo_name} - done")


__all__ = ["ConsoleProgress"]
