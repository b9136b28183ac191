"""Progress notification interface used by the retrieval engine."""

from __future__ import annotations


class ProgressSink:
    """Fire-and-forget status receiver; the base implementation ignores everything.

    The engine calls `notify` before each remote operation. Implementations must
    not block and must not raise.
    """

    def begin(self, total: int) -> None:
        pass

    def notify(self, repo_name: str, task: str) -> None:
        pass

    def complete(self, repo_name: str) -> None:
        pass


__all__ = ["ProgressSink"]
