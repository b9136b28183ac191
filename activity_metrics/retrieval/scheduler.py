"""Bounded-batch scheduling of per-repository collection."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Tuple

from .metrics import MetricsCollector
from .models import RepoMetrics, RepositoryHandle
from .progress import ProgressSink


async def collect_all(collector: MetricsCollector,
                      repos: Sequence[RepositoryHandle],
                      concurrency: int,
                      progress: Optional[ProgressSink] = None) -> List[RepoMetrics]:
    """Collect metrics for `repos`, at most `concurrency` at a time, in input order.

    Repositories are split into consecutive batches; a batch runs concurrently
    and must finish before the next one starts, so at most `concurrency`
    repositories draw on the quota at once. Any fatal error aborts the run.
    """
    progress = progress or ProgressSink()
    size = max(1, int(concurrency or 1))
    results: List[Optional[RepoMetrics]] = [None] * len(repos)
    progress.begin(len(repos))

    async def run_one(index: int, handle: RepositoryHandle) -> Tuple[int, RepoMetrics]:
        metrics = await collector.collect(handle)
        progress.complete(handle.name)
        return index, metrics

    for offset in range(0, len(repos), size):
        batch = repos[offset:offset + size]
        for handle in batch:
            progress.notify(handle.name, "starting...")
        finished = await asyncio.gather(
            *(run_one(offset + i, handle) for i, handle in enumerate(batch))
        )
        for index, metrics in finished:
            results[index] = metrics

    return [metrics for metrics in results if metrics is not None]


__all__ = ["collect_all"]
