"""Added/deleted line counts for a date range, inferred from two-commit comparisons.

The commits API has no "diff over a time window" call, so the window is bracketed
by two commits on the default branch:

* head: the newest commit at or before the end of the window;
* base: the newest commit strictly before the window opens, or, when history
  starts inside the window, the parent of the oldest in-range commit.

Comparing base...head yields the net change of every commit in the window.
A repository whose very first commit falls inside the window has no parent to
compare against; that root commit's own stats are the answer.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .collectors import list_commits_in_range
from .http_client import GitHubClient, is_empty_history_error
from .models import CommitRef, DateRange, LineDelta


class ResolverState(enum.Enum):
    RESOLVING_HEAD = "resolving_head"
    RESOLVING_BASE = "resolving_base"
    FALLBACK_TO_ROOT_PARENT = "fallback_to_root_parent"
    COMPARING = "comparing"
    DONE = "done"


@dataclass
class _Resolution:
    repo_name: str
    branch: str
    date_range: DateRange
    head: Optional[CommitRef] = None
    base: Optional[CommitRef] = None
    result: Optional[LineDelta] = None


class LineDeltaResolver:
    """Drives the head/base/compare sequence for one repository at a time."""

    def __init__(self, client: GitHubClient, skip_line_stats: bool = False) -> None:
        self.client = client
        self.skip_line_stats = skip_line_stats
        self._handlers = {
            ResolverState.RESOLVING_HEAD: self._resolve_head,
            ResolverState.RESOLVING_BASE: self._resolve_base,
            ResolverState.FALLBACK_TO_ROOT_PARENT: self._fallback_to_root_parent,
            ResolverState.COMPARING: self._compare,
        }

    async def resolve(self, repo_name: str, branch: str, date_range: DateRange) -> LineDelta:
        if self.skip_line_stats:
            return LineDelta.zero()

        run = _Resolution(repo_name=repo_name, branch=branch, date_range=date_range)
        state = ResolverState.RESOLVING_HEAD
        self.client.report(repo_name, "finding commits for line stats...")
        try:
            while state is not ResolverState.DONE:
                state = await self._handlers[state](run)
        except Exception as exc:
            if is_empty_history_error(exc):
                return LineDelta.zero()
            raise
        return run.result or LineDelta.zero()

    async def _latest_commit(self, run: _Resolution, until: str,
                             operation: str) -> Optional[CommitRef]:
        response = await self.client.request_with_backoff(
            run.repo_name,
            operation,
            self.client.repo_path(run.repo_name, "/commits"),
            {"sha": run.branch, "until": until, "per_page": 1},
        )
        commits = response.data if isinstance(response.data, list) else []
        return CommitRef.from_api(commits[0]) if commits else None

    async def _resolve_head(self, run: _Resolution) -> ResolverState:
        run.head = await self._latest_commit(run, run.date_range.until, "finding end commit")
        if run.head is None:
            run.result = LineDelta.zero()
            return ResolverState.DONE
        return ResolverState.RESOLVING_BASE

    async def _resolve_base(self, run: _Resolution) -> ResolverState:
        self.client.report(run.repo_name, "finding base commit for line stats...")
        run.base = await self._latest_commit(run, run.date_range.before_start, "finding base commit")
        if run.base is None:
            return ResolverState.FALLBACK_TO_ROOT_PARENT
        return ResolverState.COMPARING

    async def _fallback_to_root_parent(self, run: _Resolution) -> ResolverState:
        in_range = await list_commits_in_range(
            self.client, run.repo_name, run.branch, run.date_range, "finding first commit"
        )
        if not in_range:
            run.result = LineDelta.zero()
            return ResolverState.DONE

        oldest = in_range[-1]
        self.client.report(run.repo_name, "finding parent of first commit in range...")
        response = await self.client.request_with_backoff(
            run.repo_name,
            "getting commit parent",
            self.client.repo_path(run.repo_name, f"/commits/{oldest.get('sha')}"),
        )
        detail: Dict[str, Any] = response.data or {}
        parents = detail.get("parents") or []
        if parents:
            run.base = CommitRef(sha=parents[0].get("sha") or "")
            return ResolverState.COMPARING

        stats = detail.get("stats") or {}
        run.result = LineDelta(
            added=int(stats.get("additions") or 0),
            deleted=int(stats.get("deletions") or 0),
        )
        return ResolverState.DONE

    async def _compare(self, run: _Resolution) -> ResolverState:
        if run.base is not None and run.head is not None and run.base.sha == run.head.sha:
            run.result = LineDelta.zero()
            return ResolverState.DONE

        self.client.report(run.repo_name, "comparing commits for line stats...")
        response = await self.client.request_with_backoff(
            run.repo_name,
            "comparing commits",
            self.client.repo_path(run.repo_name, f"/compare/{run.base.sha}...{run.head.sha}"),
        )
        files = (response.data or {}).get("files") or []
        run.result = LineDelta(
            added=sum(int(f.get("additions") or 0) for f in files),
            deleted=sum(int(f.get("deletions") or 0) for f in files),
        )
        return ResolverState.DONE


__all__ = ["ResolverState", "LineDeltaResolver"]
