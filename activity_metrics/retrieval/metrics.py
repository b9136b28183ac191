"""Per-repository composition of the individual metric collectors."""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Awaitable, Optional, TypeVar

from .collectors import (
    BranchResolver,
    count_commits,
    count_pull_requests,
    count_releases,
    issue_stats,
    tally_contributors,
)
from .http_client import GitHubClient, is_empty_history_error
from .line_delta import LineDeltaResolver
from .models import DateRange, LineDelta, RepoMetrics, RepositoryHandle

T = TypeVar("T")


async def _or_default(pending: Awaitable[T], default: T) -> T:
    """Await a collector, turning an empty-history failure into its zero value."""
    try:
        return await pending
    except Exception as exc:
        if is_empty_history_error(exc):
            return default
        raise


class MetricsCollector:
    """Builds one `RepoMetrics` record per repository for a fixed date range."""

    def __init__(self, client: GitHubClient, date_range: DateRange, *,
                 branches: Optional[BranchResolver] = None,
                 skip_line_stats: bool = False,
                 include_issues: bool = False) -> None:
        self.client = client
        self.date_range = date_range
        self.branches = branches or BranchResolver(client)
        self.line_delta = LineDeltaResolver(client, skip_line_stats=skip_line_stats)
        self.include_issues = include_issues

    async def _issues(self, repo_name: str):
        if not self.include_issues:
            return 0, 0
        return await issue_stats(self.client, repo_name, self.date_range)

    async def collect(self, handle: RepositoryHandle) -> RepoMetrics:
        name = handle.name
        archived = " (archived)" if handle.is_archived else ""
        self.client.report(name, f"detecting branch{archived}...")
        try:
            branch = await self.branches.resolve(name)
        except Exception as exc:
            if is_empty_history_error(exc):
                self.client.report(name, "empty repository")
                return RepoMetrics.empty(handle)
            raise

        self.client.report(name, "fetching stats...")
        window = self.date_range
        commits, lines, pull_requests, contributors, releases, issues = await asyncio.gather(
            _or_default(count_commits(self.client, name, branch, window), 0),
            _or_default(self.line_delta.resolve(name, branch, window), LineDelta.zero()),
            _or_default(count_pull_requests(self.client, name, branch, window), 0),
            _or_default(tally_contributors(self.client, name, branch, window), Counter()),
            _or_default(count_releases(self.client, name, window), 0),
            _or_default(self._issues(name), (0, 0)),
        )

        self.client.report(name, f"complete{archived}")
        return RepoMetrics(
            name=name,
            is_archived=handle.is_archived,
            commits=commits,
            lines_added=lines.added,
            lines_deleted=lines.deleted,
            total_lines=lines.added - lines.deleted,
            pull_requests=pull_requests,
            contributor_count=len(contributors),
            contributor_identities=frozenset(contributors),
            releases=releases,
            issues_created=issues[0],
            issues_closed=issues[1],
            contributor_commits=dict(contributors),
        )


__all__ = ["MetricsCollector"]
