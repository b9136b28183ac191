"""Metric collectors for repositories, commits, pull requests, contributors, releases, and issues."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .http_client import GitHubClient, paged_fetch
from .models import DateRange, RepositoryHandle, parse_github_timestamp


def author_key_from_commit(commit: Optional[dict]) -> str:
    """Identity for a commit author: GitHub login when linked, else the commit email."""
    commit = commit or {}
    login = (commit.get("author") or {}).get("login") or ""
    email = (((commit.get("commit") or {}).get("author")) or {}).get("email") or ""
    return login or email


class BranchResolver:
    """Resolves each repository's default branch once and caches it.

    A 404/409/422 from the metadata call propagates unchanged; callers treat it
    as the signal that the repository is empty or gone.
    """

    def __init__(self, client: GitHubClient, cache: Optional[Dict[str, str]] = None) -> None:
        self.client = client
        self.cache: Dict[str, str] = cache if cache is not None else {}

    async def resolve(self, repo_name: str) -> str:
        cached = self.cache.get(repo_name)
        if cached:
            return cached
        response = await self.client.request_with_backoff(
            repo_name, "fetching default branch", self.client.repo_path(repo_name)
        )
        branch = (response.data or {}).get("default_branch") or "main"
        self.cache[repo_name] = branch
        return branch

    def clear(self) -> None:
        self.cache.clear()


async def list_org_repos(client: GitHubClient,
                         include: Iterable[str] = (),
                         exclude: Iterable[str] = ()) -> List[RepositoryHandle]:
    """Return every organization repository that passes the include/exclude lists."""
    include_set = set(include or ())
    exclude_set = set(exclude or ())

    def wanted(repo: Dict[str, Any]) -> bool:
        name = repo.get("name")
        if not name:
            return False
        if include_set and name not in include_set:
            return False
        return name not in exclude_set

    repos = await paged_fetch(
        client,
        client.organization,
        "fetching repositories",
        f"/orgs/{client.organization}/repos",
        {"type": "all"},
        accept=wanted,
        describe="repositories",
    )
    return [RepositoryHandle(name=r["name"], is_archived=bool(r.get("archived"))) for r in repos]


def _commit_window(branch: str, date_range: DateRange) -> Dict[str, Any]:
    return {"sha": branch, "since": date_range.since, "until": date_range.until}


async def list_commits_in_range(client: GitHubClient, repo_name: str, branch: str,
                                date_range: DateRange,
                                operation: str = "fetching commits") -> List[Dict[str, Any]]:
    """All commits on `branch` inside the window, newest first (server-side filter)."""
    return await paged_fetch(
        client,
        repo_name,
        operation,
        client.repo_path(repo_name, "/commits"),
        _commit_window(branch, date_range),
        describe="commits",
    )


async def count_commits(client: GitHubClient, repo_name: str, branch: str,
                        date_range: DateRange) -> int:
    commits = await list_commits_in_range(client, repo_name, branch, date_range)
    return len(commits)


async def tally_contributors(client: GitHubClient, repo_name: str, branch: str,
                             date_range: DateRange) -> Counter:
    """Count in-range commits per author identity; commits without one are skipped."""
    commits = await paged_fetch(
        client,
        repo_name,
        "fetching contributors",
        client.repo_path(repo_name, "/commits"),
        _commit_window(branch, date_range),
        describe="contributors",
    )
    tally: Counter = Counter()
    for commit in commits:
        key = author_key_from_commit(commit)
        if key:
            tally[key] += 1
    return tally


async def count_pull_requests(client: GitHubClient, repo_name: str, branch: str,
                              date_range: DateRange) -> int:
    """Pull requests against `branch` created inside the window."""

    def created(pr: Dict[str, Any]):
        return parse_github_timestamp(pr.get("created_at"))

    prs = await paged_fetch(
        client,
        repo_name,
        "fetching pull requests",
        client.repo_path(repo_name, "/pulls"),
        {"state": "all", "base": branch, "sort": "created", "direction": "desc"},
        accept=lambda pr: date_range.contains(created(pr)),
        stop_when=lambda pr: date_range.is_before_start(created(pr)),
        describe="pull requests",
    )
    return len(prs)


def _release_moment(release: Dict[str, Any]):
    return parse_github_timestamp(release.get("published_at") or release.get("created_at"))


async def count_releases(client: GitHubClient, repo_name: str, date_range: DateRange) -> int:
    releases = await paged_fetch(
        client,
        repo_name,
        "fetching releases",
        client.repo_path(repo_name, "/releases"),
        accept=lambda rel: date_range.contains(_release_moment(rel)),
        stop_when=lambda rel: date_range.is_before_start(_release_moment(rel)),
        describe="releases",
    )
    return len(releases)


async def issue_stats(client: GitHubClient, repo_name: str,
                      date_range: DateRange) -> Tuple[int, int]:
    """Return (created, closed) issue counts for the window, ignoring pull requests."""
    issues = await paged_fetch(
        client,
        repo_name,
        "fetching issues",
        client.repo_path(repo_name, "/issues"),
        {"state": "all", "since": date_range.since, "sort": "updated", "direction": "desc"},
        accept=lambda issue: "pull_request" not in issue,
        describe="issues",
    )
    created = sum(1 for i in issues if date_range.contains(parse_github_timestamp(i.get("created_at"))))
    closed = sum(1 for i in issues if date_range.contains(parse_github_timestamp(i.get("closed_at"))))
    return created, closed


__all__ = [
    "author_key_from_commit",
    "BranchResolver",
    "list_org_repos",
    "list_commits_in_range",
    "count_commits",
    "tally_contributors",
    "count_pull_requests",
    "count_releases",
    "issue_stats",
]
