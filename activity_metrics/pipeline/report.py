"""Aggregation of per-repository metrics into organization totals and contributor views."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from activity_metrics.retrieval.models import RepoMetrics


@dataclass(frozen=True)
class Totals:
    commits: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    total_lines: int = 0
    pull_requests: int = 0
    contributors: int = 0
    issues_created: int = 0
    issues_closed: int = 0
    releases: int = 0
    repo_count: int = 0


@dataclass(frozen=True)
class TotalStats:
    repos: List[RepoMetrics]
    totals: Totals

    @property
    def archived_count(self) -> int:
        return sum(1 for repo in self.repos if repo.is_archived)

    @property
    def active_count(self) -> int:
        return len(self.repos) - self.archived_count


@dataclass
class UserStats:
    username: str
    commits: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    pull_requests: int = 0
    repos: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ComparisonStats:
    period1: TotalStats
    period2: TotalStats
    period1_range: Tuple[str, str]
    period2_range: Tuple[str, str]


def calculate_totals(repos: Sequence[RepoMetrics]) -> TotalStats:
    """Sum every repository, archived ones included; contributors are deduplicated."""
    unique_contributors = set()
    for repo in repos:
        unique_contributors.update(repo.contributor_identities)

    totals = Totals(
        commits=sum(r.commits for r in repos),
        lines_added=sum(r.lines_added for r in repos),
        lines_deleted=sum(r.lines_deleted for r in repos),
        total_lines=sum(r.total_lines for r in repos),
        pull_requests=sum(r.pull_requests for r in repos),
        contributors=len(unique_contributors),
        issues_created=sum(r.issues_created for r in repos),
        issues_closed=sum(r.issues_closed for r in repos),
        releases=sum(r.releases for r in repos),
        repo_count=len(repos),
    )
    return TotalStats(repos=list(repos), totals=totals)


def calculate_user_stats(repos: Sequence[RepoMetrics]) -> List[UserStats]:
    """Per-contributor commit counts and the repositories each one touched."""
    users: Dict[str, UserStats] = {}
    for repo in repos:
        for identity in sorted(repo.contributor_identities):
            user = users.setdefault(identity, UserStats(username=identity))
            user.commits += repo.contributor_commits.get(identity, 0)
            user.repos.append(repo.name)
    return sorted(users.values(), key=lambda u: (-u.commits, u.username))


def percent_change(before: int, after: int) -> int:
    if before == 0:
        return 0 if after == 0 else 100
    return round((after - before) / before * 100)


__all__ = [
    "Totals",
    "TotalStats",
    "UserStats",
    "ComparisonStats",
    "calculate_totals",
    "calculate_user_stats",
    "percent_change",
]
