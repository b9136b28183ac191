"""Value objects shared by the retrieval engine and the reporting layer."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional

from .config import DEFAULT_RATE_LIMIT_REMAINING

UTC = dt.timezone.utc


def parse_github_timestamp(raw: Optional[str]) -> Optional[dt.datetime]:
    """Parse GitHub's `2024-01-01T00:00:00Z` timestamps into aware UTC datetimes."""
    if not raw:
        return None
    try:
        return dt.datetime.strptime(raw, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=UTC)
    except ValueError:
        pass
    try:
        parsed = dt.datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def github_timestamp(value: dt.datetime) -> str:
    """Render a UTC datetime the way the commits API expects `since`/`until`."""
    text = value.astimezone(UTC).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


@dataclass(frozen=True)
class RepositoryHandle:
    name: str
    is_archived: bool = False


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-day window: start 00:00:00Z through end 23:59:59Z."""

    start: dt.date
    end: dt.date

    @property
    def start_at(self) -> dt.datetime:
        return dt.datetime.combine(self.start, dt.time.min, tzinfo=UTC)

    @property
    def end_at(self) -> dt.datetime:
        return dt.datetime.combine(self.end, dt.time(23, 59, 59), tzinfo=UTC)

    @property
    def since(self) -> str:
        return github_timestamp(self.start_at)

    @property
    def until(self) -> str:
        return github_timestamp(self.end_at)

    @property
    def before_start(self) -> str:
        """One millisecond before the window opens; the baseline cut-off."""
        return github_timestamp(self.start_at - dt.timedelta(milliseconds=1))

    def contains(self, moment: Optional[dt.datetime]) -> bool:
        if moment is None:
            return False
        return self.start_at <= moment <= self.end_at

    def is_before_start(self, moment: Optional[dt.datetime]) -> bool:
        return moment is not None and moment < self.start_at


@dataclass
class QuotaState:
    remaining: int = DEFAULT_RATE_LIMIT_REMAINING
    reset_epoch_seconds: int = 0


@dataclass(frozen=True)
class CommitRef:
    sha: str
    timestamp: Optional[dt.datetime] = None

    @classmethod
    def from_api(cls, commit: Mapping) -> "CommitRef":
        detail = (commit.get("commit") or {})
        raw = ((detail.get("committer") or {}).get("date")
               or (detail.get("author") or {}).get("date"))
        return cls(sha=commit.get("sha") or "", timestamp=parse_github_timestamp(raw))


@dataclass(frozen=True)
class LineDelta:
    added: int = 0
    deleted: int = 0

    @classmethod
    def zero(cls) -> "LineDelta":
        return cls(0, 0)


@dataclass(frozen=True)
class RepoMetrics:
    """Everything collected for one repository over one date range."""

    name: str
    is_archived: bool
    commits: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    total_lines: int = 0
    pull_requests: int = 0
    contributor_count: int = 0
    contributor_identities: FrozenSet[str] = frozenset()
    releases: int = 0
    issues_created: int = 0
    issues_closed: int = 0
    contributor_commits: Dict[str, int] = field(default_factory=dict, compare=False)

    @classmethod
    def empty(cls, handle: RepositoryHandle) -> "RepoMetrics":
        return cls(name=handle.name, is_archived=handle.is_archived)


__all__ = [
    "UTC",
    "parse_github_timestamp",
    "github_timestamp",
    "RepositoryHandle",
    "DateRange",
    "QuotaState",
    "CommitRef",
    "LineDelta",
    "RepoMetrics",
]
