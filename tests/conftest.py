"""Shared fakes for exercising the retrieval engine without network access."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import pytest

from activity_metrics.retrieval import http_client
from activity_metrics.retrieval.http_client import TransportError, TransportResponse
from activity_metrics.retrieval.models import parse_github_timestamp
from activity_metrics.retrieval.progress import ProgressSink


class RecordingProgress(ProgressSink):
    def __init__(self):
        self.total = None
        self.events = []
        self.completed = []

    def begin(self, total):
        self.total = total

    def notify(self, repo_name, task):
        self.events.append((repo_name, task))

    def complete(self, repo_name):
        self.completed.append(repo_name)

    def tasks_for(self, repo_name):
        return [task for name, task in self.events if name == repo_name]


class FakeTransport:
    """Routes every request through `handler(method, path, params)`.

    The handler returns response data, a TransportResponse, or an exception
    instance to raise.
    """

    def __init__(self, handler: Callable[[str, str, Dict[str, Any]], Any],
                 headers: Optional[Dict[str, str]] = None):
        self.handler = handler
        self.headers = headers or {}
        self.calls: List[tuple] = []

    async def request(self, method, path, params=None):
        params = dict(params or {})
        self.calls.append((method, path, params))
        result = self.handler(method, path, params)
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, TransportResponse):
            return result
        return TransportResponse(data=result, headers=dict(self.headers))

    def paths(self):
        return [path for _, path, _ in self.calls]


def page_of(items, params):
    per_page = int(params.get("per_page", 30))
    page = int(params.get("page", 1))
    return items[(page - 1) * per_page: page * per_page]


@dataclass
class FakeCommit:
    sha: str
    date: str
    login: Optional[str] = None
    email: Optional[str] = None
    additions: int = 0
    deletions: int = 0

    def to_api(self):
        return {
            "sha": self.sha,
            "author": {"login": self.login} if self.login else None,
            "commit": {
                "author": {"email": self.email, "date": self.date},
                "committer": {"date": self.date},
            },
        }


@dataclass
class FakeRepo:
    name: str
    archived: bool = False
    branch: str = "main"
    commits: List[FakeCommit] = field(default_factory=list)  # oldest first, linear history
    pulls: List[Dict[str, Any]] = field(default_factory=list)
    releases: List[Dict[str, Any]] = field(default_factory=list)
    issues: List[Dict[str, Any]] = field(default_factory=list)
    empty: bool = False


class FakeGitHub:
    """In-memory organization answering the REST paths the engine uses."""

    def __init__(self, org: str, repos: List[FakeRepo]):
        self.org = org
        self.repos = {repo.name: repo for repo in repos}

    def _commits_between(self, repo, since=None, until=None):
        lo = parse_github_timestamp(since) if since else None
        hi = parse_github_timestamp(until) if until else None
        selected = []
        for commit in repo.commits:
            moment = parse_github_timestamp(commit.date)
            if lo and moment < lo:
                continue
            if hi and moment > hi:
                continue
            selected.append(commit)
        return list(reversed(selected))

    def __call__(self, method, path, params):
        parts = path.strip("/").split("/")
        if parts[0] == "orgs":
            listing = [{"name": r.name, "archived": r.archived} for r in self.repos.values()]
            return page_of(listing, params)

        repo = self.repos.get(parts[2])
        if repo is None:
            return TransportError("Not Found", status=404)
        if len(parts) == 3:
            return {"name": repo.name, "default_branch": repo.branch}

        kind = parts[3]
        if kind == "commits" and len(parts) == 4:
            if repo.empty:
                return TransportError("Git Repository is empty.", status=409)
            commits = self._commits_between(repo, params.get("since"), params.get("until"))
            return page_of([c.to_api() for c in commits], params)
        if kind == "commits":
            sha = parts[4]
            index = next(i for i, c in enumerate(repo.commits) if c.sha == sha)
            commit = repo.commits[index]
            detail = commit.to_api()
            detail["parents"] = [{"sha": repo.commits[index - 1].sha}] if index > 0 else []
            detail["stats"] = {"additions": commit.additions, "deletions": commit.deletions}
            return detail
        if kind == "compare":
            base, head = parts[4].split("...")
            shas = [c.sha for c in repo.commits]
            window = repo.commits[shas.index(base) + 1: shas.index(head) + 1]
            return {"files": [{"additions": c.additions, "deletions": c.deletions} for c in window]}
        if kind == "pulls":
            ordered = sorted(repo.pulls, key=lambda p: p["created_at"], reverse=True)
            return page_of(ordered, params)
        if kind == "releases":
            return page_of(repo.releases, params)
        if kind == "issues":
            return page_of(repo.issues, params)
        return TransportError("Not Found", status=404)


@pytest.fixture
def no_sleep(monkeypatch):
    """Replace real waiting with a recorder of requested delays."""
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr(http_client, "sleep_seconds", fake_sleep)
    return delays


@pytest.fixture
def progress():
    return RecordingProgress()
