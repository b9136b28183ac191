"""Tests for activity_metrics.retrieval.collectors covering branch resolution and paged metrics.

Run with coverage to exercise the data collection logic:
    pytest tests/test_collectors.py --maxfail=1 -v --cov=activity_metrics.retrieval.collectors --cov-report=term-missing
"""

import asyncio
import datetime as dt

import pytest

from activity_metrics.retrieval import collectors
from activity_metrics.retrieval.http_client import GitHubApiError, GitHubClient, TransportError
from activity_metrics.retrieval.models import DateRange, RepositoryHandle

from conftest import FakeCommit, FakeGitHub, FakeRepo, FakeTransport, page_of

JAN = DateRange(dt.date(2024, 1, 2), dt.date(2024, 1, 4))


def _client(handler, page_size=100, progress=None):
    return GitHubClient(FakeTransport(handler), "org", page_size=page_size, progress=progress)


def test_author_key_prefers_login_then_email():
    with_login = FakeCommit("a", "2024-01-01T00:00:00Z", login="octo", email="o@x.io").to_api()
    email_only = FakeCommit("b", "2024-01-01T00:00:00Z", email="dev@x.io").to_api()
    assert collectors.author_key_from_commit(with_login) == "octo"
    assert collectors.author_key_from_commit(email_only) == "dev@x.io"
    assert collectors.author_key_from_commit({"commit": {}}) == ""


def test_branch_resolver_caches_and_clears():
    client = _client(lambda *_: {"default_branch": "trunk"})
    resolver = collectors.BranchResolver(client)
    assert asyncio.run(resolver.resolve("svc")) == "trunk"
    assert asyncio.run(resolver.resolve("svc")) == "trunk"
    assert len(client.transport.calls) == 1
    assert client.transport.calls[0][1] == "/repos/org/svc"

    resolver.clear()
    asyncio.run(resolver.resolve("svc"))
    assert len(client.transport.calls) == 2


def test_branch_resolver_propagates_empty_repo_signal(no_sleep):
    client = _client(lambda *_: TransportError("Not Found", status=404))
    resolver = collectors.BranchResolver(client)
    with pytest.raises(GitHubApiError) as excinfo:
        asyncio.run(resolver.resolve("gone"))
    assert excinfo.value.status == 404
    assert excinfo.value.operation == "fetching default branch"
    assert resolver.cache == {}


def test_list_org_repos_applies_filters():
    listing = [
        {"name": "api", "archived": False},
        {"name": "web", "archived": True},
        {"name": "internal", "archived": False},
    ]
    client = _client(lambda m, p, params: page_of(listing, params), page_size=2)
    repos = asyncio.run(collectors.list_org_repos(client, exclude=["internal"]))
    assert repos == [RepositoryHandle("api", False), RepositoryHandle("web", True)]
    assert client.transport.calls[0][1] == "/orgs/org/repos"
    assert client.transport.calls[0][2]["type"] == "all"

    only = asyncio.run(collectors.list_org_repos(client, include=["web", "missing"]))
    assert only == [RepositoryHandle("web", True)]


def _pr(day):
    return {"number": day, "created_at": f"2024-01-{day:02d}T12:00:00Z"}


def test_pull_request_count_stops_at_first_older_item():
    # created-desc pages of two: [5,4] [3,2] [1,0] [-]; the window covers days 2..4
    prs = [_pr(day) for day in (5, 4, 3, 2, 1)] + [{"number": 0, "created_at": "2023-12-31T12:00:00Z"}]
    prs += [{"number": -n, "created_at": "2023-12-01T00:00:00Z"} for n in range(1, 5)]
    client = _client(lambda m, p, params: page_of(prs, params), page_size=2)
    count = asyncio.run(collectors.count_pull_requests(client, "svc", "main", JAN))
    assert count == 3
    assert [params["page"] for _, _, params in client.transport.calls] == [1, 2, 3]
    params = client.transport.calls[0][2]
    assert params["sort"] == "created" and params["direction"] == "desc"
    assert params["base"] == "main" and params["state"] == "all"


def test_release_count_uses_published_then_created():
    releases = [
        {"published_at": "2024-01-05T00:00:00Z"},
        {"published_at": None, "created_at": "2024-01-03T00:00:00Z"},
        {"published_at": "2024-01-02T00:00:00Z"},
        {"published_at": "2024-01-01T23:59:59Z"},
        {"published_at": "2024-01-03T00:00:00Z"},
    ]
    client = _client(lambda m, p, params: page_of(releases, params))
    assert asyncio.run(collectors.count_releases(client, "svc", JAN)) == 2


def test_commit_count_and_contributors_use_server_window():
    repo = FakeRepo("svc", commits=[
        FakeCommit("c0", "2023-12-30T10:00:00Z", login="old"),
        FakeCommit("c1", "2024-01-02T00:00:00Z", login="octo"),
        FakeCommit("c2", "2024-01-03T08:00:00Z", email="dev@x.io"),
        FakeCommit("c3", "2024-01-04T23:59:59Z", login="octo"),
        FakeCommit("c4", "2024-01-05T00:00:00Z", login="late"),
    ])
    client = _client(FakeGitHub("org", [repo]), page_size=2)
    assert asyncio.run(collectors.count_commits(client, "svc", "main", JAN)) == 3
    tally = asyncio.run(collectors.tally_contributors(client, "svc", "main", JAN))
    assert dict(tally) == {"octo": 2, "dev@x.io": 1}

    params = client.transport.calls[0][2]
    assert params["sha"] == "main"
    assert params["since"] == "2024-01-02T00:00:00.000Z"
    assert params["until"] == "2024-01-04T23:59:59.000Z"


def test_issue_stats_skip_pull_requests():
    issues = [
        {"created_at": "2024-01-03T00:00:00Z", "closed_at": "2024-01-04T00:00:00Z"},
        {"created_at": "2023-11-01T00:00:00Z", "closed_at": "2024-01-02T09:00:00Z"},
        {"created_at": "2024-01-02T00:00:00Z", "closed_at": None, "pull_request": {}},
        {"created_at": "2024-01-02T00:00:00Z", "closed_at": "2024-02-01T00:00:00Z"},
    ]
    client = _client(lambda m, p, params: page_of(issues, params))
    assert asyncio.run(collectors.issue_stats(client, "svc", JAN)) == (2, 2)
    assert client.transport.calls[0][2]["since"] == JAN.since
