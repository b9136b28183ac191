"""Tests for activity_metrics.pipeline.runner ensuring a full run flows through the engine.

Run with:
    pytest tests/test_runner.py --maxfail=1 -v --cov=activity_metrics.pipeline.runner --cov-report=term-missing
"""

import asyncio
import datetime as dt
import json

import pytest

from activity_metrics.pipeline import runner
from activity_metrics.pipeline.config import parse_args
from activity_metrics.retrieval.http_client import GitHubClient, TransportError

from conftest import FakeCommit, FakeGitHub, FakeRepo, FakeTransport


def _commits(prefix, count, start, author_for, additions=1, deletions=0):
    first = dt.datetime(2024, 1, 2, tzinfo=dt.timezone.utc)
    commits = [FakeCommit(f"{prefix}-base", start, login="octo", additions=1000)]
    for i in range(count):
        moment = (first + dt.timedelta(hours=i)).strftime("%Y-%m-%dT%H:%M:%SZ")
        commits.append(FakeCommit(f"{prefix}-{i}", moment, login=author_for(i),
                                  additions=additions, deletions=deletions))
    return commits


def _org():
    alpha = FakeRepo("alpha", commits=_commits(
        "a", 150, "2023-12-15T00:00:00Z", lambda i: "octo" if i % 2 else "amy",
        additions=2, deletions=1,
    ))
    beta = FakeRepo("beta", archived=True, commits=_commits(
        "b", 20, "2023-11-01T00:00:00Z", lambda i: "octo",
    ))
    return FakeGitHub("acme", [alpha, beta])


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "github": {"token": "tok", "organization": "acme"},
        "dateRange": {"startDate": "2024-01-01", "endDate": "2024-03-31"},
        "options": {"maxConcurrentRequests": 2},
    }), encoding="utf-8")
    return str(path)


@pytest.fixture
def fake_client(monkeypatch):
    transports = []

    def install(handler):
        def build_client(settings, progress=None):
            transport = FakeTransport(handler)
            transports.append(transport)
            return GitHubClient(transport, settings.organization,
                                progress=progress, page_size=settings.page_size)
        monkeypatch.setattr(runner, "build_client", build_client)
        return transports

    return install


def test_json_report_sums_every_repository(config_path, fake_client, capsys):
    fake_client(_org())
    code = asyncio.run(runner.run(parse_args(["--config", config_path, "--format", "json"])))
    assert code == 0

    report = json.loads(capsys.readouterr().out)
    totals = report["totals"]
    assert totals["commits"] == 170
    assert totals["linesAdded"] == 320
    assert totals["linesDeleted"] == 150
    assert totals["contributors"] == 2
    repos = {r["name"]: r for r in report["repositories"]}
    assert [r["name"] for r in report["repositories"]] == ["alpha", "beta"]
    assert repos["alpha"]["isArchived"] is False
    assert repos["beta"]["isArchived"] is True
    assert repos["alpha"]["commits"] == 150
    assert repos["beta"]["netLines"] == 20


def test_table_report_prints_progress(config_path, fake_client, capsys):
    fake_client(_org())
    asyncio.run(runner.run(parse_args(["--config", config_path])))
    out = capsys.readouterr().out
    assert "Found 2 repositories" in out
    assert "beta: complete (archived)" in out
    assert "[2/2]" in out
    assert "GITHUB ACTIVITY METRICS REPORT" in out
    assert "API Rate Limit:" in out


def test_by_user_report(config_path, fake_client, capsys):
    fake_client(_org())
    asyncio.run(runner.run(parse_args(["--config", config_path, "--format", "json", "--by-user"])))
    users = json.loads(capsys.readouterr().out)["users"]
    assert [(u["username"], u["commits"]) for u in users] == [("octo", 95), ("amy", 75)]
    assert users[0]["repos"] == ["alpha", "beta"]


def test_compare_mode(config_path, fake_client, capsys):
    transports = fake_client(_org())
    args = parse_args([
        "--config", config_path, "--format", "json",
        "--compare", "2024-01-01", "2024-03-31", "2024-04-01", "2024-06-30",
    ])
    asyncio.run(runner.run(args))
    data = json.loads(capsys.readouterr().out)
    assert data["period1"]["totals"]["commits"] == 170
    assert data["period2"]["totals"]["commits"] == 0
    assert data["changes"]["commits"] == {"absolute": -170, "percentage": -100}
    meta_calls = [p for p in transports[0].paths() if p in ("/repos/acme/alpha", "/repos/acme/beta")]
    assert len(meta_calls) == 4


def test_dry_run_lists_without_fetching_stats(config_path, fake_client, capsys):
    transports = fake_client(_org())
    asyncio.run(runner.run(parse_args(["--config", config_path, "--dry-run"])))
    out = capsys.readouterr().out
    assert "DRY RUN" in out
    assert "Found 2 repositories (1 active, 1 archived)" in out
    assert "- beta [archived]" in out
    assert transports[0].paths() == ["/orgs/acme/repos"]


def test_main_exits_on_config_error(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        runner.main(["--config", str(tmp_path / "missing.json")])
    assert excinfo.value.code == 1
    assert "[error] Configuration file not found" in capsys.readouterr().err


def test_main_exits_on_fatal_api_error(config_path, fake_client, capsys):
    fake_client(lambda *_: TransportError("Bad credentials", status=401))
    with pytest.raises(SystemExit) as excinfo:
        runner.main(["--config", config_path, "--format", "json"])
    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert 'Error in repository "acme" during "fetching repositories"' in err
    assert "HTTP Status: 401" in err


def test_main_exits_zero_on_success(config_path, fake_client, capsys):
    fake_client(_org())
    with pytest.raises(SystemExit) as excinfo:
        runner.main(["--config", config_path, "--format", "csv"])
    assert excinfo.value.code == 0
    assert capsys.readouterr().out.startswith("# Date Range: 2024-01-01 to 2024-03-31")
