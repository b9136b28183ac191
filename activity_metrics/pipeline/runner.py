"""Entry points for running the organization metrics pipeline."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from activity_metrics.retrieval.collectors import BranchResolver, list_org_repos
from activity_metrics.retrieval.http_client import GitHubApiError, GitHubClient, GitHubTransport
from activity_metrics.retrieval.metrics import MetricsCollector
from activity_metrics.retrieval.models import RepoMetrics, RepositoryHandle
from activity_metrics.retrieval.progress import ProgressSink
from activity_metrics.retrieval.scheduler import collect_all

from .config import ConfigError, RunSettings, parse_args, resolve_settings
from .formatters import REPORT_FORMATTERS, format_comparison, format_user_stats, write_output
from .progress import ConsoleProgress
from .report import ComparisonStats, calculate_totals, calculate_user_stats


def build_client(settings: RunSettings, progress: Optional[ProgressSink] = None) -> GitHubClient:
    transport = GitHubTransport(settings.token, base_url=settings.api_url)
    return GitHubClient(
        transport,
        settings.organization,
        progress=progress,
        page_size=settings.page_size,
    )


async def fetch_repositories(client: GitHubClient, settings: RunSettings) -> List[RepositoryHandle]:
    return await list_org_repos(client, settings.include_repos, settings.exclude_repos)


async def process_org(client: GitHubClient,
                      settings: RunSettings,
                      repos: List[RepositoryHandle],
                      branches: Optional[BranchResolver] = None) -> List[RepoMetrics]:
    """Collect metrics for `repos` over the settings' date range, in input order."""
    collector = MetricsCollector(
        client,
        settings.date_range,
        branches=branches,
        skip_line_stats=settings.skip_line_stats,
        include_issues=settings.include_issues,
    )
    return await collect_all(collector, repos, settings.max_concurrent_requests, client.progress)


def describe_dry_run(settings: RunSettings, repos: List[RepositoryHandle]) -> str:
    """Summarize what a full run would analyse without fetching any statistics."""
    lines = [
        "",
        "  DRY RUN - No statistics will be fetched",
        "",
        f"  Organization: {settings.organization}",
        f"  Date Range: {settings.start_date} to {settings.end_date}",
        "",
    ]
    if not repos:
        lines.append("  No repositories found matching the criteria.")
        return "\n".join(lines)

    active = sorted(r.name for r in repos if not r.is_archived)
    archived = sorted(r.name for r in repos if r.is_archived)
    lines.append(
        f"  Found {len(repos)} repositories ({len(active)} active, {len(archived)} archived):"
    )
    lines.append("")
    if active:
        lines.append("  Active repositories:")
        lines.extend(f"    - {name}" for name in active)
        lines.append("")
    if archived:
        lines.append("  Archived repositories:")
        lines.extend(f"    - {name} [archived]" for name in archived)
        lines.append("")

    lines.append("  Analysis would include:")
    lines.append("    - Commits on default branch within date range")
    if not settings.skip_line_stats:
        lines.append("    - Lines of code added/deleted")
    lines.append("    - Pull requests created")
    lines.append("    - Unique contributors")
    lines.append("    - Releases published")
    if settings.include_issues:
        lines.append("    - Issues opened and closed")
    lines.append("")
    lines.append("  Configuration:")
    lines.append(f"    - Max concurrent requests: {settings.max_concurrent_requests}")
    lines.append(f"    - Page size: {settings.page_size}")
    lines.append(f"    - Skip line stats: {settings.skip_line_stats}")
    if settings.include_repos:
        lines.append(f"    - Include only: {', '.join(settings.include_repos)}")
    if settings.exclude_repos:
        lines.append(f"    - Exclude: {', '.join(settings.exclude_repos)}")
    lines.append("")
    return "\n".join(lines)


async def run_comparison(client: GitHubClient, settings: RunSettings,
                         args: argparse.Namespace) -> None:
    start1, end1, start2, end2 = args.compare
    first = settings.with_dates(start1, end1)
    second = settings.with_dates(start2, end2)
    branches = BranchResolver(client)
    table = args.format == "table"

    if table:
        print(f"\n  Analyzing Period 1: {start1} to {end1}")
    repos1 = await fetch_repositories(client, first)
    period1 = calculate_totals(await process_org(client, first, repos1, branches))

    if table:
        print(f"\n  Analyzing Period 2: {start2} to {end2}")
    branches.clear()
    repos2 = await fetch_repositories(client, second)
    period2 = calculate_totals(await process_org(client, second, repos2, branches))

    comparison = ComparisonStats(
        period1=period1,
        period2=period2,
        period1_range=(start1, end1),
        period2_range=(start2, end2),
    )
    fmt = "json" if args.format == "json" else "table"
    write_output(format_comparison(comparison, fmt), args.output_file)
    if table:
        print(f"  API Rate Limit: {client.quota.remaining} requests remaining\n")


async def run(args: argparse.Namespace) -> int:
    """Execute one CLI invocation; returns the process exit code."""
    settings = resolve_settings(args)
    table = args.format == "table"
    progress = ConsoleProgress(quiet=not table)
    client = build_client(settings, progress)
    start, end = str(settings.start_date), str(settings.end_date)

    try:
        if args.dry_run:
            repos = await fetch_repositories(client, settings)
            print(describe_dry_run(settings, repos))
            return 0

        if args.compare:
            await run_comparison(client, settings, args)
            return 0

        if table:
            print(f"  Organization: {settings.organization}")
            print(f"  Date Range: {start} to {end}\n")
            print("  Fetching repositories...")
        repos = await fetch_repositories(client, settings)
        if not repos:
            print("  No repositories found matching the criteria.")
            return 0
        if table:
            print(f"  Found {len(repos)} repositories\n")
            print("  Analyzing repositories...\n")

        repo_metrics = await process_org(client, settings, repos)

        if args.by_user:
            users = calculate_user_stats(repo_metrics)
            write_output(format_user_stats(users, args.format, start, end), args.output_file)
        else:
            stats = calculate_totals(repo_metrics)
            formatter = REPORT_FORMATTERS[args.format]
            write_output(formatter(stats, start, end, settings.skip_line_stats), args.output_file)

        if table:
            print(f"  API Rate Limit: {client.quota.remaining} requests remaining\n")
        return 0
    finally:
        await client.close()


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point; exits non-zero on configuration or fatal API errors."""
    args = parse_args(argv)
    try:
        code = asyncio.run(run(args))
    except ConfigError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        sys.exit(1)
    except GitHubApiError as exc:
        print(f'\n  Error in repository "{exc.repo_name}" during "{exc.operation}":', file=sys.stderr)
        print(f"    {exc.original_error}", file=sys.stderr)
        if exc.status is not None:
            print(f"    HTTP Status: {exc.status}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
