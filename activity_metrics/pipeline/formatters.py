"""Rendering of aggregated metrics as table, JSON, CSV, or markdown text."""

from __future__ import annotations

import datetime as dt
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from activity_metrics.retrieval.models import RepoMetrics

from .report import ComparisonStats, TotalStats, UserStats, percent_change

WIDE = 100


def format_number(value: int) -> str:
    return f"{value:,}"


def _generated_at() -> str:
    return (
        dt.datetime.now(dt.timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


def sort_repos(repos: Sequence[RepoMetrics]) -> List[RepoMetrics]:
    """Active repositories by commits (desc), then archived ones by name."""
    active = sorted((r for r in repos if not r.is_archived), key=lambda r: -r.commits)
    archived = sorted((r for r in repos if r.is_archived), key=lambda r: r.name)
    return active + archived


def _row(cells: Sequence[str], widths: Sequence[int]) -> str:
    return "  " + "".join(cell.ljust(width) for cell, width in zip(cells, widths))


def _display_name(repo: RepoMetrics) -> str:
    if repo.is_archived:
        short = repo.name if len(repo.name) <= 16 else repo.name[:13] + "..."
        return f"{short} [archived]"
    return repo.name if len(repo.name) <= 26 else repo.name[:23] + "..."


def format_as_table(stats: TotalStats, start: str, end: str, skip_line_stats: bool = False) -> str:
    divider = "=" * WIDE
    thin = "-" * WIDE
    widths = (28, 10, 12, 12, 10, 8, 10, 10)
    lines = [
        "",
        divider,
        "GITHUB ACTIVITY METRICS REPORT".center(WIDE),
        divider,
        f"  Date Range: {start} to {end}",
        f"  Repositories: {len(stats.repos)} total "
        f"({stats.active_count} active, {stats.archived_count} archived)",
        divider,
        "",
        _row(("Repository", "Commits", "Lines +", "Lines -", "Net", "PRs", "Contrib", "Releases"), widths),
        "  " + thin,
    ]
    for repo in sort_repos(stats.repos):
        lines.append(_row((
            _display_name(repo),
            format_number(repo.commits),
            format_number(repo.lines_added),
            format_number(repo.lines_deleted),
            format_number(repo.total_lines),
            format_number(repo.pull_requests),
            format_number(repo.contributor_count),
            format_number(repo.releases),
        ), widths))

    t = stats.totals
    lines.append("  " + thin)
    lines.append(_row((
        "TOTALS",
        format_number(t.commits),
        format_number(t.lines_added),
        format_number(t.lines_deleted),
        format_number(t.total_lines),
        format_number(t.pull_requests),
        format_number(t.contributors),
        format_number(t.releases),
    ), widths))
    lines += ["", divider, "", "  SUMMARY:"]
    lines.append(f"    Total Commits:        {format_number(t.commits)}")
    if skip_line_stats:
        lines.append("    Total Lines Added:    (skipped)")
        lines.append("    Total Lines Deleted:  (skipped)")
        lines.append("    Net Line Change:      (skipped)")
    else:
        lines.append(f"    Total Lines Added:    {format_number(t.lines_added)}")
        lines.append(f"    Total Lines Deleted:  {format_number(t.lines_deleted)}")
        lines.append(f"    Net Line Change:      {format_number(t.total_lines)}")
    lines.append(f"    Total Pull Requests:  {format_number(t.pull_requests)}")
    lines.append(f"    Total Contributors:   {format_number(t.contributors)}")
    if t.issues_created or t.issues_closed:
        lines.append(f"    Issues Opened:        {format_number(t.issues_created)}")
        lines.append(f"    Issues Closed:        {format_number(t.issues_closed)}")
    lines.append(f"    Releases:             {format_number(t.releases)}")
    lines.append(f"    Repositories:         {format_number(t.repo_count)}")
    lines += ["", divider, ""]
    return "\n".join(lines)


def _lines_or_none(value: int, skip: bool) -> Optional[int]:
    return None if skip else value


def format_as_json(stats: TotalStats, start: str, end: str, skip_line_stats: bool = False) -> str:
    t = stats.totals
    output: Dict[str, Any] = {
        "metadata": {
            "dateRange": {"startDate": start, "endDate": end},
            "generatedAt": _generated_at(),
            "repositoryCount": len(stats.repos),
            "activeCount": stats.active_count,
            "archivedCount": stats.archived_count,
        },
        "totals": {
            "commits": t.commits,
            "linesAdded": _lines_or_none(t.lines_added, skip_line_stats),
            "linesDeleted": _lines_or_none(t.lines_deleted, skip_line_stats),
            "netLines": _lines_or_none(t.total_lines, skip_line_stats),
            "pullRequests": t.pull_requests,
            "contributors": t.contributors,
            "issuesCreated": t.issues_created,
            "issuesClosed": t.issues_closed,
            "releases": t.releases,
        },
        "repositories": [
            {
                "name": repo.name,
                "isArchived": repo.is_archived,
                "commits": repo.commits,
                "linesAdded": _lines_or_none(repo.lines_added, skip_line_stats),
                "linesDeleted": _lines_or_none(repo.lines_deleted, skip_line_stats),
                "netLines": _lines_or_none(repo.total_lines, skip_line_stats),
                "pullRequests": repo.pull_requests,
                "contributors": repo.contributor_count,
                "contributorsList": sorted(repo.contributor_identities),
                "issuesCreated": repo.issues_created,
                "issuesClosed": repo.issues_closed,
                "releases": repo.releases,
            }
            for repo in stats.repos
        ],
    }
    return json.dumps(output, indent=2, ensure_ascii=False)


def _quote_csv_field(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def escape_csv_field(value: str) -> str:
    if any(ch in value for ch in (",", '"', "\n", "\r")):
        return _quote_csv_field(value)
    return value


def format_as_csv(stats: TotalStats, start: str, end: str, skip_line_stats: bool = False) -> str:
    line_headers = [] if skip_line_stats else ["Lines Added", "Lines Deleted", "Net Lines"]
    rows: List[List[str]] = [
        [f"# Date Range: {start} to {end}"],
        [f"# Generated: {_generated_at()}"],
        [],
        ["Repository", "Archived", "Commits", *line_headers, "Pull Requests", "Contributors", "Releases"],
    ]
    for repo in sort_repos(stats.repos):
        line_cells = [] if skip_line_stats else [
            str(repo.lines_added), str(repo.lines_deleted), str(repo.total_lines)
        ]
        rows.append([
            escape_csv_field(repo.name),
            "Yes" if repo.is_archived else "No",
            str(repo.commits),
            *line_cells,
            str(repo.pull_requests),
            str(repo.contributor_count),
            str(repo.releases),
        ])

    t = stats.totals
    total_line_cells = [] if skip_line_stats else [
        str(t.lines_added), str(t.lines_deleted), str(t.total_lines)
    ]
    rows.append([])
    rows.append([
        "TOTALS", "", str(t.commits), *total_line_cells,
        str(t.pull_requests), str(t.contributors), str(t.releases),
    ])
    return "\n".join(",".join(row) for row in rows)


def format_as_markdown(stats: TotalStats, start: str, end: str, skip_line_stats: bool = False) -> str:
    t = stats.totals
    lines = [
        "# GitHub Activity Metrics Report",
        "",
        f"**Date Range:** {start} to {end}",
        f"**Generated:** {_generated_at()}",
        f"**Repositories:** {len(stats.repos)} total "
        f"({stats.active_count} active, {stats.archived_count} archived)",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Total Commits | {format_number(t.commits)} |",
    ]
    if not skip_line_stats:
        lines.append(f"| Lines Added | {format_number(t.lines_added)} |")
        lines.append(f"| Lines Deleted | {format_number(t.lines_deleted)} |")
        lines.append(f"| Net Line Change | {format_number(t.total_lines)} |")
    lines.append(f"| Pull Requests | {format_number(t.pull_requests)} |")
    lines.append(f"| Unique Contributors | {format_number(t.contributors)} |")
    lines.append(f"| Releases | {format_number(t.releases)} |")
    lines += ["", "## Repository Breakdown", ""]

    header = ["Repository", "Commits",
              *([] if skip_line_stats else ["Lines +", "Lines -", "Net"]),
              "PRs", "Contributors", "Releases"]
    lines.append("| " + " | ".join(header) + " |")
    lines.append("|" + "|".join("---" for _ in header) + "|")
    for repo in sort_repos(stats.repos):
        name = f"{repo.name} *(archived)*" if repo.is_archived else repo.name
        cols = [name, format_number(repo.commits)]
        if not skip_line_stats:
            cols += [format_number(repo.lines_added), format_number(repo.lines_deleted),
                     format_number(repo.total_lines)]
        cols += [format_number(repo.pull_requests), format_number(repo.contributor_count),
                 format_number(repo.releases)]
        lines.append("| " + " | ".join(cols) + " |")
    lines.append("")
    return "\n".join(lines)


REPORT_FORMATTERS = {
    "table": format_as_table,
    "json": format_as_json,
    "csv": format_as_csv,
    "markdown": format_as_markdown,
}


def format_user_stats(users: Sequence[UserStats], fmt: str, start: str, end: str) -> str:
    """Render the per-contributor view in any supported output format."""
    if fmt == "json":
        return json.dumps({
            "metadata": {
                "dateRange": {"startDate": start, "endDate": end},
                "generatedAt": _generated_at(),
                "userCount": len(users),
            },
            "users": [
                {
                    "username": u.username,
                    "commits": u.commits,
                    "linesAdded": u.lines_added,
                    "linesDeleted": u.lines_deleted,
                    "pullRequests": u.pull_requests,
                    "repos": u.repos,
                }
                for u in users
            ],
        }, indent=2, ensure_ascii=False)

    if fmt == "csv":
        rows = ["Username,Commits,Lines Added,Lines Deleted,Pull Requests,Repositories"]
        for u in users:
            rows.append(",".join([
                escape_csv_field(u.username), str(u.commits), str(u.lines_added),
                str(u.lines_deleted), str(u.pull_requests), _quote_csv_field("; ".join(u.repos)),
            ]))
        return "\n".join(rows)

    if fmt == "markdown":
        lines = [
            "# Contributor Activity Report",
            "",
            f"**Date Range:** {start} to {end}",
            f"**Total Contributors:** {len(users)}",
            "",
            "| Contributor | Commits | Lines + | Lines - | PRs | Repos |",
            "|-------------|---------|---------|---------|-----|-------|",
        ]
        for u in users:
            lines.append(
                f"| {u.username} | {format_number(u.commits)} | {format_number(u.lines_added)} | "
                f"{format_number(u.lines_deleted)} | {format_number(u.pull_requests)} | {len(u.repos)} |"
            )
        return "\n".join(lines)

    divider = "=" * 90
    widths = (25, 12, 12, 12, 8, 10)
    lines = [
        "",
        divider,
        "CONTRIBUTOR ACTIVITY REPORT".center(90),
        divider,
        f"  Date Range: {start} to {end}",
        f"  Total Contributors: {len(users)}",
        divider,
        "",
        _row(("Contributor", "Commits", "Lines +", "Lines -", "PRs", "Repos"), widths),
        "  " + "-" * 90,
    ]
    for u in users:
        name = u.username if len(u.username) <= 23 else u.username[:20] + "..."
        lines.append(_row((
            name, format_number(u.commits), format_number(u.lines_added),
            format_number(u.lines_deleted), format_number(u.pull_requests), str(len(u.repos)),
        ), widths))
    lines += ["", divider, ""]
    return "\n".join(lines)


COMPARED_METRICS = (
    ("Commits", "commits"),
    ("Lines Added", "lines_added"),
    ("Lines Deleted", "lines_deleted"),
    ("Pull Requests", "pull_requests"),
    ("Contributors", "contributors"),
    ("Releases", "releases"),
)


def format_comparison(comparison: ComparisonStats, fmt: str = "table") -> str:
    p1 = comparison.period1.totals
    p2 = comparison.period2.totals
    if fmt == "json":
        changes = {}
        for _, attr in COMPARED_METRICS:
            before, after = getattr(p1, attr), getattr(p2, attr)
            changes[attr] = {"absolute": after - before, "percentage": percent_change(before, after)}
        return json.dumps({
            "period1": {
                "range": {"start": comparison.period1_range[0], "end": comparison.period1_range[1]},
                "totals": asdict(p1),
            },
            "period2": {
                "range": {"start": comparison.period2_range[0], "end": comparison.period2_range[1]},
                "totals": asdict(p2),
            },
            "changes": changes,
        }, indent=2, ensure_ascii=False)

    divider = "=" * WIDE
    widths = (20, 15, 15, 15, 12)
    lines = [
        "",
        divider,
        "PERIOD COMPARISON REPORT".center(WIDE),
        divider,
        f"  Period 1: {comparison.period1_range[0]} to {comparison.period1_range[1]}",
        f"  Period 2: {comparison.period2_range[0]} to {comparison.period2_range[1]}",
        divider,
        "",
        _row(("Metric", "Period 1", "Period 2", "Change", "% Change"), widths),
        "  " + "-" * WIDE,
    ]
    for label, attr in COMPARED_METRICS:
        before, after = getattr(p1, attr), getattr(p2, attr)
        delta = after - before
        pct = percent_change(before, after)
        lines.append(_row((
            label,
            format_number(before),
            format_number(after),
            f"+{format_number(delta)}" if delta >= 0 else format_number(delta),
            f"+{pct}%" if pct >= 0 else f"{pct}%",
        ), widths))
    lines += ["", divider, ""]
    return "\n".join(lines)


def write_output(content: str, output_file: Optional[str | Path] = None) -> None:
    """Write to `output_file` (UTF-8) when given, otherwise print to stdout."""
    if output_file:
        Path(output_file).write_text(content, encoding="utf-8")
        print(f"  Output written to: {output_file}")
    else:
        print(content)


__all__ = [
    "format_number",
    "sort_repos",
    "format_as_table",
    "format_as_json",
    "format_as_csv",
    "format_as_markdown",
    "REPORT_FORMATTERS",
    "escape_csv_field",
    "format_user_stats",
    "format_comparison",
    "write_output",
]
