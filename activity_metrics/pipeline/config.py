"""Configuration loading and validation for the organization metrics run."""

from __future__ import annotations

import argparse
import dataclasses
import datetime as dt
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from activity_metrics.retrieval.config import PER_PAGE
from activity_metrics.retrieval.http_client import api_base_url
from activity_metrics.retrieval.models import DateRange
from activity_metrics.credentials import resolve_token

DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_CONCURRENCY = int(os.getenv("MAX_CONCURRENT_REQUESTS", "5"))
OUTPUT_FORMATS = ("table", "json", "csv", "markdown")
PLACEHOLDER_TOKEN = "YOUR_GITHUB_PERSONAL_ACCESS_TOKEN"
PLACEHOLDER_ORG = "YOUR_ORG_NAME"


class ConfigError(ValueError):
    """Raised when the configuration file or overrides cannot produce a valid run."""


@dataclass(frozen=True)
class RunSettings:
    """Resolved, validated settings for one invocation."""

    token: str
    organization: str
    api_url: str
    start_date: dt.date
    end_date: dt.date
    page_size: int = PER_PAGE
    max_concurrent_requests: int = DEFAULT_CONCURRENCY
    include_repos: Tuple[str, ...] = ()
    exclude_repos: Tuple[str, ...] = ()
    skip_line_stats: bool = False
    include_issues: bool = False

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    def with_dates(self, start: str, end: str) -> "RunSettings":
        start_date, end_date = parse_date_pair(start, end)
        return dataclasses.replace(self, start_date=start_date, end_date=end_date)


def parse_date(raw: Any, label: str) -> dt.date:
    if isinstance(raw, dt.date):
        return raw
    try:
        return dt.date.fromisoformat(str(raw).strip())
    except ValueError:
        raise ConfigError(f"Invalid {label} date format {raw!r}. Use YYYY-MM-DD") from None


def parse_date_pair(start: Any, end: Any) -> Tuple[dt.date, dt.date]:
    start_date = parse_date(start, "start")
    end_date = parse_date(end, "end")
    if start_date > end_date:
        raise ConfigError("Start date must be before end date")
    return start_date, end_date


def load_config_file(path: Optional[str | Path] = None) -> Dict[str, Any]:
    """Read the JSON config file; missing or malformed files raise ConfigError."""
    config_path = Path(path or DEFAULT_CONFIG_PATH).expanduser()
    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found at {config_path}. "
            "Create a config.json file based on config.example.json."
        )
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Configuration file {config_path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a JSON object")
    return data


def _names(raw: Any) -> Tuple[str, ...]:
    if not raw:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    return tuple(str(name).strip() for name in raw if str(name).strip())


def _positive_int(raw: Any, label: str, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{label} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigError(f"{label} must be at least 1, got {value}")
    return value


def build_settings(data: Dict[str, Any],
                   start: Optional[str] = None,
                   end: Optional[str] = None) -> RunSettings:
    """Validate raw config data (plus optional date overrides) into RunSettings."""
    github = data.get("github") or {}
    date_range = data.get("dateRange") or {}
    options = data.get("options") or {}

    token = resolve_token(github.get("token"))
    if not token or token == PLACEHOLDER_TOKEN:
        raise ConfigError("GitHub token not configured in config.json")

    organization = github.get("organization") or ""
    if not organization or organization == PLACEHOLDER_ORG:
        raise ConfigError("GitHub organization not configured in config.json")

    start_raw = start or date_range.get("startDate")
    end_raw = end or date_range.get("endDate")
    if not start_raw or not end_raw:
        raise ConfigError("Both startDate and endDate are required")
    start_date, end_date = parse_date_pair(start_raw, end_raw)

    return RunSettings(
        token=token,
        organization=organization,
        api_url=api_base_url(bool(github.get("isEnterprise")), github.get("enterpriseUrl") or ""),
        start_date=start_date,
        end_date=end_date,
        page_size=min(_positive_int(options.get("pageSize"), "pageSize", PER_PAGE), 100),
        max_concurrent_requests=_positive_int(
            options.get("maxConcurrentRequests"), "maxConcurrentRequests", DEFAULT_CONCURRENCY
        ),
        include_repos=_names(options.get("includeRepos")),
        exclude_repos=_names(options.get("excludeRepos")),
        skip_line_stats=bool(options.get("skipLineStats", False)),
        include_issues=bool(options.get("includeIssues", False)),
    )


def build_arg_parser() -> argparse.ArgumentParser:
    """Return the CLI parser used by the metrics entry point."""

    parser = argparse.ArgumentParser(
        description="Collect commit, line, pull request, contributor, and release activity "
                    "for every repository in a GitHub organization.",
    )
    parser.add_argument("--config", dest="config_path", default=None,
                        help="Path to configuration file (default: ./config.json)")
    parser.add_argument("--start", dest="start_date", help="Override start date (YYYY-MM-DD)")
    parser.add_argument("--end", dest="end_date", help="Override end date (YYYY-MM-DD)")
    parser.add_argument("--format", choices=OUTPUT_FORMATS, default="table")
    parser.add_argument("--output", "-o", dest="output_file",
                        help="Write output to file instead of stdout")
    parser.add_argument("--dry-run", action="store_true",
                        help="List repositories that would be analysed without fetching statistics")
    parser.add_argument("--by-user", action="store_true",
                        help="Show metrics broken down by contributor")
    parser.add_argument("--compare", nargs=4, metavar=("START1", "END1", "START2", "END2"),
                        help="Compare two periods")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments; accepts argv overrides for testing."""

    parser = build_arg_parser()
    return parser.parse_args(argv)


def resolve_settings(args: argparse.Namespace) -> RunSettings:
    """Load the config file named by `args` and apply CLI date overrides."""

    data = load_config_file(args.config_path)
    return build_settings(data, start=args.start_date, end=args.end_date)


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_CONCURRENCY",
    "OUTPUT_FORMATS",
    "ConfigError",
    "RunSettings",
    "parse_date",
    "parse_date_pair",
    "load_config_file",
    "build_settings",
    "build_arg_parser",
    "parse_args",
    "resolve_settings",
]
