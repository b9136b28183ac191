"""Resilient GitHub metric retrieval: quota, retries, paging, line deltas, scheduling."""

from .collectors import BranchResolver, list_org_repos
from .http_client import GitHubApiError, GitHubClient, GitHubTransport, QuotaTracker, TransportError
from .line_delta import LineDeltaResolver
from .metrics import MetricsCollector
from .models import DateRange, LineDelta, RepoMetrics, RepositoryHandle
from .progress import ProgressSink
from .scheduler import collect_all

__all__ = [
    "BranchResolver",
    "list_org_repos",
    "GitHubApiError",
    "GitHubClient",
    "GitHubTransport",
    "QuotaTracker",
    "TransportError",
    "LineDeltaResolver",
    "MetricsCollector",
    "DateRange",
    "LineDelta",
    "RepoMetrics",
    "RepositoryHandle",
    "ProgressSink",
    "collect_all",
]
