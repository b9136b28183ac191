"""Central configuration constants for the metric retrieval engine."""

from __future__ import annotations

import os
from typing import FrozenSet

USER_AGENT = "org-activity-metrics/1.0"
BASE_URL = "https://api.github.com"
ENTERPRISE_API_SUFFIX = "/api/v3"
PER_PAGE = int(os.getenv("PER_PAGE", "100"))
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "30"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
BACKOFF_BASE_SEC = float(os.getenv("BACKOFF_BASE_SEC", "1"))
RATE_LIMIT_FLOOR_SEC = int(os.getenv("RATE_LIMIT_FLOOR_SEC", "60"))  # applied to every 403
RATE_LIMIT_THRESHOLD = int(os.getenv("RATE_LIMIT_THRESHOLD", "100"))
RATE_LIMIT_BUFFER_SEC = int(os.getenv("RATE_LIMIT_BUFFER_SEC", "5"))
MAX_THROTTLE_WAIT_SEC = int(os.getenv("MAX_THROTTLE_WAIT_SEC", str(60 * 60)))
DEFAULT_RATE_LIMIT_REMAINING = 5000

RETRYABLE_STATUSES: FrozenSet[int] = frozenset({403, 429, 502, 503, 504})
EMPTY_HISTORY_STATUSES: FrozenSet[int] = frozenset({404, 409, 422})
CONNECTION_ERROR_HINTS = (
    "other side closed",
    "connection reset",
    "econnreset",
    "socket hang up",
    "timed out",
    "etimedout",
    "timeout",
    "enotfound",
    "name or service not known",
    "temporary failure in name resolution",
    "network",
    "connection aborted",
    "connection refused",
)

__all__ = [
    "USER_AGENT",
    "BASE_URL",
    "ENTERPRISE_API_SUFFIX",
    "PER_PAGE",
    "REQUEST_TIMEOUT",
    "MAX_RETRIES",
    "BACKOFF_BASE_SEC",
    "RATE_LIMIT_FLOOR_SEC",
    "RATE_LIMIT_THRESHOLD",
    "RATE_LIMIT_BUFFER_SEC",
    "MAX_THROTTLE_WAIT_SEC",
    "DEFAULT_RATE_LIMIT_REMAINING",
    "RETRYABLE_STATUSES",
    "EMPTY_HISTORY_STATUSES",
    "CONNECTION_ERROR_HINTS",
]
