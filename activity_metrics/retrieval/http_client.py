"""REST transport, quota tracking, and retry/backoff logic for the retrieval engine."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from .config import (
    BACKOFF_BASE_SEC,
    BASE_URL,
    CONNECTION_ERROR_HINTS,
    EMPTY_HISTORY_STATUSES,
    ENTERPRISE_API_SUFFIX,
    MAX_RETRIES,
    MAX_THROTTLE_WAIT_SEC,
    PER_PAGE,
    RATE_LIMIT_BUFFER_SEC,
    RATE_LIMIT_FLOOR_SEC,
    RATE_LIMIT_THRESHOLD,
    REQUEST_TIMEOUT,
    RETRYABLE_STATUSES,
    USER_AGENT,
)
from .models import QuotaState
from .progress import ProgressSink


class TransportError(Exception):
    """A request that failed at the HTTP or connection level."""

    def __init__(self, message: str, status: Optional[int] = None,
                 headers: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(message)
        self.status = status
        self.headers = dict(headers or {})


class GitHubApiError(Exception):
    """Fatal failure of one operation, tagged with the repository that caused it."""

    def __init__(self, repo_name: str, operation: str, original_error: BaseException) -> None:
        self.repo_name = repo_name
        self.operation = operation
        self.original_error = original_error
        status = error_status(original_error)
        status_info = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"[{repo_name}] {operation}: {original_error}{status_info}")

    @property
    def status(self) -> Optional[int]:
        return error_status(self.original_error)


def error_status(error: BaseException) -> Optional[int]:
    """Return the HTTP status attached to an error (or its wrapped original), if any."""
    if isinstance(error, GitHubApiError):
        return error_status(error.original_error)
    status = getattr(error, "status", None)
    if isinstance(status, int):
        return status
    response = getattr(error, "response", None)
    code = getattr(response, "status_code", None)
    return code if isinstance(code, int) else None


def is_empty_history_error(error: BaseException) -> bool:
    """404/409/422 mean the repository has no usable history for the request."""
    return error_status(error) in EMPTY_HISTORY_STATUSES


def _is_connection_failure(error: BaseException) -> bool:
    if isinstance(error, (requests.ConnectionError, requests.Timeout,
                          ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True
    message = str(error).lower()
    return any(hint in message for hint in CONNECTION_ERROR_HINTS)


def is_retryable_error(error: BaseException) -> bool:
    """Connection failures and 403/429/502/503/504 are worth another attempt."""
    status = error_status(error)
    if status is not None:
        return status in RETRYABLE_STATUSES
    if _is_connection_failure(error):
        return True
    cause = error.__cause__
    return cause is not None and _is_connection_failure(cause)


def backoff_delay(attempt: int, error: Optional[BaseException] = None) -> float:
    """Exponential delay for a 1-based attempt; any 403 waits at least a minute."""
    delay = BACKOFF_BASE_SEC * (2 ** (attempt - 1))
    if error is not None and error_status(error) == 403:
        delay = max(delay, RATE_LIMIT_FLOOR_SEC)
    return delay


async def sleep_seconds(seconds: float) -> None:
    """Suspend the current task; isolated so tests can skip real waiting."""
    await asyncio.sleep(seconds)


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in (headers or {}).items():
        if key.lower() == name:
            return value
    return None


class QuotaTracker:
    """Shared view of the API quota, fed by response headers.

    The tracker only records state and proposes waits; callers do the sleeping.
    Reads and updates happen on the event loop thread, so no locking is needed.
    """

    def __init__(self, state: Optional[QuotaState] = None,
                 clock: Callable[[], float] = time.time) -> None:
        self.state = state or QuotaState()
        self._clock = clock

    @property
    def remaining(self) -> int:
        return self.state.remaining

    @property
    def reset_epoch_seconds(self) -> int:
        return self.state.reset_epoch_seconds

    def observe(self, headers: Mapping[str, str]) -> None:
        remaining = _header(headers, "x-ratelimit-remaining")
        reset = _header(headers, "x-ratelimit-reset")
        if remaining is not None and str(remaining).isdigit():
            self.state.remaining = int(remaining)
        if reset is not None and str(reset).isdigit():
            self.state.reset_epoch_seconds = int(reset)

    def should_throttle(self) -> bool:
        return self.state.remaining < RATE_LIMIT_THRESHOLD

    def _seconds_until_reset(self, now: Optional[float] = None) -> float:
        current = self._clock() if now is None else now
        return max(0.0, self.state.reset_epoch_seconds - current) + RATE_LIMIT_BUFFER_SEC

    def wait_duration(self, now: Optional[float] = None) -> float:
        return min(self._seconds_until_reset(now), MAX_THROTTLE_WAIT_SEC)

    def reset_too_far(self, now: Optional[float] = None) -> bool:
        """True when the reset is an hour or more away; callers proceed instead of waiting."""
        return self._seconds_until_reset(now) >= MAX_THROTTLE_WAIT_SEC


@dataclass
class TransportResponse:
    data: Any
    headers: Dict[str, str] = field(default_factory=dict)


def api_base_url(is_enterprise: bool = False, enterprise_url: str = "") -> str:
    """Return the REST root for github.com or a GitHub Enterprise Server host."""
    if is_enterprise and enterprise_url:
        return f"{enterprise_url.rstrip('/')}{ENTERPRISE_API_SUFFIX}"
    return BASE_URL


def _error_message(resp: requests.Response) -> str:
    """Pull GitHub's `message` out of an error body, falling back to raw text."""
    try:
        body = resp.json()
    except ValueError:
        body = {"text": (resp.text or "")[:300]}
    if not isinstance(body, dict):
        body = {"text": str(body)[:300]}
    return body.get("message") or body.get("error") or body.get("text") or resp.reason or "request failed"


class GitHubTransport:
    """Authenticated REST transport; issues single requests and never retries."""

    def __init__(self, token: Optional[str], base_url: str = BASE_URL,
                 timeout: int = REQUEST_TIMEOUT,
                 session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "User-Agent": USER_AGENT,
            }
        )
        if token:
            self.session.headers["Authorization"] = f"token {token}"

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        path = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url}{path}"

    def send(self, method: str, path: str,
             params: Optional[Dict[str, Any]] = None) -> TransportResponse:
        url = self._url(path)
        try:
            resp = self.session.request(method, url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code >= 400:
            raise TransportError(_error_message(resp), status=resp.status_code, headers=resp.headers)
        data = resp.json() if resp.content else None
        return TransportResponse(data=data, headers=dict(resp.headers))

    async def request(self, method: str, path: str,
                      params: Optional[Dict[str, Any]] = None) -> TransportResponse:
        return await asyncio.to_thread(self.send, method, path, params)

    def close(self) -> None:
        self.session.close()


class GitHubClient:
    """Organization-scoped API access with proactive throttling and reactive backoff."""

    def __init__(self, transport, organization: str, *,
                 quota: Optional[QuotaTracker] = None,
                 progress: Optional[ProgressSink] = None,
                 page_size: int = PER_PAGE) -> None:
        self.transport = transport
        self.organization = organization
        self.quota = quota or QuotaTracker()
        self.progress = progress or ProgressSink()
        self.page_size = page_size or PER_PAGE

    def repo_path(self, repo_name: str, suffix: str = "") -> str:
        return f"/repos/{self.organization}/{repo_name}{suffix}"

    def report(self, repo_name: str, task: str) -> None:
        self.progress.notify(repo_name, task)

    async def throttle_if_needed(self, repo_name: str) -> None:
        if not self.quota.should_throttle() or self.quota.reset_too_far():
            return
        wait_sec = self.quota.wait_duration()
        self.report(
            repo_name,
            f"rate limit low ({self.quota.remaining} remaining), waiting {round(wait_sec)}s...",
        )
        await sleep_seconds(wait_sec)

    async def request_with_backoff(self, repo_name: str, operation: str, path: str,
                                   params: Optional[Dict[str, Any]] = None,
                                   method: str = "GET") -> TransportResponse:
        """Run one API call, retrying transient failures up to MAX_RETRIES attempts."""
        await self.throttle_if_needed(repo_name)

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self.transport.request(method, path, params)
            except Exception as exc:
                if not is_retryable_error(exc) or attempt >= MAX_RETRIES:
                    raise GitHubApiError(repo_name, operation, exc) from exc
                delay = backoff_delay(attempt, exc)
                self.report(
                    repo_name,
                    f"{operation} failed, retrying in {round(delay)}s (attempt {attempt}/{MAX_RETRIES})...",
                )
                await sleep_seconds(delay)
                continue

            self.quota.observe(response.headers)
            return response

        raise GitHubApiError(repo_name, operation, RuntimeError("request failed after retries"))

    async def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()


async def paged_fetch(client: GitHubClient,
                      repo_name: str,
                      operation: str,
                      path: str,
                      params: Optional[Dict[str, Any]] = None,
                      *,
                      accept: Optional[Callable[[Dict[str, Any]], bool]] = None,
                      stop_when: Optional[Callable[[Dict[str, Any]], bool]] = None,
                      describe: Optional[str] = None) -> List[Dict[str, Any]]:
    """Walk `page=1,2,...` until an empty page, a short page, or `stop_when` fires.

    `stop_when` relies on the API's descending sort order: the first item that
    satisfies it proves every later item would too, so no further page is
    requested. Items pass through `accept` before being collected.
    """
    results: List[Dict[str, Any]] = []
    page_size = client.page_size
    label = describe or operation
    page = 1
    while True:
        client.report(repo_name, f"fetching {label} (page {page}, found {len(results)})...")
        page_params = dict(params or {})
        page_params.update({"per_page": page_size, "page": page})
        response = await client.request_with_backoff(repo_name, operation, path, page_params)

        batch = response.data if isinstance(response.data, list) else []
        if not batch:
            break

        for item in batch:
            if stop_when is not None and stop_when(item):
                return results
            if accept is None or accept(item):
                results.append(item)

        if len(batch) < page_size:
            break
        page += 1
    return results


__all__ = [
    "TransportError",
    "GitHubApiError",
    "error_status",
    "is_empty_history_error",
    "is_retryable_error",
    "backoff_delay",
    "sleep_seconds",
    "QuotaTracker",
    "TransportResponse",
    "api_base_url",
    "GitHubTransport",
    "GitHubClient",
    "paged_fetch",
]
