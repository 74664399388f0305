"""Client for the Datadog Logs Search API (``/api/v2/logs/events/search``)."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from ..concurrency import CallContext
from ..errors import (
    MalformedResponseError,
    QueryTimeoutError,
    RateLimitError,
    RateLimitExceededError,
    TIMEOUT_MESSAGE,
    UpstreamRequestError,
    classify_http_error,
)
from .records import LogEntry, format_iso, parse_log_records


logger = logging.getLogger(__name__)

SEARCH_PATH = "/api/v2/logs/events/search"
DEFAULT_SITE = "datadoghq.com"
MAX_PAGE_SIZE = 1000


@dataclass
class LogsPage:
    """One page of log entries plus the cursor for the following page."""

    entries: List[LogEntry]
    next_cursor: str = ""

    @property
    def has_more(self) -> bool:
        return bool(self.next_cursor)


@dataclass
class RetryState:
    """Attempt bookkeeping for a single fetch-with-retry call."""

    max_retries: int
    base_delay: float
    max_delay: float
    attempt: int = 0
    next_delay: float = 0.0

    def can_retry(self) -> bool:
        return self.attempt < self.max_retries

    def advance(self, hint: Optional[float] = None) -> float:
        """Consume one retry and return how long to wait before it."""

        delay = min(self.base_delay * (2 ** self.attempt), self.max_delay)
        if hint is not None and hint > delay:
            delay = min(hint, self.max_delay)
        self.attempt += 1
        self.next_delay = delay
        return delay


def _retry_hint(response: requests.Response) -> Optional[float]:
    for header in ("Retry-After", "X-RateLimit-Reset"):
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return max(0.0, float(value))
        except ValueError:
            continue
    return None


@dataclass
class LogsSearchFetcher:
    """Fetches single pages of logs from Datadog.

    Authentication uses the two static key headers. Only HTTP 429 responses
    are retried, with exponential backoff waited out on the caller's
    :class:`CallContext` so cancellation interrupts the wait. Every other
    failure is classified and raised on the first attempt.
    """

    api_key: str
    app_key: str
    site: str = DEFAULT_SITE
    request_timeout: float = 30.0
    max_retries: int = 2
    backoff_seconds: float = 3.0
    max_backoff_seconds: float = 15.0
    max_page_size: int = MAX_PAGE_SIZE
    user_agent: str = "grafana-datadog-datasource/1.0"
    session: requests.Session = field(default_factory=requests.Session)

    def __post_init__(self) -> None:
        self.site = self.site or DEFAULT_SITE
        self.session.headers.update(
            {
                "DD-API-KEY": self.api_key,
                "DD-APPLICATION-KEY": self.app_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": self.user_agent,
            }
        )

    @property
    def search_url(self) -> str:
        return f"https://api.{self.site}{SEARCH_PATH}"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def fetch_page(
        self,
        query: str,
        from_time: dt.datetime,
        to_time: dt.datetime,
        cursor: str = "",
        page_size: int = 100,
        context: Optional[CallContext] = None,
    ) -> LogsPage:
        """Fetch one page, retrying on rate limits.

        Raises:
            RateLimitExceededError: 429 persisted through every retry.
            LogsQueryError: any other classified failure, raised immediately.
        """

        context = context or CallContext()
        body = self.build_request_body(query, from_time, to_time, cursor, page_size)
        retry = RetryState(self.max_retries, self.backoff_seconds, self.max_backoff_seconds)

        while True:
            context.check()
            try:
                return self._send(body, context, attempt=retry.attempt + 1)
            except RateLimitError as exc:
                if not retry.can_retry():
                    logger.error(
                        "logs.fetch.rate_limit_exhausted",
                        extra={"query": query, "retries": retry.attempt},
                    )
                    raise RateLimitExceededError(retry.attempt, exc) from exc
                delay = retry.advance(exc.retry_hint)
                logger.warning(
                    "logs.fetch.rate_limited",
                    extra={
                        "query": query,
                        "attempt": retry.attempt,
                        "max_attempts": self.max_retries + 1,
                        "sleep_for": delay,
                    },
                )
                context.sleep(delay)

    def build_request_body(
        self,
        query: str,
        from_time: dt.datetime,
        to_time: dt.datetime,
        cursor: str = "",
        page_size: int = 100,
    ) -> Dict[str, Any]:
        page: Dict[str, Any] = {"limit": max(1, min(page_size, self.max_page_size))}
        if cursor:
            page["cursor"] = cursor
        return {
            "filter": {
                "query": query,
                "from": format_iso(from_time),
                "to": format_iso(to_time),
            },
            "sort": "timestamp",
            "page": page,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _send(self, body: Dict[str, Any], context: CallContext, attempt: int) -> LogsPage:
        timeout = context.bound_timeout(self.request_timeout)
        if timeout <= 0:
            raise QueryTimeoutError(TIMEOUT_MESSAGE)

        try:
            response = self.session.post(self.search_url, json=body, timeout=timeout)
        except requests.Timeout as exc:
            logger.error("logs.fetch.timeout", extra={"url": self.search_url, "error": str(exc)})
            raise QueryTimeoutError(TIMEOUT_MESSAGE) from exc
        except requests.RequestException as exc:
            logger.error("logs.fetch.transport_error", extra={"url": self.search_url, "error": str(exc)})
            raise UpstreamRequestError(f"Datadog API error: {exc}") from exc

        logger.info(
            "logs.fetch.request",
            extra={"url": self.search_url, "status_code": response.status_code, "attempt": attempt},
        )

        if not 200 <= response.status_code < 300:
            error = classify_http_error(response.status_code, response.text)
            if isinstance(error, RateLimitError):
                error.retry_hint = _retry_hint(response)
            else:
                logger.error(
                    "logs.fetch.failed",
                    extra={
                        "status_code": response.status_code,
                        "response_body": response.text,
                        "request_body": body,
                    },
                )
            raise error

        return self._parse_response(response)

    def _parse_response(self, response: requests.Response) -> LogsPage:
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"failed to decode logs API response: {exc}",
                response.status_code,
                response.text,
            ) from exc

        if not isinstance(payload, dict):
            raise MalformedResponseError(
                "failed to decode logs API response: expected a JSON object",
                response.status_code,
                response.text,
            )

        records = payload.get("data") or []
        if not isinstance(records, list):
            raise MalformedResponseError(
                "failed to decode logs API response: 'data' is not a list",
                response.status_code,
                response.text,
            )

        meta = payload.get("meta") or {}
        page_meta = meta.get("page") if isinstance(meta, dict) else None
        next_cursor = page_meta.get("after") if isinstance(page_meta, dict) else None

        entries = parse_log_records(records)
        logger.debug(
            "logs.fetch.page",
            extra={"entries": len(entries), "next_cursor": next_cursor or ""},
        )
        return LogsPage(entries=entries, next_cursor=next_cursor if isinstance(next_cursor, str) else "")
