"""Error taxonomy for Datadog logs retrieval.

Every failure that reaches a caller is a :class:`LogsQueryError` subclass. The
``message`` is safe to show in a panel; ``status_code`` and ``response_body``
are kept so the failure can be logged with its upstream context.
"""

from __future__ import annotations

import json
from typing import List, Optional


class LogsQueryError(Exception):
    """Base class for classified logs query failures."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body


class AuthenticationError(LogsQueryError):
    """Missing or rejected API credentials."""


class PermissionDeniedError(LogsQueryError):
    """Credentials are valid but lack the logs read scope."""


class RateLimitError(LogsQueryError):
    """The upstream answered HTTP 429."""

    # Seconds the upstream asked us to wait, from Retry-After style headers.
    retry_hint: Optional[float] = None


class RateLimitExceededError(RateLimitError):
    """Rate limiting persisted after every retry was spent."""

    def __init__(self, retries: int, cause: Optional[RateLimitError] = None) -> None:
        detail = f": {cause.message}" if cause is not None else ""
        super().__init__(
            f"rate limit exceeded after {retries} retries{detail}",
            status_code=429,
            response_body=cause.response_body if cause is not None else "",
        )
        self.retries = retries


class QueryTimeoutError(LogsQueryError):
    """The request or the caller's deadline ran out."""


class QueryCancelledError(LogsQueryError):
    """The caller cancelled the query while it was waiting."""


class UpstreamServerError(LogsQueryError):
    """The upstream returned a 5xx status."""


class InvalidQueryError(LogsQueryError):
    """The upstream rejected the query (HTTP 400)."""


class MalformedResponseError(LogsQueryError):
    """A 2xx response body could not be decoded."""


class UpstreamRequestError(LogsQueryError):
    """Any other transport or HTTP failure."""


TIMEOUT_MESSAGE = "Log query timeout - try narrowing your search criteria or time range"

_SUGGESTIONS = (
    (("service", "facet"), "Suggestion: Use logs facet syntax 'service:api-gateway' or 'source:nginx'. Multiple facets: 'service:web-app source:nginx'"),
    (("status", "level"), "Suggestion: Use log level syntax 'status:ERROR' or 'status:(ERROR OR WARN)'. Valid levels: DEBUG, INFO, WARN, ERROR, FATAL"),
    (("operator", "boolean"), "Suggestion: Use boolean operators 'AND', 'OR', 'NOT'. Example: 'service:web-app AND status:ERROR'"),
    (("wildcard", "pattern"), "Suggestion: Use wildcard patterns like 'error*' or '*exception*' for text matching"),
)
_DEFAULT_SUGGESTION = (
    "Suggestion: Use Datadog logs search syntax. Examples: "
    "'service:web-app status:ERROR', 'error AND service:api', 'source:nginx'"
)


def suggest_query_fix(error_text: str) -> str:
    """Return a syntax hint matching the upstream complaint."""

    lowered = error_text.lower()
    for keywords, suggestion in _SUGGESTIONS:
        if any(keyword in lowered for keyword in keywords):
            return suggestion
    return _DEFAULT_SUGGESTION


def _collect_error_messages(payload: dict) -> List[str]:
    messages: List[str] = []

    errors = payload.get("errors")
    if isinstance(errors, str):
        messages.append(errors)
    elif isinstance(errors, list):
        for item in errors:
            if isinstance(item, str):
                messages.append(item)
            elif isinstance(item, dict):
                text = item.get("message") or item.get("detail")
                if isinstance(text, str):
                    messages.append(text)

    if not messages:
        error = payload.get("error")
        if isinstance(error, str):
            messages.append(error)
        elif isinstance(error, dict) and isinstance(error.get("message"), str):
            messages.append(error["message"])

    if not messages and isinstance(payload.get("message"), str):
        messages.append(payload["message"])

    return messages


def describe_invalid_query(response_body: str) -> str:
    """Build the caller message for a 400 response body."""

    if not response_body:
        return "Invalid query syntax"

    try:
        payload = json.loads(response_body)
    except ValueError:
        if len(response_body) > 200:
            return f"Invalid query: {response_body[:200]}..."
        return f"Invalid query: {response_body}"

    if not isinstance(payload, dict):
        return "Invalid query syntax"

    messages = _collect_error_messages(payload)
    if not messages:
        return "Invalid query syntax"

    error_text = "; ".join(messages)
    return f"Invalid query: {error_text}\n{suggest_query_fix(error_text)}"


def classify_http_error(status_code: int, response_body: str = "") -> LogsQueryError:
    """Map a non-2xx logs search response onto the error taxonomy."""

    if status_code == 401:
        return AuthenticationError(
            "Invalid Datadog API credentials - check your API key and App key",
            status_code,
            response_body,
        )
    if status_code == 403:
        return PermissionDeniedError(
            "API key missing required permissions - need 'logs_read_data' scope",
            status_code,
            response_body,
        )
    if status_code == 400:
        return InvalidQueryError(describe_invalid_query(response_body), status_code, response_body)
    if status_code == 408:
        return QueryTimeoutError(TIMEOUT_MESSAGE, status_code, response_body)
    if status_code == 429:
        return RateLimitError("Datadog API rate limit reached (HTTP 429)", status_code, response_body)
    if status_code >= 500:
        return UpstreamServerError(
            f"Datadog API error ({status_code}) - service may be unavailable",
            status_code,
            response_body,
        )
    return UpstreamRequestError(f"Datadog API error: HTTP {status_code}", status_code, response_body)
