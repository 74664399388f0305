"""Request and fingerprint types for single-page retrieval."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from urllib.parse import quote

from ..ingest.records import ensure_utc, to_epoch_millis

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000
FIRST_PAGE = "first"
# A literal "first" cursor, with its leading "f" percent-encoded.
_ENCODED_FIRST_PAGE = "%66irst"


@dataclass(frozen=True)
class LogQueryRequest:
    """A caller's request for one page of logs.

    ``cursor`` is opaque; an empty cursor asks for the first page. The page
    size falls back to the default when unset and is capped at the service
    maximum.
    """

    query: str
    from_time: dt.datetime
    to_time: dt.datetime
    cursor: str = ""
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        from_time = ensure_utc(self.from_time)
        to_time = ensure_utc(self.to_time)
        if to_time < from_time:
            raise ValueError(f"invalid time range: from={from_time.isoformat()} is after to={to_time.isoformat()}")

        page_size = self.page_size if self.page_size and self.page_size > 0 else DEFAULT_PAGE_SIZE
        object.__setattr__(self, "from_time", from_time)
        object.__setattr__(self, "to_time", to_time)
        object.__setattr__(self, "cursor", self.cursor or "")
        object.__setattr__(self, "page_size", min(page_size, MAX_PAGE_SIZE))


@dataclass(frozen=True)
class PageFingerprint:
    """Identity of a cacheable page: equal fingerprints mean equal results."""

    query: str
    from_ms: int
    to_ms: int
    cursor: str
    page_size: int

    @classmethod
    def for_request(cls, translated_query: str, request: LogQueryRequest) -> "PageFingerprint":
        return cls(
            query=translated_query,
            from_ms=to_epoch_millis(request.from_time),
            to_ms=to_epoch_millis(request.to_time),
            cursor=request.cursor,
            page_size=request.page_size,
        )

    @property
    def cache_key(self) -> str:
        # Cursors are percent-encoded so the trailing fields never contain ":".
        if not self.cursor:
            cursor = FIRST_PAGE
        elif self.cursor == FIRST_PAGE:
            cursor = _ENCODED_FIRST_PAGE
        else:
            cursor = quote(self.cursor, safe="")
        return f"logs:{self.query}:{self.from_ms}:{self.to_ms}:{cursor}:{self.page_size}"
