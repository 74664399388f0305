"""Page retrieval: translate, consult the cache, fetch under a permit.

:class:`RetrievalOrchestrator` serves one caller-requested page at a time.
A cache hit is returned without taking a permit or calling upstream; a miss
holds one permit of the shared gate for the whole fetch-with-retry call and
stores the page on success. Failures are raised unchanged and leave the
cache alone, so a stale page is never served in place of an error.

``retrieve_all`` is the older bulk pre-fetch mode. It walks at most a few
pages, pausing between them with a growing delay, and treats a rate limit
that survives retries as the end of the data rather than an error.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..concurrency import CallContext, ConcurrencyGate
from ..errors import RateLimitError
from ..ingest.logs_search import LogsPage, LogsSearchFetcher
from ..ingest.records import LogEntry
from ..storage.page_cache import PageCache
from ..translation import QueryTranslator
from .request import LogQueryRequest, PageFingerprint


logger = logging.getLogger(__name__)


@dataclass
class BulkLimits:
    """Bounds for ``retrieve_all``."""

    max_pages: int = 3
    max_entries: int = 3000
    page_size: int = 500
    initial_delay: float = 0.5
    page_delay: float = 2.0
    max_page_delay: float = 10.0
    timeout: float = 30.0

    def delay_before(self, page_index: int) -> float:
        """Pause before the zero-based ``page_index``-th page (none before the first)."""

        if page_index <= 0:
            return 0.0
        return min(self.page_delay * (2 ** (page_index - 1)), self.max_page_delay)


class RetrievalOrchestrator:
    """Composes translation, caching, the permit gate and the fetcher."""

    def __init__(
        self,
        fetcher: LogsSearchFetcher,
        cache: PageCache,
        gate: ConcurrencyGate,
        translator: Optional[QueryTranslator] = None,
        fetch_timeout: float = 30.0,
        bulk_limits: Optional[BulkLimits] = None,
    ) -> None:
        self.fetcher = fetcher
        self.cache = cache
        self.gate = gate
        self.translator = translator or QueryTranslator()
        self.fetch_timeout = fetch_timeout
        self.bulk_limits = bulk_limits or BulkLimits()

    def fingerprint(self, request: LogQueryRequest) -> PageFingerprint:
        return PageFingerprint.for_request(self.translator.translate(request.query), request)

    def retrieve(
        self,
        request: LogQueryRequest,
        context: Optional[CallContext] = None,
        fingerprint: Optional[PageFingerprint] = None,
    ) -> LogsPage:
        """Return one page of logs for ``request``.

        ``fingerprint`` may be passed when the caller already computed it.

        Raises:
            LogsQueryError: the classified fetch failure; nothing is cached.
        """

        context = context or CallContext()
        fingerprint = fingerprint or self.fingerprint(request)

        cached = self.cache.get(fingerprint)
        if cached is not None:
            logger.debug(
                "logs.cache.hit",
                extra={"cache_key": fingerprint.cache_key, "entries": len(cached.entries)},
            )
            return LogsPage(entries=list(cached.entries), next_cursor=cached.next_cursor)

        logger.debug("logs.cache.miss", extra={"cache_key": fingerprint.cache_key})
        fetch_context = context.child(self.fetch_timeout)
        with self.gate.permit(fetch_context):
            page = self.fetcher.fetch_page(
                fingerprint.query,
                request.from_time,
                request.to_time,
                cursor=request.cursor,
                page_size=request.page_size,
                context=fetch_context,
            )

        self.cache.put(fingerprint, page.entries, page.next_cursor)
        logger.info(
            "logs.retrieve.complete",
            extra={
                "query": fingerprint.query,
                "page_size": request.page_size,
                "entries": len(page.entries),
                "has_next_page": page.has_more,
            },
        )
        return page

    def retrieve_all(self, request: LogQueryRequest, context: Optional[CallContext] = None) -> LogsPage:
        """Fetch up to ``bulk_limits.max_pages`` consecutive pages.

        Stops at the last page, at the entry cap, or when rate limiting
        persists; in the last case the pages gathered so far are returned.
        """

        limits = self.bulk_limits
        context = (context or CallContext()).child(limits.timeout)
        entries: List[LogEntry] = []
        cursor = request.cursor
        pages_fetched = 0

        context.sleep(limits.initial_delay)

        for page_index in range(limits.max_pages):
            delay = limits.delay_before(page_index)
            if delay:
                logger.debug("logs.bulk.page_delay", extra={"sleep_for": delay, "page": page_index + 1})
                context.sleep(delay)

            page_request = dataclasses.replace(request, cursor=cursor, page_size=limits.page_size)
            try:
                page = self.retrieve(page_request, context)
            except RateLimitError:
                logger.warning(
                    "logs.bulk.rate_limited",
                    extra={"entries": len(entries), "pages_fetched": pages_fetched},
                )
                break

            pages_fetched += 1
            entries.extend(page.entries)
            cursor = page.next_cursor

            if not page.has_more or not page.entries:
                break
            if len(entries) >= limits.max_entries:
                logger.info(
                    "logs.bulk.entry_limit",
                    extra={"entries": len(entries), "max_entries": limits.max_entries},
                )
                break
        else:
            logger.info(
                "logs.bulk.page_limit",
                extra={"max_pages": limits.max_pages, "entries": len(entries)},
            )

        logger.info(
            "logs.bulk.complete",
            extra={"pages_fetched": pages_fetched, "entries": len(entries)},
        )
        return LogsPage(entries=entries, next_cursor=cursor)
