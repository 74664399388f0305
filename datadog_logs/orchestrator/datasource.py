"""Caller-facing entry point wiring the logs retrieval components together.

A :class:`LogsDatasource` owns one permit gate, one page cache and one fetcher
for a configured Datadog site. The query dispatcher hands it the frontend
query models of a panel request; each query succeeds or fails on its own so
one bad query never sinks the rest of the batch.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests

from ..concurrency import CallContext, ConcurrencyGate
from ..config import DatasourceSettings
from ..errors import InvalidQueryError, LogsQueryError
from ..ingest import LogEntry, LogsSearchFetcher
from ..reporting import VolumeSeries, build_volume, empty_volume
from ..retrieval import BulkLimits, LogQueryRequest, RetrievalOrchestrator
from ..storage import PageCache
from ..translation import QueryTranslator, extract_search_terms


logger = logging.getLogger(__name__)


@dataclass
class LogsQueryResult:
    """Outcome of one frontend logs query."""

    ref_id: str
    entries: List[LogEntry] = field(default_factory=list)
    next_cursor: str = ""
    pagination: Dict[str, Any] = field(default_factory=dict)
    search_words: List[str] = field(default_factory=list)
    executed_query: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"refId": self.ref_id, "error": self.error}
        return {
            "refId": self.ref_id,
            "entries": [entry.to_dict() for entry in self.entries],
            "meta": {
                "pagination": dict(self.pagination),
                "searchWords": list(self.search_words),
                "executedQueryString": self.executed_query,
                "preferredVisualisationType": "logs",
            },
        }


def _is_logs_query(query_model: Mapping[str, Any]) -> bool:
    return query_model.get("queryType") == "logs" or bool(query_model.get("logQuery"))


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


class LogsDatasource:
    """Logs retrieval for one configured Datadog datasource instance."""

    def __init__(
        self,
        settings: DatasourceSettings,
        session: Optional[requests.Session] = None,
        gate: Optional[ConcurrencyGate] = None,
        cache: Optional[PageCache] = None,
    ) -> None:
        self.settings = settings
        self.gate = gate or ConcurrencyGate(settings.max_concurrent_requests)
        self.cache = cache or PageCache(ttl=settings.cache_ttl_seconds, enabled=settings.cache_enabled)
        self.translator = QueryTranslator()
        self.fetcher = LogsSearchFetcher(
            api_key=settings.api_key,
            app_key=settings.app_key,
            site=settings.site,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            backoff_seconds=settings.backoff_seconds,
            max_backoff_seconds=settings.max_backoff_seconds,
            max_page_size=settings.max_page_size,
            session=session or requests.Session(),
        )
        self.orchestrator = RetrievalOrchestrator(
            fetcher=self.fetcher,
            cache=self.cache,
            gate=self.gate,
            translator=self.translator,
            fetch_timeout=settings.request_timeout,
            bulk_limits=BulkLimits(
                max_pages=settings.bulk_max_pages,
                max_entries=settings.bulk_max_entries,
                page_size=settings.bulk_page_size,
            ),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def query_logs(
        self,
        queries: Iterable[Mapping[str, Any]],
        from_time: dt.datetime,
        to_time: dt.datetime,
        context: Optional[CallContext] = None,
    ) -> Dict[str, LogsQueryResult]:
        """Run every logs query of a panel request.

        Hidden queries get an empty result, non-logs queries are skipped, and
        classified failures become per-query ``error`` messages. Missing
        credentials or an inverted time range fail every query without
        contacting upstream.
        """

        logger.info("logs.query_logs.start", extra={"site": self.settings.site})

        results: Dict[str, LogsQueryResult] = {}
        for query_model in queries:
            if not _is_logs_query(query_model):
                continue
            ref_id = str(query_model.get("refId") or "A")
            if query_model.get("hide"):
                results[ref_id] = LogsQueryResult(ref_id=ref_id)
                continue
            try:
                self.settings.validate()
                results[ref_id] = self._run_query(ref_id, query_model, from_time, to_time, context)
            except LogsQueryError as exc:
                logger.error(
                    "logs.query.failed",
                    extra={
                        "ref_id": ref_id,
                        "error": exc.message,
                        "status_code": exc.status_code,
                        "response_body": exc.response_body,
                    },
                )
                results[ref_id] = LogsQueryResult(ref_id=ref_id, error=exc.message)
        return results

    def logs_volume(
        self,
        query_model: Mapping[str, Any],
        from_time: dt.datetime,
        to_time: dt.datetime,
    ) -> VolumeSeries:
        """Histogram of the cached first page for ``query_model``.

        Never calls upstream: without a cached page the series is empty and
        fills in once the logs query itself has run.
        """

        ref_id = str(query_model.get("refId") or "A")
        request = self._build_request(query_model, from_time, to_time, cursor="")
        cached = self.cache.get(self.orchestrator.fingerprint(request))
        if cached is None:
            logger.info("logs.volume.cache_miss", extra={"ref_id": ref_id})
            return empty_volume(ref_id, from_time, to_time)
        return build_volume(cached.entries, from_time, to_time, ref_id=ref_id)

    def prefetch(
        self,
        query_text: str,
        from_time: dt.datetime,
        to_time: dt.datetime,
        context: Optional[CallContext] = None,
    ) -> List[LogEntry]:
        """Bulk-load up to a few pages of ``query_text`` into the cache."""

        self.settings.validate()
        request = LogQueryRequest(query=query_text, from_time=from_time, to_time=to_time)
        return self.orchestrator.retrieve_all(request, context).entries

    def sweep_cache(self) -> int:
        return self.cache.sweep_expired()

    def check_credentials(self) -> Dict[str, str]:
        """Health-check style credential validation without a network call."""

        try:
            self.settings.validate()
        except LogsQueryError as exc:
            return {"status": "error", "message": exc.message}
        return {"status": "ok", "message": f"Credentials configured for {self.settings.site}"}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _build_request(
        self,
        query_model: Mapping[str, Any],
        from_time: dt.datetime,
        to_time: dt.datetime,
        cursor: Optional[str] = None,
    ) -> LogQueryRequest:
        page_size = _positive_int(query_model.get("pageSize"), self.settings.default_page_size)
        try:
            return LogQueryRequest(
                query=str(query_model.get("logQuery") or ""),
                from_time=from_time,
                to_time=to_time,
                cursor=str(query_model.get("nextCursor") or "") if cursor is None else cursor,
                page_size=min(page_size, self.settings.max_page_size),
            )
        except ValueError as exc:
            raise InvalidQueryError(str(exc)) from exc

    def _run_query(
        self,
        ref_id: str,
        query_model: Mapping[str, Any],
        from_time: dt.datetime,
        to_time: dt.datetime,
        context: Optional[CallContext],
    ) -> LogsQueryResult:
        request = self._build_request(query_model, from_time, to_time)
        fingerprint = self.orchestrator.fingerprint(request)
        page = self.orchestrator.retrieve(request, context, fingerprint=fingerprint)
        translated = fingerprint.query
        current_page = _positive_int(query_model.get("currentPage"), 1)

        return LogsQueryResult(
            ref_id=ref_id,
            entries=page.entries,
            next_cursor=page.next_cursor,
            pagination={
                "currentPage": current_page,
                "pageSize": request.page_size,
                "hasNextPage": page.has_more,
                "nextCursor": page.next_cursor,
                "totalEntries": len(page.entries),
            },
            search_words=extract_search_terms(translated),
            executed_query=translated,
        )
