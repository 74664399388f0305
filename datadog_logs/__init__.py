"""Top-level package exposing the Datadog logs retrieval architecture."""

from .concurrency import CallContext, ConcurrencyGate
from .config import DatasourceSettings
from .errors import LogsQueryError
from .ingest import LogEntry, LogsPage, LogsSearchFetcher
from .orchestrator import LogsDatasource, LogsQueryResult
from .reporting import VolumeSeries, build_volume
from .retrieval import LogQueryRequest, PageFingerprint, RetrievalOrchestrator
from .storage import PageCache
from .translation import QueryTranslator

__all__ = [
    "CallContext",
    "ConcurrencyGate",
    "DatasourceSettings",
    "LogsQueryError",
    "LogEntry",
    "LogsPage",
    "LogsSearchFetcher",
    "LogsDatasource",
    "LogsQueryResult",
    "VolumeSeries",
    "build_volume",
    "LogQueryRequest",
    "PageFingerprint",
    "RetrievalOrchestrator",
    "PageCache",
    "QueryTranslator",
]
