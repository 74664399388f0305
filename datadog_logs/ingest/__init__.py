"""Ingestion package talking to the Datadog Logs Search API."""

from .logs_search import LogsPage, LogsSearchFetcher, RetryState
from .records import LogEntry, parse_log_records

__all__ = ["LogEntry", "LogsPage", "LogsSearchFetcher", "RetryState", "parse_log_records"]
