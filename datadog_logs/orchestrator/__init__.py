"""Top-level coordination exposing the caller-facing logs datasource."""

from .datasource import LogsDatasource, LogsQueryResult

__all__ = ["LogsDatasource", "LogsQueryResult"]
