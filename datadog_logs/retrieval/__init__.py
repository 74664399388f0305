"""Retrieval package serving cached, rate-limited log pages."""

from .orchestrator import BulkLimits, RetrievalOrchestrator
from .request import LogQueryRequest, PageFingerprint

__all__ = ["BulkLimits", "LogQueryRequest", "PageFingerprint", "RetrievalOrchestrator"]
