"""Query translation package for the Datadog logs search grammar."""

from .query_translator import MATCH_ALL, QueryTranslator, extract_search_terms

__all__ = ["MATCH_ALL", "QueryTranslator", "extract_search_terms"]
