"""Storage package exposing the in-memory page cache."""

from .page_cache import CachedPage, PageCache

__all__ = ["CachedPage", "PageCache"]
