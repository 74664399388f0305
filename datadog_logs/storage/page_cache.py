"""In-memory, TTL-bounded cache of fetched log pages.

Entries are keyed by the page fingerprint's cache key and hold an immutable
snapshot of one page. Expired entries are dropped lazily on lookup or in bulk
by :meth:`PageCache.sweep_expired`. Nothing survives a process restart.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Optional, Tuple

from ..ingest.records import LogEntry

if TYPE_CHECKING:
    from ..retrieval.request import PageFingerprint


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


@dataclass(frozen=True)
class CachedPage:
    """A page snapshot as it was stored."""

    entries: Tuple[LogEntry, ...]
    next_cursor: str
    stored_at: float


class PageCache:
    """Thread-safe page store with lazy TTL expiry."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        enabled: bool = True,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._ttl = ttl
        self._enabled = enabled
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CachedPage] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def enabled(self) -> bool:
        return self._enabled

    def get(self, fingerprint: "PageFingerprint", ttl: Optional[float] = None) -> Optional[CachedPage]:
        """Return the cached page, evicting it if it outlived ``ttl``."""

        if not self._enabled:
            return None
        ttl = self._ttl if ttl is None else ttl
        key = fingerprint.cache_key
        with self._lock:
            page = self._entries.get(key)
            if page is None:
                return None
            if self._clock() - page.stored_at > ttl:
                del self._entries[key]
                logger.debug("logs.cache.expired", extra={"cache_key": key})
                return None
            return page

    def put(self, fingerprint: "PageFingerprint", entries: Iterable[LogEntry], next_cursor: str) -> CachedPage:
        page = CachedPage(entries=tuple(entries), next_cursor=next_cursor, stored_at=self._clock())
        if not self._enabled:
            return page
        with self._lock:
            self._entries[fingerprint.cache_key] = page
        return page

    def sweep_expired(self, ttl: Optional[float] = None) -> int:
        """Drop every expired entry and return how many were removed."""

        ttl = self._ttl if ttl is None else ttl
        with self._lock:
            now = self._clock()
            expired = [key for key, page in self._entries.items() if now - page.stored_at > ttl]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info("logs.cache.sweep", extra={"removed": len(expired)})
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
