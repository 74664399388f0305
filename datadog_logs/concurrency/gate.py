"""Counting permit pool bounding concurrent upstream calls."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from ..errors import LogsQueryError
from .context import CallContext


logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 5


class ConcurrencyGate:
    """Fixed-capacity permit pool shared by every upstream-calling path.

    ``acquire`` blocks until a permit frees up. The wait re-checks the caller's
    context every ``poll_interval`` seconds so a cancelled or expired caller
    stops queueing instead of waiting for a permit it no longer needs.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, poll_interval: float = 0.05) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._poll_interval = poll_interval
        self._in_use = 0
        self._condition = threading.Condition()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        with self._condition:
            return self._in_use

    @property
    def available(self) -> int:
        with self._condition:
            return self._capacity - self._in_use

    def acquire(self, context: Optional[CallContext] = None) -> None:
        with self._condition:
            try:
                while self._in_use >= self._capacity:
                    if context is not None:
                        context.check()
                        wait_for = context.bound_timeout(self._poll_interval)
                    else:
                        wait_for = None
                    self._condition.wait(wait_for)
                if context is not None:
                    context.check()
            except LogsQueryError:
                # Hand a wakeup we may have consumed to the next waiter.
                self._condition.notify()
                raise
            self._in_use += 1
            logger.debug(
                "concurrency.permit.acquired",
                extra={"in_use": self._in_use, "capacity": self._capacity},
            )

    def release(self) -> None:
        with self._condition:
            if self._in_use == 0:
                raise RuntimeError("release() called without a matching acquire()")
            self._in_use -= 1
            self._condition.notify()

    @contextmanager
    def permit(self, context: Optional[CallContext] = None) -> Iterator[None]:
        self.acquire(context)
        try:
            yield
        finally:
            self.release()
