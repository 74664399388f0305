"""Cancellation and deadline handling shared by every blocking wait."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from ..errors import QueryCancelledError, QueryTimeoutError, TIMEOUT_MESSAGE


class CallContext:
    """Carries a caller's cancellation signal and deadline.

    Permit waits, HTTP timeouts and retry backoff all consult the same context,
    so cancelling it (or letting the deadline pass) interrupts whichever of
    them the call is currently blocked in.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        deadline: Optional[float] = None,
    ) -> None:
        self._clock = clock
        self._cancel_event = cancel_event or threading.Event()
        if timeout is not None:
            candidate = clock() + timeout
            deadline = candidate if deadline is None else min(deadline, candidate)
        self._deadline = deadline

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or ``None`` when unbounded."""

        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        """Raise if the caller gave up or the deadline has passed."""

        if self.cancelled:
            raise QueryCancelledError("Log query cancelled")
        if self.expired():
            raise QueryTimeoutError(TIMEOUT_MESSAGE)

    def child(self, timeout: float) -> "CallContext":
        """Derive a context sharing this cancellation with a tighter deadline."""

        return CallContext(
            timeout=timeout,
            cancel_event=self._cancel_event,
            clock=self._clock,
            deadline=self._deadline,
        )

    def bound_timeout(self, timeout: float) -> float:
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def sleep(self, seconds: float) -> None:
        """Wait ``seconds`` unless cancelled or the deadline arrives first."""

        self.check()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._cancel_event.wait(remaining)
            self.check()
            # Deadline landed before the full delay elapsed.
            raise QueryTimeoutError(TIMEOUT_MESSAGE)
        if self._cancel_event.wait(seconds):
            raise QueryCancelledError("Log query cancelled")
