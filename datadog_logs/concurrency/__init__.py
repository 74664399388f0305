"""Concurrency primitives: caller contexts and the shared permit pool."""

from .context import CallContext
from .gate import ConcurrencyGate

__all__ = ["CallContext", "ConcurrencyGate"]
