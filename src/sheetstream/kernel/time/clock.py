"""Kernel time – Clock protocol + implementations.

A clock answers two questions for an export: the wall-clock instant used to
timestamp filenames, and a monotonic reading used to measure elapsed time
against the execution budget.
"""
from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Port: abstract clock for deterministic testing."""

    def now(self) -> datetime: ...
    def monotonic(self) -> float: ...


class SystemClock:
    """Production clock backed by ``datetime.now(UTC)`` and ``time.monotonic``."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()


class FrozenClock:
    """Test clock pinned to a fixed point in time.

    ``advance`` moves both the wall clock and the monotonic reading, so
    elapsed-time checks can be driven without sleeping.
    """

    def __init__(self, fixed: datetime) -> None:
        self._fixed = fixed
        self._ticks = 0.0

    def now(self) -> datetime:
        return self._fixed

    def monotonic(self) -> float:
        return self._ticks

    def advance(self, **kwargs: int | float) -> None:
        """Advance the frozen time by the given ``timedelta`` kwargs."""
        delta = timedelta(**kwargs)
        self._fixed += delta
        self._ticks += delta.total_seconds()


__all__ = ["Clock", "FrozenClock", "SystemClock"]
