"""Kernel time – Clock port + implementations."""
from sheetstream.kernel.time.clock import Clock, FrozenClock, SystemClock

__all__ = ["Clock", "FrozenClock", "SystemClock"]
