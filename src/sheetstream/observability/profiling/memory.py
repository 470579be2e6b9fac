"""Observability – MemoryProbe: process memory against a ceiling."""
from __future__ import annotations

from typing import Protocol, runtime_checkable

import psutil


@runtime_checkable
class MemorySampler(Protocol):
    """Port: anything that can report resident memory and its ceiling."""

    def current_bytes(self) -> int: ...
    def limit_bytes(self) -> int: ...


class MemoryProbe:
    """Samples the resident set size of the current process via psutil.

    *limit_bytes* of ``0`` means "the machine's total physical memory".
    The probe remembers the highest value it has observed, which is what
    export completion events report as peak memory.
    """

    def __init__(self, limit_bytes: int = 0) -> None:
        self._process = psutil.Process()
        self._limit = limit_bytes or psutil.virtual_memory().total
        self._peak = 0

    def current_bytes(self) -> int:
        rss = int(self._process.memory_info().rss)
        self._peak = max(self._peak, rss)
        return rss

    def limit_bytes(self) -> int:
        return self._limit

    @property
    def peak_bytes(self) -> int:
        return self._peak

    def usage_ratio(self) -> float:
        return self.current_bytes() / self._limit


def format_bytes(size: float) -> str:
    """Render *size* as ``"12.5 MB"`` style text."""
    units = ["B", "KB", "MB", "GB"]
    index = 0
    while size >= 1024 and index < len(units) - 1:
        size /= 1024
        index += 1
    return f"{round(size, 2)} {units[index]}"


__all__ = ["MemoryProbe", "MemorySampler", "format_bytes"]
