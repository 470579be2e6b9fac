"""Application export – chunk-size policy.

Static choice per export (caller request, query complexity, format) plus a
runtime feedback loop that can only shrink the size.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sheetstream.application.export.errors import InvalidChunkSizeError
from sheetstream.application.export.request import ExportFormat
from sheetstream.config.settings import ExportSettings

__all__ = ["AdaptiveChunkSize", "ChunkSizePolicy", "QueryComplexity", "SourceDescriptor"]


class QueryComplexity(str, Enum):
    SIMPLE = "simple"
    COMPLEX = "complex"


@dataclass(frozen=True)
class SourceDescriptor:
    """Shape of the query behind a data source.

    Passed alongside the source by whoever built the query; the engine never
    inspects a source to find out.
    """

    joins: int = 0
    subqueries: int = 0
    group_by: bool = False
    having: bool = False
    order_by: int = 0

    @property
    def complexity(self) -> QueryComplexity:
        if self.joins or self.subqueries or self.group_by or self.having or self.order_by > 2:
            return QueryComplexity.COMPLEX
        return QueryComplexity.SIMPLE


class ChunkSizePolicy:
    """Resolves the initial chunk size for one export (or one sheet)."""

    def __init__(self, settings: ExportSettings) -> None:
        self._settings = settings

    def resolve(
        self,
        requested: int | None = None,
        descriptor: SourceDescriptor | None = None,
        fmt: ExportFormat = ExportFormat.CSV,
    ) -> int:
        if requested is not None:
            if requested <= 0:
                raise InvalidChunkSizeError(requested)
            return requested

        s = self._settings
        if descriptor is not None and s.auto_detect_query_complexity:
            if descriptor.complexity is QueryComplexity.COMPLEX:
                size = s.complex_query_chunk_size
            else:
                size = s.simple_query_chunk_size
        else:
            size = s.default_chunk_size

        if fmt is ExportFormat.XLSX:
            size = min(size, s.xlsx_chunk_size)
        return max(s.min_chunk_size, min(size, s.max_chunk_size))

    def adaptive(self, initial: int) -> "AdaptiveChunkSize":
        return AdaptiveChunkSize(
            initial,
            floor=self._settings.min_chunk_size,
            threshold=self._settings.memory_threshold,
            enabled=self._settings.auto_adjust_chunks,
        )


class AdaptiveChunkSize:
    """Memory-pressure feedback, consulted once per chunk boundary.

    Halves the size whenever the usage ratio is above *threshold*, never
    below *floor*, and never grows back.
    """

    def __init__(self, initial: int, *, floor: int, threshold: float, enabled: bool = True) -> None:
        if initial <= 0:
            raise InvalidChunkSizeError(initial)
        self._size = initial
        self._floor = min(floor, initial)
        self._threshold = threshold
        self._enabled = enabled

    @property
    def size(self) -> int:
        return self._size

    def observe(self, usage_ratio: float) -> int:
        if self._enabled and usage_ratio > self._threshold:
            self._size = max(self._floor, self._size // 2)
        return self._size
