"""Application export – per-chunk guardrails.

:class:`ExportMonitor` runs at every chunk boundary: it advances the job
counters, reports the chunk, samples memory and elapsed time against their
configured ceilings and feeds memory pressure back into the chunk size.
Nothing here aborts an export; crossing a ceiling only produces a warning.
"""
from __future__ import annotations

from typing import Any

from sheetstream.application.export.chunking import AdaptiveChunkSize
from sheetstream.application.export.events import ExportEvents
from sheetstream.application.export.request import ExportJob
from sheetstream.config.settings import ExportSettings
from sheetstream.kernel.time import Clock
from sheetstream.observability.profiling import MemorySampler

__all__ = ["ExportMonitor"]


class ExportMonitor:
    def __init__(
        self,
        job: ExportJob,
        settings: ExportSettings,
        events: ExportEvents,
        memory: MemorySampler,
        clock: Clock,
        *,
        budget: float | None = None,
    ) -> None:
        self.job = job
        self._settings = settings
        self._events = events
        self._memory = memory
        self._clock = clock
        self._budget = settings.max_execution_time if budget is None else budget
        self._started: float | None = None
        self._time_warned = False

    def start(self) -> None:
        self._started = self._clock.monotonic()
        self.sample_memory()

    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        return self._clock.monotonic() - self._started

    def sample_memory(self) -> float:
        """Record one memory reading; return the usage ratio against the ceiling."""
        current = self._memory.current_bytes()
        limit = self._memory.limit_bytes()
        self.job.peak_memory_bytes = max(self.job.peak_memory_bytes, current)
        return current / limit if limit else 0.0

    def after_chunk(
        self,
        records: int,
        cursor: Any = None,
        adaptive: AdaptiveChunkSize | None = None,
        *,
        context: str = "chunk",
    ) -> None:
        job = self.job
        job.chunks_processed += 1
        job.records_processed += records
        self._events.chunk_processed(job.chunks_processed, records, job.records_processed)

        ratio = self.sample_memory()
        if ratio > self._settings.memory_warning_threshold:
            self._events.memory_warning(
                f"{context} {job.chunks_processed}",
                self._memory.current_bytes(),
                self._memory.limit_bytes(),
            )
        if adaptive is not None:
            size = adaptive.observe(ratio)
            if cursor is not None and hasattr(cursor, "resize") and getattr(cursor, "size", size) != size:
                cursor.resize(size)

        self._check_time()

    def _check_time(self) -> None:
        if self._budget <= 0 or self._time_warned:
            return
        elapsed = self.elapsed()
        if elapsed > self._budget * self._settings.execution_time_warning_threshold:
            self._time_warned = True
            self._events.time_warning(
                self.job.filename,
                elapsed,
                max(self._budget - elapsed, 0.0),
                **self.job.progress(),
            )

    def summary(self) -> dict[str, Any]:
        """Extra metrics attached to the completion event."""
        return {
            "job_id": self.job.id,
            "chunks_processed": self.job.chunks_processed,
            "peak_memory_bytes": self.job.peak_memory_bytes,
        }
