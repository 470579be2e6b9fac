"""Application export – the logging collaborator.

Every event is fire-and-forget: a broken logging backend never blocks or
fails an export.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from sheetstream.observability.logging import get_logger
from sheetstream.observability.profiling import format_bytes

__all__ = ["ExportEventLog", "ExportEvents"]


@runtime_checkable
class ExportEvents(Protocol):
    """Port: receives export lifecycle events."""

    def export_started(self, filename: str, expected_count: int | None, options: dict[str, Any]) -> None: ...

    def chunk_processed(self, chunk_number: int, records_in_chunk: int, total_so_far: int) -> None: ...

    def export_completed(
        self,
        filename: str,
        actual_count: int,
        byte_size: int | None = None,
        duration: float | None = None,
        **metrics: Any,
    ) -> None: ...

    def export_failed(self, filename: str, error: BaseException, progress: dict[str, Any]) -> None: ...

    def record_transform_failed(self, position: int, error: BaseException) -> None: ...

    def memory_warning(self, context: str, current_bytes: int, limit_bytes: int) -> None: ...

    def time_warning(self, filename: str, elapsed: float, remaining: float, **progress: Any) -> None: ...

    def ordering_fallback(self, strategy: str, column: str | None) -> None: ...


class ExportEventLog:
    """structlog-backed :class:`ExportEvents` implementation.

    The log keeps no per-export state; the duration of an export is passed
    in by whoever ran it.
    """

    def __init__(self, logger: Any | None = None, *, channel: str = "sheetstream.export") -> None:
        self._log = logger or get_logger(channel)

    def _emit(self, level: str, event: str, **kw: Any) -> None:
        try:
            getattr(self._log, level)(event, **kw)
        except Exception:  # noqa: BLE001
            pass

    def export_started(self, filename: str, expected_count: int | None, options: dict[str, Any]) -> None:
        self._emit(
            "info",
            "export.started",
            filename=filename,
            expected_records=expected_count,
            options=options,
        )

    def chunk_processed(self, chunk_number: int, records_in_chunk: int, total_so_far: int) -> None:
        self._emit(
            "debug",
            "export.chunk_processed",
            chunk_number=chunk_number,
            records_in_chunk=records_in_chunk,
            total_processed=total_so_far,
        )

    def export_completed(
        self,
        filename: str,
        actual_count: int,
        byte_size: int | None = None,
        duration: float | None = None,
        **metrics: Any,
    ) -> None:
        duration = duration or 0.0
        self._emit(
            "info",
            "export.completed",
            filename=filename,
            actual_records=actual_count,
            file_size=format_bytes(byte_size) if byte_size is not None else None,
            duration_seconds=round(duration, 3),
            records_per_second=round(actual_count / duration, 2) if duration > 0 else 0,
            **metrics,
        )

    def export_failed(self, filename: str, error: BaseException, progress: dict[str, Any]) -> None:
        self._emit(
            "error",
            "export.failed",
            filename=filename,
            exception_class=type(error).__name__,
            exception_message=str(error),
            **progress,
        )

    def record_transform_failed(self, position: int, error: BaseException) -> None:
        self._emit(
            "error",
            "export.record_transform_failed",
            position=position,
            exception_class=type(error).__name__,
            exception_message=str(error),
        )

    def memory_warning(self, context: str, current_bytes: int, limit_bytes: int) -> None:
        self._emit(
            "warning",
            "export.memory_warning",
            context=context,
            memory_current=format_bytes(current_bytes),
            memory_limit=format_bytes(limit_bytes),
            memory_percentage=round(current_bytes / limit_bytes * 100, 2) if limit_bytes else None,
        )

    def time_warning(self, filename: str, elapsed: float, remaining: float, **progress: Any) -> None:
        self._emit(
            "warning",
            "export.time_warning",
            filename=filename,
            elapsed_seconds=round(elapsed, 2),
            remaining_seconds=round(remaining, 2),
            **progress,
        )

    def ordering_fallback(self, strategy: str, column: str | None) -> None:
        level = "warning" if strategy == "constant" else "debug"
        self._emit(level, "export.ordering_fallback", strategy=strategy, column=column)
