"""Application export – ExportService, the streaming export orchestrator.

Every ``export_*`` coroutine validates its input, resolves the format, the
filename and the response headers, and returns an :class:`ExportStream`
*before* any payload byte exists, so validation failures can still become a
regular error response. The body is produced lazily while the transport
pulls it: the next chunk is not read until the bytes of the previous one
have been taken.
"""
from __future__ import annotations

import dataclasses
from contextlib import aclosing
from typing import Any, AsyncIterator, Protocol, Sequence, runtime_checkable

from sheetstream.application.export.chunking import ChunkSizePolicy, SourceDescriptor
from sheetstream.application.export.csv_export import CsvStreamWriter
from sheetstream.application.export.encoding import CsvRowEncoder
from sheetstream.application.export.errors import (
    EmptyDatasetError,
    InvalidChunkSizeError,
    InvalidSheetSpecError,
    PackageAssemblyError,
    StreamingError,
)
from sheetstream.application.export.events import ExportEventLog, ExportEvents
from sheetstream.application.export.excel_export import SheetPlan, SpreadsheetPackageBuilder
from sheetstream.application.export.filename import FilenamePolicy
from sheetstream.application.export.guardrails import ExportMonitor
from sheetstream.application.export.request import ExportFormat, ExportJob, ExportOptions, Sheet
from sheetstream.application.export.sources import ArrayDataSource, DataSource, RecordProjector
from sheetstream.config.settings import ExportSettings
from sheetstream.kernel.errors import BaseError
from sheetstream.kernel.time import Clock, SystemClock
from sheetstream.observability.profiling import MemoryProbe, MemorySampler

__all__ = ["ByteSink", "ExportService", "ExportStream"]

_FORBIDDEN_SHEET_CHARS = ("\\", "/", "?", "*", "[", "]", ":")
_SINGLE_SHEET_NAME = "Sheet1"


@runtime_checkable
class ByteSink(Protocol):
    """Port: append-only byte transport with an explicit flush."""

    async def write(self, data: bytes) -> None: ...

    async def flush(self) -> None: ...


class ExportStream:
    """Response metadata plus the lazily produced body of one export.

    Iterate it (``async for block in stream``) or hand it to a sink with
    :meth:`pipe`. The body can be consumed once.
    """

    def __init__(
        self,
        filename: str,
        media_type: str,
        headers: dict[str, str],
        job: ExportJob,
        body: AsyncIterator[bytes],
    ) -> None:
        self.filename = filename
        self.media_type = media_type
        self.headers = headers
        self.job = job
        self._body = body

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._body

    async def pipe(self, sink: ByteSink) -> int:
        """Write every block to *sink*, flushing after each; return the byte count."""
        written = 0
        async with aclosing(self._body) as blocks:
            async for block in blocks:
                await sink.write(block)
                await sink.flush()
                written += len(block)
        return written

    async def aclose(self) -> None:
        close = getattr(self._body, "aclose", None)
        if close is not None:
            await close()


class ExportService:
    """Entry point for CSV and packaged spreadsheet exports.

    Collaborators are injected; the defaults are the production ones
    (structlog event log, psutil memory probe, system clock).
    """

    def __init__(
        self,
        settings: ExportSettings | None = None,
        events: ExportEvents | None = None,
        memory: MemorySampler | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings or ExportSettings()
        self._events = events or ExportEventLog()
        self._memory = memory or MemoryProbe(self._settings.memory_limit_bytes)
        self._clock = clock or SystemClock()
        self._policy = ChunkSizePolicy(self._settings)
        self._filenames = FilenamePolicy(self._settings, self._clock)
        self._builder = SpreadsheetPackageBuilder(self._settings, self._policy)

    @property
    def settings(self) -> ExportSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def export_from_source(
        self,
        source: DataSource,
        filename: str,
        options: ExportOptions | None = None,
        *,
        descriptor: SourceDescriptor | None = None,
    ) -> ExportStream:
        options = options or ExportOptions()
        fmt = options.export_format
        name = self._filenames.build(filename, fmt)
        expected = await source.total_count()
        job = ExportJob(
            format=fmt,
            filename=name,
            options=options,
            sheet_names=[_SINGLE_SHEET_NAME] if fmt is ExportFormat.XLSX else [],
            expected_records=expected,
        )
        monitor = self._monitor(job)

        if fmt is ExportFormat.CSV:
            size = self._policy.resolve(options.chunk_size, descriptor, fmt)
            writer = CsvStreamWriter(CsvRowEncoder.from_settings(self._settings), bom=self._settings.csv_bom)
            produce = writer.stream(
                source.headers(),
                source.chunks(size),
                monitor=monitor,
                adaptive=self._policy.adaptive(size),
            )
        else:
            plan = SheetPlan(
                name=_SINGLE_SHEET_NAME,
                source=source,
                headers=source.headers(),
                chunk_size=options.chunk_size,
                descriptor=descriptor,
            )
            produce = self._package_blocks([plan], monitor)
        return self._stream(job, monitor, produce)

    async def export_from_rows(
        self,
        rows: Sequence[Any],
        headers: Sequence[str],
        filename: str,
        options: ExportOptions | None = None,
    ) -> ExportStream:
        source = ArrayDataSource(rows, headers, events=self._events)
        return await self.export_from_source(source, filename, options)

    async def export_sheets(
        self,
        sheets: Sequence[Sheet],
        filename: str,
        options: ExportOptions | None = None,
    ) -> ExportStream:
        self._validate_sheets(sheets)
        options = dataclasses.replace(options or ExportOptions(), format=ExportFormat.XLSX)
        name = self._filenames.build(filename, ExportFormat.XLSX)

        expected: int | None = 0
        for sheet in sheets:
            count = await sheet.source.total_count()
            expected = None if count is None or expected is None else expected + count

        job = ExportJob(
            format=ExportFormat.XLSX,
            filename=name,
            options=options,
            sheet_names=[sheet.name for sheet in sheets],
            expected_records=expected,
        )
        monitor = self._monitor(job)
        plans = [
            SheetPlan(
                name=sheet.name,
                source=sheet.source,
                headers=sheet.header_row,
                projector=RecordProjector(sheet.columns, sheet.transform, self._events),
                chunk_size=sheet.chunk_size or options.chunk_size,
                descriptor=sheet.descriptor,
            )
            for sheet in sheets
        ]
        return self._stream(job, monitor, self._package_blocks(plans, monitor))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate_sheets(self, sheets: Sequence[Sheet]) -> None:
        if not sheets:
            raise EmptyDatasetError("Cannot export a workbook without sheets.")
        limit = self._settings.max_sheets
        if len(sheets) > limit:
            raise InvalidSheetSpecError(f"Cannot export more than {limit} sheets, got {len(sheets)}.")
        max_length = self._settings.sheet_name_length
        seen: set[str] = set()
        for sheet in sheets:
            name = sheet.name
            if not name or not name.strip():
                raise InvalidSheetSpecError("Sheet name cannot be empty.", sheet=name)
            if len(name) > max_length:
                raise InvalidSheetSpecError(
                    f"Sheet name cannot be longer than {max_length} characters.", sheet=name
                )
            for char in _FORBIDDEN_SHEET_CHARS:
                if char in name:
                    raise InvalidSheetSpecError(f"Sheet name cannot contain {char!r}.", sheet=name)
            if name.lower() in seen:
                raise InvalidSheetSpecError(f"Sheet name {name!r} already exists.", sheet=name)
            seen.add(name.lower())
            if not sheet.columns:
                raise InvalidSheetSpecError(f"Sheet {name!r} declares no columns.", sheet=name)
            if sheet.source is None:
                raise InvalidSheetSpecError(f"Sheet {name!r} has no data source.", sheet=name)
            if sheet.chunk_size is not None and sheet.chunk_size <= 0:
                raise InvalidChunkSizeError(sheet.chunk_size)

    def _monitor(self, job: ExportJob) -> ExportMonitor:
        return ExportMonitor(
            job,
            self._settings,
            self._events,
            self._memory,
            self._clock,
            budget=job.options.max_execution_time,
        )

    def _response_headers(self, job: ExportJob) -> dict[str, str]:
        return {
            **self._settings.default_headers,
            "Content-Type": job.format.media_type,
            "Content-Disposition": f'attachment; filename="{job.filename}"',
            **job.options.headers,
        }

    def _stream(self, job: ExportJob, monitor: ExportMonitor, produce: AsyncIterator[bytes]) -> ExportStream:
        job.started_at = self._clock.now()
        self._events.export_started(job.filename, job.expected_records, job.options.to_log())
        monitor.start()
        return ExportStream(
            filename=job.filename,
            media_type=job.format.media_type,
            headers=self._response_headers(job),
            job=job,
            body=self._run(job, monitor, produce),
        )

    async def _run(self, job: ExportJob, monitor: ExportMonitor, produce: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        try:
            async with aclosing(produce) as blocks:
                async for block in blocks:
                    job.bytes_emitted += len(block)
                    yield block
        except Exception as exc:
            job.failed = True
            job.finished_at = self._clock.now()
            self._events.export_failed(job.filename, exc, job.progress())
            if isinstance(exc, (StreamingError, PackageAssemblyError)):
                raise
            reason = exc.message if isinstance(exc, BaseError) else (str(exc) or type(exc).__name__)
            raise StreamingError(reason, progress=job.progress(), cause=exc) from exc
        job.finished_at = self._clock.now()
        self._events.export_completed(
            job.filename,
            job.records_processed,
            job.bytes_emitted,
            duration=monitor.elapsed(),
            **monitor.summary(),
        )

    async def _package_blocks(self, plans: Sequence[SheetPlan], monitor: ExportMonitor) -> AsyncIterator[bytes]:
        artifact = await self._builder.build(plans, monitor.job.filename, monitor)
        try:
            async for block in artifact.iter_bytes(self._settings.read_buffer_size):
                yield block
        finally:
            artifact.discard()
