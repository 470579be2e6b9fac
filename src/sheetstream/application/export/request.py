"""Application export – ExportFormat, ExportOptions, Sheet and ExportJob."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Sequence

from sheetstream.application.export.errors import InvalidChunkSizeError, UnsupportedFormatError

if TYPE_CHECKING:
    from sheetstream.application.export.chunking import SourceDescriptor
    from sheetstream.application.export.sources import DataSource

__all__ = ["ExportFormat", "ExportJob", "ExportOptions", "Sheet"]

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ExportFormat(str, Enum):
    """Line-delimited CSV, or the packaged OOXML spreadsheet."""

    CSV = "csv"
    XLSX = "xlsx"

    @classmethod
    def parse(cls, value: "str | ExportFormat") -> "ExportFormat":
        if isinstance(value, ExportFormat):
            return value
        normalised = str(value).strip().lower()
        if normalised == "packaged":
            return cls.XLSX
        try:
            return cls(normalised)
        except ValueError:
            raise UnsupportedFormatError(value) from None

    @property
    def extension(self) -> str:
        return self.value

    @property
    def media_type(self) -> str:
        return CSV_MEDIA_TYPE if self is ExportFormat.CSV else XLSX_MEDIA_TYPE


@dataclass(frozen=True)
class ExportOptions:
    """Per-export options supplied by the caller.

    ``chunk_size`` always wins over the derived size when set.
    ``headers`` are merged over the configured default response headers.
    ``max_execution_time`` overrides the configured time budget (seconds).
    """

    format: ExportFormat | str = ExportFormat.CSV
    chunk_size: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    max_execution_time: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", ExportFormat.parse(self.format))
        if self.chunk_size is not None and self.chunk_size <= 0:
            raise InvalidChunkSizeError(self.chunk_size)

    @property
    def export_format(self) -> ExportFormat:
        return self.format  # type: ignore[return-value]

    def to_log(self) -> dict[str, Any]:
        return {
            "format": self.export_format.value,
            "chunk_size": self.chunk_size,
            "max_execution_time": self.max_execution_time,
        }


@dataclass(frozen=True)
class Sheet:
    """One worksheet of a packaged export.

    ``columns`` are the keys projected from each record; ``headers`` are the
    labels written to row 1 (defaults to ``columns``). ``transform`` is the
    optional per-record export transform; when it fails the record falls back
    to column projection. Both replace any columns or transform the source was
    built with.
    """

    name: str
    source: "DataSource"
    columns: Sequence[str]
    transform: Callable[[Any], Any] | None = None
    chunk_size: int | None = None
    headers: Sequence[str] | None = None
    descriptor: "SourceDescriptor | None" = None

    @property
    def header_row(self) -> list[str]:
        return list(self.headers if self.headers is not None else self.columns)


@dataclass
class ExportJob:
    """Lifecycle record of one export; mutated only by the export's own task."""

    format: ExportFormat
    filename: str
    options: ExportOptions
    sheet_names: list[str] = field(default_factory=list)
    expected_records: int | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    records_processed: int = 0
    chunks_processed: int = 0
    bytes_emitted: int = 0
    peak_memory_bytes: int = 0
    failed: bool = False

    def progress(self) -> dict[str, Any]:
        return {
            "job_id": self.id,
            "records_processed": self.records_processed,
            "chunks_processed": self.chunks_processed,
            "bytes_emitted": self.bytes_emitted,
        }
