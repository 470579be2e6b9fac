"""Application export – chunked, streaming CSV and spreadsheet exports."""
from sheetstream.application.export.chunking import (
    AdaptiveChunkSize,
    ChunkSizePolicy,
    QueryComplexity,
    SourceDescriptor,
)
from sheetstream.application.export.csv_export import CsvStreamWriter, WriterState
from sheetstream.application.export.encoding import CsvRowEncoder, XmlRowEncoder, cell_text, column_letter
from sheetstream.application.export.errors import (
    EmptyDatasetError,
    InvalidChunkSizeError,
    InvalidSheetSpecError,
    PackageAssemblyError,
    RecordTransformError,
    StreamingError,
    UnsupportedFormatError,
)
from sheetstream.application.export.events import ExportEventLog, ExportEvents
from sheetstream.application.export.excel_export import PackageArtifact, SheetPlan, SpreadsheetPackageBuilder
from sheetstream.application.export.export_service import ByteSink, ExportService, ExportStream
from sheetstream.application.export.filename import FilenamePolicy
from sheetstream.application.export.guardrails import ExportMonitor
from sheetstream.application.export.request import ExportFormat, ExportJob, ExportOptions, Sheet
from sheetstream.application.export.sources import (
    ArrayDataSource,
    CallableDataSource,
    ChunkCursor,
    DataSource,
    ExportableRecord,
    RecordProjector,
)

__all__ = [
    "AdaptiveChunkSize",
    "ArrayDataSource",
    "ByteSink",
    "CallableDataSource",
    "ChunkCursor",
    "ChunkSizePolicy",
    "CsvRowEncoder",
    "CsvStreamWriter",
    "DataSource",
    "EmptyDatasetError",
    "ExportEventLog",
    "ExportEvents",
    "ExportFormat",
    "ExportJob",
    "ExportMonitor",
    "ExportOptions",
    "ExportService",
    "ExportStream",
    "ExportableRecord",
    "FilenamePolicy",
    "InvalidChunkSizeError",
    "InvalidSheetSpecError",
    "PackageArtifact",
    "PackageAssemblyError",
    "QueryComplexity",
    "RecordProjector",
    "RecordTransformError",
    "Sheet",
    "SheetPlan",
    "SourceDescriptor",
    "SpreadsheetPackageBuilder",
    "StreamingError",
    "UnsupportedFormatError",
    "WriterState",
    "XmlRowEncoder",
    "cell_text",
    "column_letter",
]
