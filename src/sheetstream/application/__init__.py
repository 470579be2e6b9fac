"""Application – export use cases (framework-agnostic)."""

from sheetstream.application.export import (
    ArrayDataSource,
    CallableDataSource,
    DataSource,
    ExportFormat,
    ExportOptions,
    ExportService,
    ExportStream,
    Sheet,
)

__all__ = [
    "ArrayDataSource",
    "CallableDataSource",
    "DataSource",
    "ExportFormat",
    "ExportOptions",
    "ExportService",
    "ExportStream",
    "Sheet",
]
