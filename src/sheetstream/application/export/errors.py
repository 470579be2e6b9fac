"""Application export – error taxonomy.

Validation errors (``EmptyDatasetError``, ``InvalidChunkSizeError``,
``UnsupportedFormatError``, ``InvalidSheetSpecError``) are raised before any
output byte exists and can be turned into a clean error response.
``PackageAssemblyError`` and ``StreamingError`` happen once the transport is
committed. ``RecordTransformError`` is only ever logged.
"""
from __future__ import annotations

from typing import Any

from sheetstream.kernel.errors import DomainError, InfrastructureError, ValidationError

__all__ = [
    "EmptyDatasetError",
    "InvalidChunkSizeError",
    "InvalidSheetSpecError",
    "PackageAssemblyError",
    "RecordTransformError",
    "StreamingError",
    "UnsupportedFormatError",
]


class EmptyDatasetError(ValidationError):
    default_code = "empty_dataset"

    def __init__(self, message: str = "Cannot export empty dataset.", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class InvalidChunkSizeError(ValidationError):
    default_code = "invalid_chunk_size"

    def __init__(self, size: Any, **kwargs: Any) -> None:
        super().__init__(
            f"Invalid chunk size: {size}. Must be greater than 0.",
            detail={"chunk_size": size},
            **kwargs,
        )
        self.size = size


class UnsupportedFormatError(ValidationError):
    default_code = "unsupported_format"

    def __init__(self, fmt: Any, **kwargs: Any) -> None:
        super().__init__(
            f"Unsupported file format: {fmt}. Supported formats: csv, xlsx.",
            detail={"format": fmt},
            **kwargs,
        )
        self.format = fmt


class InvalidSheetSpecError(ValidationError):
    """A sheet is missing columns, has an illegal/duplicate name, or there are too many."""

    default_code = "invalid_sheet_spec"

    def __init__(self, message: str, *, sheet: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, detail={"sheet": sheet} if sheet is not None else None, **kwargs)
        self.sheet = sheet


class RecordTransformError(DomainError):
    """A per-record transform raised; the record fell back to column projection."""

    default_code = "record_transform_failed"

    def __init__(self, position: int, cause: BaseException) -> None:
        super().__init__(
            f"Transform failed for record {position}: {cause}",
            detail={"position": position, "error_type": type(cause).__name__},
            cause=cause,
        )
        self.position = position


class PackageAssemblyError(InfrastructureError):
    """Temp-file or archive I/O failed while building a spreadsheet package."""

    default_code = "package_assembly_failed"


class StreamingError(InfrastructureError):
    """The export failed after output headers were committed."""

    default_code = "streaming_failed"

    def __init__(self, reason: str, *, progress: dict[str, Any] | None = None, **kwargs: Any) -> None:
        super().__init__(f"Streaming export failed: {reason}", detail=progress, **kwargs)
        self.progress: dict[str, Any] = progress or {}
