"""Config settings – ExportSettings, the engine's single configuration struct."""
from __future__ import annotations

import dataclasses
from typing import ClassVar

from sheetstream.config.settings.base import Settings
from sheetstream.config.validation.errors import InvalidSettingValueError


def _default_response_headers() -> dict[str, str]:
    return {
        "Cache-Control": "must-revalidate, post-check=0, pre-check=0",
        "Content-Description": "File Transfer",
        "Content-Transfer-Encoding": "binary",
        "Expires": "0",
        "Pragma": "public",
    }


@dataclasses.dataclass(frozen=True)
class ExportSettings(Settings):
    """Tunables for chunking, guardrails, encoders and file naming.

    Every field can be set from ``SHEETSTREAM_<FIELD>`` through
    :class:`~sheetstream.config.settings.loaders.EnvSettingsLoader`.
    """

    _prefix: ClassVar[str] = "SHEETSTREAM"

    # chunk sizing
    default_chunk_size: int = 1000
    min_chunk_size: int = 100
    max_chunk_size: int = 5000
    simple_query_chunk_size: int = 2000
    complex_query_chunk_size: int = 500
    xlsx_chunk_size: int = 1000
    auto_detect_query_complexity: bool = True
    auto_adjust_chunks: bool = True

    # memory and time guardrails
    memory_threshold: float = 0.8
    memory_warning_threshold: float = 0.8
    memory_limit_bytes: int = 0  # 0 = total system memory
    max_execution_time: float = 300.0
    execution_time_warning_threshold: float = 0.8

    # csv encoder
    csv_delimiter: str = ","
    csv_quotechar: str = '"'
    csv_escapechar: str = ""
    csv_line_terminator: str = "\n"
    csv_bom: bool = False

    # file naming
    sanitize_filename: bool = True
    include_timestamp: bool = True
    timestamp_format: str = "%Y-%m-%d_%H-%M-%S"

    # packaged format
    max_sheets: int = 10
    sheet_name_length: int = 31
    temp_dir: str = ""
    read_buffer_size: int = 8192

    # paged-query sources
    require_stable_order: bool = False

    default_headers: dict[str, str] = dataclasses.field(default_factory=_default_response_headers)

    def _validate(self) -> None:
        for name in (
            "default_chunk_size",
            "min_chunk_size",
            "max_chunk_size",
            "simple_query_chunk_size",
            "complex_query_chunk_size",
            "xlsx_chunk_size",
            "max_sheets",
            "sheet_name_length",
            "read_buffer_size",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise InvalidSettingValueError(name, value, "must be greater than 0")
        if self.min_chunk_size > self.max_chunk_size:
            raise InvalidSettingValueError(
                "min_chunk_size", self.min_chunk_size, "must not exceed max_chunk_size"
            )
        for name in ("memory_threshold", "memory_warning_threshold", "execution_time_warning_threshold"):
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise InvalidSettingValueError(name, value, "must be within (0, 1]")
        if self.memory_limit_bytes < 0:
            raise InvalidSettingValueError("memory_limit_bytes", self.memory_limit_bytes, "must be >= 0")
        if self.max_execution_time < 0:
            raise InvalidSettingValueError("max_execution_time", self.max_execution_time, "must be >= 0")
        if len(self.csv_delimiter) != 1:
            raise InvalidSettingValueError("csv_delimiter", self.csv_delimiter, "must be one character")
        if len(self.csv_quotechar) != 1:
            raise InvalidSettingValueError("csv_quotechar", self.csv_quotechar, "must be one character")
        if len(self.csv_escapechar) > 1:
            raise InvalidSettingValueError("csv_escapechar", self.csv_escapechar, "must be empty or one character")
        if not self.csv_line_terminator:
            raise InvalidSettingValueError("csv_line_terminator", self.csv_line_terminator, "must not be empty")


__all__ = ["ExportSettings"]
