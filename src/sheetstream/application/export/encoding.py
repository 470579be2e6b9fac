"""Application export – row encoders.

Both encoders are stateless per row: the output for a row depends only on
the row (and, for XML, its row index).
"""
from __future__ import annotations

import csv
import io
import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Iterable, Sequence

from sheetstream.config.settings import ExportSettings

__all__ = ["CsvRowEncoder", "XmlRowEncoder", "cell_text", "column_letter", "escape_xml"]

# Characters outside the XML 1.0 Char production.
_ILLEGAL_XML = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def cell_text(value: Any) -> str:
    """Coerce a scalar to the text written into a cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def column_letter(index: int) -> str:
    """1-based column index to spreadsheet letters (1→A, 26→Z, 27→AA)."""
    if index < 1:
        raise ValueError(f"column index must be >= 1, got {index}")
    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def escape_xml(text: str) -> str:
    text = _ILLEGAL_XML.sub("", text)
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def escape_attr(text: str) -> str:
    return escape_xml(text).replace('"', "&quot;")


class CsvRowEncoder:
    """Serialises rows with a configurable delimiter / quote / escape triple.

    Fields containing the delimiter, the quote character or a line break are
    wrapped in quotes; embedded quotes are doubled.
    """

    def __init__(
        self,
        delimiter: str = ",",
        quotechar: str = '"',
        escapechar: str | None = None,
        lineterminator: str = "\n",
    ) -> None:
        self._dialect = {
            "delimiter": delimiter,
            "quotechar": quotechar,
            "escapechar": escapechar or None,
            "doublequote": True,
            "lineterminator": lineterminator,
            "quoting": csv.QUOTE_MINIMAL,
        }

    @classmethod
    def from_settings(cls, settings: ExportSettings) -> "CsvRowEncoder":
        return cls(
            delimiter=settings.csv_delimiter,
            quotechar=settings.csv_quotechar,
            escapechar=settings.csv_escapechar or None,
            lineterminator=settings.csv_line_terminator,
        )

    def encode(self, values: Sequence[Any]) -> str:
        return self.encode_many([values])

    def encode_many(self, rows: Iterable[Sequence[Any]]) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, **self._dialect)
        for values in rows:
            writer.writerow([cell_text(v) for v in values])
        return buf.getvalue()


class XmlRowEncoder:
    """Emits SpreadsheetML ``<row>`` elements made of inline-string cells.

    Every value is written as text (``t="inlineStr"``); numbers and booleans
    are not given a native cell type.
    """

    def encode(self, row_index: int, values: Iterable[Any]) -> str:
        parts = [f'<row r="{row_index}">']
        for col, value in enumerate(values, start=1):
            text = escape_xml(cell_text(value))
            space = ' xml:space="preserve"' if text != text.strip() else ""
            parts.append(
                f'<c r="{column_letter(col)}{row_index}" t="inlineStr"><is><t{space}>{text}</t></is></c>'
            )
        parts.append("</row>")
        return "".join(parts)

    def encode_many(self, first_index: int, rows: Iterable[Iterable[Any]]) -> str:
        return "".join(self.encode(first_index + offset, values) for offset, values in enumerate(rows))
