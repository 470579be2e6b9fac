"""Application export – CsvStreamWriter."""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Sequence

from sheetstream.application.export.encoding import CsvRowEncoder
from sheetstream.application.export.sources import Chunk, Cursor

if TYPE_CHECKING:
    from sheetstream.application.export.chunking import AdaptiveChunkSize
    from sheetstream.application.export.guardrails import ExportMonitor

__all__ = ["CsvStreamWriter", "WriterState"]

_BOM = "\ufeff"


class WriterState(str, Enum):
    NOT_STARTED = "not_started"
    HEADER_WRITTEN = "header_written"
    STREAMING = "streaming"
    CLOSED = "closed"


class CsvStreamWriter:
    """Encodes a chunk cursor into CSV bytes, one yielded buffer per chunk.

    ``NOT_STARTED → HEADER_WRITTEN → STREAMING → CLOSED``. The header line is
    written once, in front of the first chunk, or on its own at close when
    the cursor never produced a chunk. Any failure closes the writer and the
    cursor; whatever was yielded before stays yielded.
    """

    def __init__(self, encoder: CsvRowEncoder | None = None, *, bom: bool = False, encoding: str = "utf-8") -> None:
        self._encoder = encoder or CsvRowEncoder()
        self._bom = bom
        self._encoding = encoding
        self._state = WriterState.NOT_STARTED

    @property
    def state(self) -> WriterState:
        return self._state

    def header(self, headers: Sequence[str]) -> bytes:
        if self._state is not WriterState.NOT_STARTED:
            raise RuntimeError(f"header already written (state={self._state.value})")
        text = self._encoder.encode(headers)
        if self._bom:
            text = _BOM + text
        self._state = WriterState.HEADER_WRITTEN
        return text.encode(self._encoding)

    def rows(self, chunk: Chunk) -> bytes:
        if self._state not in (WriterState.HEADER_WRITTEN, WriterState.STREAMING):
            raise RuntimeError(f"cannot write rows in state {self._state.value}")
        self._state = WriterState.STREAMING
        return self._encoder.encode_many(list(row.values()) for row in chunk).encode(self._encoding)

    def close(self) -> None:
        self._state = WriterState.CLOSED

    async def stream(
        self,
        headers: Sequence[str],
        cursor: Cursor,
        *,
        monitor: "ExportMonitor | None" = None,
        adaptive: "AdaptiveChunkSize | None" = None,
    ) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await cursor.next()
                if chunk is None:
                    break
                payload = b""
                if self._state is WriterState.NOT_STARTED:
                    payload = self.header(headers)
                payload += self.rows(chunk)
                if monitor is not None:
                    monitor.after_chunk(len(chunk), cursor, adaptive)
                yield payload
            if self._state is WriterState.NOT_STARTED:
                yield self.header(headers)
        finally:
            self.close()
            _close_cursor(cursor)


def _close_cursor(cursor: Any) -> None:
    close = getattr(cursor, "close", None)
    if callable(close):
        close()
