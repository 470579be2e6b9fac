"""Application export – data sources, cursors and record projection.

A data source hands out rows in bounded chunks through an explicit,
forward-only :class:`ChunkCursor`. The only suspension point is the boundary
between two chunks: ``await cursor.next()`` returns the next chunk or
``None`` once the source is exhausted.
"""
from __future__ import annotations

import dataclasses
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence, runtime_checkable

from sheetstream.application.export.errors import (
    EmptyDatasetError,
    InvalidChunkSizeError,
    RecordTransformError,
)
from sheetstream.application.export.events import ExportEventLog, ExportEvents

__all__ = [
    "ArrayDataSource",
    "CallableDataSource",
    "Chunk",
    "ChunkCursor",
    "Cursor",
    "DataSource",
    "ExportableRecord",
    "FetchPage",
    "RecordProjector",
    "Row",
]

Row = dict[str, Any]
Chunk = list[Row]
FetchPage = Callable[[int, int], Awaitable[Sequence[Any]]]


@runtime_checkable
class ExportableRecord(Protocol):
    """Capability: a record that knows how to render itself as an export row."""

    def to_export_row(self) -> Mapping[str, Any] | Sequence[Any]: ...


@runtime_checkable
class Cursor(Protocol):
    """Forward-only chunk iterator; ``None`` marks the end."""

    async def next(self) -> Chunk | None: ...


@runtime_checkable
class DataSource(Protocol):
    """Port: an ordered, chunked sequence of rows plus header metadata.

    ``chunks(size, projector)`` projects raw records with *projector* when one
    is given, in place of the source's own column and transform settings.
    """

    def headers(self) -> list[str]: ...

    async def total_count(self) -> int | None: ...

    def chunks(self, size: int, projector: RecordProjector | None = None) -> Cursor: ...


class RecordProjector:
    """Turns one raw record into an export row.

    Precedence: an explicit *transform* callable, then the record's own
    ``to_export_row()`` hook, then projection onto *columns*. A transform
    that raises degrades that record to its column projection and reports a
    :class:`RecordTransformError` to *events*; the chunk carries on.
    Whatever produced the row, it is keyed and ordered by *columns* when
    they are declared.
    """

    def __init__(
        self,
        columns: Sequence[str] | None = None,
        transform: Callable[[Any], Any] | None = None,
        events: ExportEvents | None = None,
    ) -> None:
        self._columns = list(columns) if columns is not None else None
        self._transform = transform
        self._events = events or ExportEventLog()

    @property
    def columns(self) -> list[str] | None:
        return self._columns

    def project(self, record: Any, position: int) -> Row:
        if self._transform is None and not isinstance(record, ExportableRecord):
            return self.project_columns(record)
        try:
            if self._transform is not None:
                produced = self._transform(record)
            else:
                produced = record.to_export_row()
            return self._as_row(produced)
        except Exception as exc:  # noqa: BLE001
            self._events.record_transform_failed(position, RecordTransformError(position, exc))
            return self.project_columns(record)

    def project_columns(self, record: Any) -> Row:
        if self._columns is None:
            return _record_to_dict(record)
        mapping = _as_mapping(record)
        if mapping is not None:
            return {column: mapping.get(column) for column in self._columns}
        return {column: getattr(record, column, None) for column in self._columns}

    def _as_row(self, produced: Any) -> Row:
        if isinstance(produced, Mapping):
            if self._columns is None:
                return dict(produced)
            return {column: produced.get(column) for column in self._columns}
        if isinstance(produced, (list, tuple)):
            keys = self._columns or [str(i) for i in range(len(produced))]
            if len(keys) != len(produced):
                raise ValueError(
                    f"transform returned {len(produced)} values for {len(keys)} columns"
                )
            return dict(zip(keys, produced))
        raise TypeError(f"transform must return a mapping or sequence, got {type(produced).__name__}")


def _as_mapping(record: Any) -> Mapping[str, Any] | None:
    if isinstance(record, Mapping):
        return record
    mapping = getattr(record, "_mapping", None)  # SQLAlchemy Row
    if isinstance(mapping, Mapping):
        return mapping
    return None


def _record_to_dict(record: Any) -> Row:
    mapping = _as_mapping(record)
    if mapping is not None:
        return dict(mapping)
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}
    if isinstance(record, (list, tuple)):
        return {str(i): value for i, value in enumerate(record)}
    return {k: v for k, v in vars(record).items() if not k.startswith("_")}


class ChunkCursor:
    """Offset/limit cursor over a page-fetching coroutine.

    Stops after an empty batch or a batch shorter than the size requested for
    it. ``resize`` changes the size of the *next* batch only; offsets follow
    the records actually returned, so shrinking mid-export neither skips nor
    repeats rows.
    """

    def __init__(self, fetch: FetchPage, size: int, projector: RecordProjector | None = None) -> None:
        if size <= 0:
            raise InvalidChunkSizeError(size)
        self._fetch = fetch
        self._size = size
        self._projector = projector or RecordProjector()
        self._offset = 0
        self._exhausted = False

    @property
    def size(self) -> int:
        return self._size

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def resize(self, size: int) -> None:
        if size <= 0:
            raise InvalidChunkSizeError(size)
        self._size = size

    async def next(self) -> Chunk | None:
        if self._exhausted:
            return None
        requested = self._size
        batch = list(await self._fetch(self._offset, requested))
        if not batch:
            self._exhausted = True
            return None
        start = self._offset
        self._offset += len(batch)
        if len(batch) < requested:
            self._exhausted = True
        return [
            self._projector.project(record, start + index + 1)
            for index, record in enumerate(batch)
        ]

    def close(self) -> None:
        self._exhausted = True

    def __aiter__(self) -> "ChunkCursor":
        return self

    async def __anext__(self) -> Chunk:
        chunk = await self.next()
        if chunk is None:
            raise StopAsyncIteration
        return chunk


class ArrayDataSource:
    """In-memory rows split into fixed-size slices."""

    def __init__(
        self,
        rows: Sequence[Any],
        headers: Sequence[str],
        *,
        columns: Sequence[str] | None = None,
        transform: Callable[[Any], Any] | None = None,
        events: ExportEvents | None = None,
    ) -> None:
        if not rows:
            raise EmptyDatasetError()
        self._rows = list(rows)
        self._headers = list(headers)
        self._projector = RecordProjector(columns, transform, events)

    def headers(self) -> list[str]:
        return list(self._headers)

    async def total_count(self) -> int | None:
        return len(self._rows)

    def chunks(self, size: int, projector: RecordProjector | None = None) -> ChunkCursor:
        return ChunkCursor(self._slice, size, projector or self._projector)

    async def _slice(self, offset: int, limit: int) -> Sequence[Any]:
        return self._rows[offset : offset + limit]


class CallableDataSource:
    """Custom source backed by a caller-supplied ``async fetch(offset, limit)``.

    *total* may be a fixed count, an async callable returning one, or
    ``None`` when the size is unknown.
    """

    def __init__(
        self,
        fetch: FetchPage,
        headers: Sequence[str],
        *,
        total: int | Callable[[], Awaitable[int | None]] | None = None,
        columns: Sequence[str] | None = None,
        transform: Callable[[Any], Any] | None = None,
        events: ExportEvents | None = None,
    ) -> None:
        self._fetch = fetch
        self._headers = list(headers)
        self._total = total
        self._projector = RecordProjector(columns, transform, events)

    def headers(self) -> list[str]:
        return list(self._headers)

    async def total_count(self) -> int | None:
        if self._total is None or isinstance(self._total, int):
            return self._total
        return await self._total()

    def chunks(self, size: int, projector: RecordProjector | None = None) -> ChunkCursor:
        return ChunkCursor(self._fetch, size, projector or self._projector)
