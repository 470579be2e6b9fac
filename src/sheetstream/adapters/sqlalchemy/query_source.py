"""SQLAlchemy adapter – SqlAlchemyQuerySource, a paged-query data source.

Rows are fetched with successive ``OFFSET/LIMIT`` queries, so the statement
must have a total order. When it declares none, one is injected, in this
order of preference: the primary key of the first FROM table, an ``id``
column, the first selected column, and finally a constant. Offset paging
over a table that is written to during the export may still skip or repeat
rows; ordering only narrows that window.
"""
from __future__ import annotations

from typing import Any, Callable, Sequence

from sheetstream.adapters.sqlalchemy.session import _require_sqlalchemy
from sheetstream.application.export import (
    ChunkCursor,
    ExportEventLog,
    ExportEvents,
    InvalidSheetSpecError,
    RecordProjector,
    SourceDescriptor,
)
from sheetstream.config.settings import ExportSettings

__all__ = ["SqlAlchemyQuerySource", "describe_select"]


def describe_select(statement: Any) -> SourceDescriptor:
    """Build the complexity descriptor of a 2.0-style ``Select``."""
    _require_sqlalchemy()
    from sqlalchemy.sql.expression import Exists, Join, ScalarSelect, Subquery  # type: ignore[import-untyped]
    from sqlalchemy.sql import visitors  # type: ignore[import-untyped]

    joins = 0
    subqueries = 0
    pending = list(statement.get_final_froms())
    while pending:
        frm = pending.pop()
        if isinstance(frm, Join):
            joins += 1
            pending.extend([frm.left, frm.right])
        elif isinstance(frm, Subquery):
            subqueries += 1

    for clause in (*statement._where_criteria, *statement._having_criteria, *statement.selected_columns):
        for element in visitors.iterate(clause):
            if isinstance(element, (ScalarSelect, Exists)):
                subqueries += 1

    return SourceDescriptor(
        joins=joins,
        subqueries=subqueries,
        group_by=bool(statement._group_by_clauses),
        having=bool(statement._having_criteria),
        order_by=len(statement._order_by_clauses),
    )


def _first_table(statement: Any) -> Any:
    from sqlalchemy.sql.expression import Join  # type: ignore[import-untyped]

    froms = statement.get_final_froms()
    if not froms:
        return None
    frm = froms[0]
    while isinstance(frm, Join):
        frm = frm.left
    return frm


def _single_entity(statement: Any) -> Any:
    descriptions = statement.column_descriptions
    if len(descriptions) != 1:
        return None
    entity = descriptions[0].get("entity")
    if entity is not None and descriptions[0].get("expr") is entity:
        return entity
    return None


class SqlAlchemyQuerySource:
    """Data source over an ``AsyncSession`` and a ``select()`` statement.

    Statements selecting a single ORM entity yield the entity objects, so a
    model's ``to_export_row()`` hook is honoured; any other statement yields
    rows projected by column key.

    Parameters
    ----------
    session:
        ``AsyncSession`` used for every page and for the count query.
    statement:
        The ``Select`` to export.
    columns:
        Keys to project from each row (defaults to the selected column keys).
    require_stable_order:
        Refuse statements for which only the constant ordering could be
        injected, instead of logging a warning. Defaults to
        ``settings.require_stable_order`` when *settings* are given.
    """

    def __init__(
        self,
        session: Any,
        statement: Any,
        columns: Sequence[str] | None = None,
        *,
        headers: Sequence[str] | None = None,
        events: ExportEvents | None = None,
        transform: Callable[[Any], Any] | None = None,
        require_stable_order: bool | None = None,
        settings: ExportSettings | None = None,
    ) -> None:
        _require_sqlalchemy()
        self._session = session
        self._events = events or ExportEventLog()
        self._entity = _single_entity(statement)
        self._columns = list(columns) if columns else list(statement.selected_columns.keys())
        self._headers = list(headers) if headers is not None else list(self._columns)
        self._count_statement = statement
        if require_stable_order is None:
            require_stable_order = settings.require_stable_order if settings is not None else False
        self._statement = self._ordered(statement, require_stable_order)
        self._projector = RecordProjector(self._columns, transform, self._events)

    def _ordered(self, statement: Any, require_stable_order: bool) -> Any:
        from sqlalchemy import literal  # type: ignore[import-untyped]

        if statement._order_by_clauses:
            return statement

        table = _first_table(statement)
        primary_key = list(getattr(table, "primary_key", None) or [])
        if primary_key:
            self._events.ordering_fallback("primary_key", ",".join(c.name for c in primary_key))
            return statement.order_by(*primary_key)

        selected = statement.selected_columns
        if "id" in selected:
            self._events.ordering_fallback("id", "id")
            return statement.order_by(selected["id"])
        if table is not None and "id" in getattr(table, "c", {}):
            self._events.ordering_fallback("id", "id")
            return statement.order_by(table.c["id"])

        if len(selected):
            first = list(selected)[0]
            self._events.ordering_fallback("first_column", getattr(first, "key", None))
            return statement.order_by(first)

        if require_stable_order:
            raise InvalidSheetSpecError("Statement has no column a deterministic order can be built on.")
        self._events.ordering_fallback("constant", None)
        return statement.order_by(literal(1))

    @property
    def statement(self) -> Any:
        return self._statement

    def headers(self) -> list[str]:
        return list(self._headers)

    def describe(self) -> SourceDescriptor:
        return describe_select(self._count_statement)

    async def total_count(self) -> int | None:
        from sqlalchemy import func, select  # type: ignore[import-untyped]

        counted = select(func.count()).select_from(self._count_statement.order_by(None).subquery())
        return int(await self._session.scalar(counted) or 0)

    def chunks(self, size: int, projector: RecordProjector | None = None) -> ChunkCursor:
        return ChunkCursor(self._fetch, size, projector or self._projector)

    async def _fetch(self, offset: int, limit: int) -> list[Any]:
        result = await self._session.execute(self._statement.offset(offset).limit(limit))
        if self._entity is not None:
            return list(result.scalars().all())
        return list(result.all())
