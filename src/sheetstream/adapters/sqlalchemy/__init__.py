"""SQLAlchemy adapter – paged-query export source and session factory."""
from sheetstream.adapters.sqlalchemy.query_source import SqlAlchemyQuerySource, describe_select
from sheetstream.adapters.sqlalchemy.session import SqlAlchemySessionFactory

__all__ = [
    "SqlAlchemyQuerySource",
    "SqlAlchemySessionFactory",
    "describe_select",
]
