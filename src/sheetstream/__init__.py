"""
sheetstream – chunked, memory-bounded CSV and XLSX exports.

Import path convention::

    from sheetstream.application.export import ExportService, ExportOptions, Sheet
    from sheetstream.config import ExportSettings
    from sheetstream.adapters.sqlalchemy import SqlAlchemyQuerySource
    from sheetstream.adapters.fastapi import streaming_response
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
