"""FastAPI adapter – streaming export responses and error mapping."""
from sheetstream.adapters.fastapi.exception_mapper import ExportExceptionMapper
from sheetstream.adapters.fastapi.responses import streaming_response

__all__ = [
    "ExportExceptionMapper",
    "streaming_response",
]
