"""FastAPI adapter – ExportExceptionMapper."""
from __future__ import annotations

from typing import Any, Callable


def _require_fastapi() -> None:
    try:
        import fastapi  # noqa: F401
    except ImportError as exc:
        raise ImportError(
            "Install 'sheetstream[fastapi]' to use the FastAPI adapter"
        ) from exc


class ExportExceptionMapper:
    """Register export error → HTTP status-code mappings on a FastAPI app.

    Only errors raised *before* the response starts can be mapped; the
    ``export_*`` coroutines raise all their validation errors at that point.

    Error body schema::

        {"code": "empty_dataset", "message": "...", "detail": {...}}

    Mappings
    --------
    ``EmptyDatasetError``      → 422
    ``UnsupportedFormatError`` → 415
    ``ValidationError``        → 400
    ``DomainError``            → 422
    ``ConfigError``            → 500
    ``InfrastructureError``    → 503
    """

    def __init__(self) -> None:
        _require_fastapi()
        from sheetstream.application.export.errors import EmptyDatasetError, UnsupportedFormatError
        from sheetstream.config.validation import ConfigError
        from sheetstream.kernel.errors import DomainError, InfrastructureError, ValidationError

        # Starlette resolves handlers along the exception MRO, subtypes win.
        self._map: list[tuple[type[Exception], int]] = [
            (EmptyDatasetError, 422),
            (UnsupportedFormatError, 415),
            (ValidationError, 400),
            (ConfigError, 500),
            (InfrastructureError, 503),
            (DomainError, 422),
        ]

    @property
    def mappings(self) -> list[tuple[type[Exception], int]]:
        return list(self._map)

    def register(self, app: Any) -> None:
        """Register all error handlers on a ``FastAPI`` or ``Starlette`` app."""
        from fastapi.responses import JSONResponse  # type: ignore[import-untyped]

        for exc_type, status in self._map:

            def make_handler(code: int) -> Callable[[Any, Any], Any]:
                def handler(request: Any, exc: Any) -> Any:  # noqa: ARG001
                    from sheetstream.kernel.errors.base import BaseError

                    if isinstance(exc, BaseError):
                        body = exc.to_dict()
                    else:
                        body = {"code": "error", "message": str(exc)}
                    return JSONResponse(status_code=code, content=body)

                return handler

            app.add_exception_handler(exc_type, make_handler(status))


__all__ = ["ExportExceptionMapper"]
