"""Application-layer errors – misuse of the library surface."""

from __future__ import annotations

from sheetstream.kernel.errors.base import BaseError


class ApplicationError(BaseError):
    """Cross-cutting application-layer concern (configuration, wiring)."""

    default_code = "application_error"


__all__ = ["ApplicationError"]
