"""Infrastructure errors – file-system, archive and transport failures."""

from __future__ import annotations

from sheetstream.kernel.errors.base import BaseError


class InfrastructureError(BaseError):
    """I/O failure that is not a rule violation in the exported data."""

    default_code = "infrastructure_error"


__all__ = ["InfrastructureError"]
