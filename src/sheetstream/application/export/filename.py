"""Application export – FilenamePolicy."""
from __future__ import annotations

import os

from sheetstream.application.export.request import ExportFormat
from sheetstream.config.settings import ExportSettings
from sheetstream.kernel.errors import ValidationError
from sheetstream.kernel.time import Clock, SystemClock
from sheetstream.kernel.types import Slug

__all__ = ["FilenamePolicy"]

_KNOWN_EXTENSIONS = {f".{fmt.extension}" for fmt in ExportFormat}
_FALLBACK_STEM = "export"


class FilenamePolicy:
    """Builds the download filename for an export.

    The stem is slugged with ``_`` as separator when ``sanitize_filename`` is
    on, optionally suffixed with ``_<timestamp>``, and always given the
    extension of the resolved format (a ``.csv``/``.xlsx`` suffix on the
    requested name is replaced, never doubled).
    """

    def __init__(self, settings: ExportSettings, clock: Clock | None = None) -> None:
        self._settings = settings
        self._clock = clock or SystemClock()

    def build(self, requested: str, fmt: ExportFormat) -> str:
        stem, ext = os.path.splitext(os.path.basename(requested.strip()))
        if ext.lower() not in _KNOWN_EXTENSIONS:
            stem = stem + ext

        if self._settings.sanitize_filename:
            try:
                stem = Slug.from_text(stem, "_").value
            except ValidationError:
                stem = _FALLBACK_STEM
        stem = stem or _FALLBACK_STEM

        if self._settings.include_timestamp:
            stem = f"{stem}_{self._clock.now().strftime(self._settings.timestamp_format)}"
        return f"{stem}.{fmt.extension}"
