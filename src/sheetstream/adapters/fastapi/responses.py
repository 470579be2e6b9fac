"""FastAPI adapter – streaming download responses."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sheetstream.adapters.fastapi.exception_mapper import _require_fastapi

if TYPE_CHECKING:
    from sheetstream.application.export import ExportStream


def streaming_response(stream: "ExportStream", *, status_code: int = 200) -> Any:
    """Wrap an :class:`ExportStream` in a Starlette ``StreamingResponse``.

    The response pulls the export body block by block, so the next chunk is
    only read once the previous bytes were sent to the client. A
    ``Content-Type`` among the stream headers wins over its media type.
    """
    _require_fastapi()
    from fastapi.responses import StreamingResponse  # type: ignore[import-untyped]

    media_type = stream.media_type
    headers: dict[str, str] = {}
    for key, value in stream.headers.items():
        if key.lower() == "content-type":
            media_type = value
        else:
            headers[key] = value
    return StreamingResponse(
        stream,
        status_code=status_code,
        media_type=media_type,
        headers=headers,
    )


__all__ = ["streaming_response"]
