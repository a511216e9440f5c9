"""HTTP routers."""

from __future__ import annotations

from fastapi import HTTPException

from docchat.errors import (
    DocChatError,
    DocumentNotFoundError,
    DocumentNotReadyError,
    ExtractionError,
    GenerationError,
    SessionNotFoundError,
)

_STATUS_BY_ERROR: tuple[tuple[type[DocChatError], int, str], ...] = (
    (DocumentNotFoundError, 404, "Document not found"),
    (SessionNotFoundError, 404, "Chat session not found"),
    (ExtractionError, 400, "Failed to process PDF"),
    (DocumentNotReadyError, 400, "Document is still being processed"),
    (GenerationError, 502, "Failed to generate response from AI"),
)


def to_http_exception(exc: DocChatError) -> HTTPException:
    """Translate a domain error into the HTTP status the API promises."""

    for error_type, status_code, message in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail={"error": message, "message": str(exc)})
    return HTTPException(status_code=500, detail={"error": "Internal server error", "message": str(exc)})


__all__ = ["to_http_exception"]
