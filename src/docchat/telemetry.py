"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import os
import platform
import sys
import traceback
from pathlib import Path
from typing import Any, Iterable, Optional

LOGGER = logging.getLogger("docchat.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "EMBEDDING_PROVIDER",
    "EMBEDDING_MODEL",
    "OLLAMA_BASE_URL",
    "VECTOR_STORE",
    "QDRANT_URL",
    "QDRANT_COLLECTION",
    "CHROMA_PERSIST_DIR",
    "TOKENIZER_MODEL",
    "CHUNK_TOKENS",
    "CHUNK_OVERLAP_TOKENS",
    "MAX_CONTEXT_CHUNKS",
    "CONTEXT_CHARS_PER_CHUNK",
    "HISTORY_MESSAGES",
    "AI_PROVIDER",
    "OPENAI_BASE_URL",
    "OPENAI_MODEL",
    "MODEL_NAME",
)


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    session_id: str | None = None,
    document_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if session_id:
        event["session_id"] = session_id
    if document_id:
        event["document_id"] = document_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_app_startup_event() -> None:
    details = {
        "cwd": str(Path.cwd()),
        "python": sys.version.split()[0],
        "platform": platform.platform(),
        "env": {key: os.getenv(key) for key in _ENV_KEYS_TO_LOG if os.getenv(key) is not None},
    }
    log_event(LOGGER, "app.startup", details=details)


def emit_embeddings_event(
    *,
    model: str,
    endpoint: str,
    count: int,
    duration_ms: float,
    shape: str | None = None,
    dimension: int | None = None,
    errors: list[str] | None = None,
) -> None:
    details = {
        "model": model,
        "endpoint": endpoint,
        "count": count,
        "shape": shape,
        "dimension": dimension,
        "errors": errors or [],
    }
    level = "warning" if errors else "info"
    log_event(LOGGER, "embeddings.compute", level=level, duration_ms=duration_ms, details=details)


def emit_vectorstore_event(
    step: str,
    *,
    collection: str,
    backend: str,
    count: int,
    document_id: str | None = None,
    duration_ms: float | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "collection": collection,
        "backend": backend,
        "count": count,
    }
    level = "error" if error else "info"
    log_event(
        LOGGER,
        step,
        level=level,
        document_id=document_id,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_retriever_event(
    *,
    document_id: str,
    query: str,
    top_k: int,
    path: str,
    results: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {
        "query_preview": query[:120],
        "top_k": top_k,
        "path": path,
        "results": results,
    }
    log_event(
        LOGGER,
        "retriever.search",
        document_id=document_id,
        duration_ms=duration_ms,
        details=details,
    )


def emit_retrieval_degraded(*, document_id: str, query: str, error: BaseException) -> None:
    details = {
        "query_preview": query[:120],
        "reason": str(error),
        "error_type": error.__class__.__name__,
    }
    log_event(
        LOGGER,
        "retriever.degraded",
        level="warning",
        document_id=document_id,
        details=details,
    )


def emit_context_event(
    *,
    chunks: int,
    context_chars: int,
    history: int,
    dropped: int,
) -> None:
    details = {
        "chunks": chunks,
        "context_chars": context_chars,
        "history": history,
        "dropped": dropped,
    }
    log_event(LOGGER, "context.assemble", details=details)


def emit_ingest_event(
    step: str,
    *,
    document_id: str,
    file_name: str | None = None,
    size_bytes: int | None = None,
    duration_ms: float | None = None,
    pages: int | None = None,
    chunks: int | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "file": file_name,
        "size_bytes": size_bytes,
        "pages": pages,
        "chunks": chunks,
    }
    level = "error" if error else "info"
    log_event(
        LOGGER,
        step,
        level=level,
        document_id=document_id,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_generation_event(
    *,
    provider: str,
    model: str,
    messages: int,
    duration_ms: float,
    answer_preview: str | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "provider": provider,
        "model": model,
        "messages": messages,
        "answer_preview": (answer_preview or "")[:200],
    }
    level = "error" if error else "info"
    log_event(
        LOGGER,
        "generation.complete",
        level=level,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    session_id: str | None = None,
    document_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        session_id=session_id,
        document_id=document_id,
        details=details,
        exc=error,
    )


def summarise_sources(items: Iterable[Any]) -> list[dict[str, Any]]:
    """Compact representation of retrieved items for log payloads."""

    summary: list[dict[str, Any]] = []
    for item in items:
        summary.append({"page": getattr(item, "page", None), "score": getattr(item, "score", None)})
    return summary
