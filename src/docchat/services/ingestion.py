from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import httpx

from docchat.chunker import ChunkingConfig, Tokenizer, chunk_with_config
from docchat.config import Settings
from docchat.errors import ChunkingError, EmbeddingFailure, ExtractionError, VectorBackendError
from docchat.extract import ExtractedPDF, extract_pdf
from docchat.logging_config import AUDIT_LOGGER_NAME
from docchat.models import utcnow
from docchat.storage import StoredFile, download_pdf, filename_from_url, save_bytes
from docchat.stores import (
    DocumentMetadata,
    DocumentRecord,
    DocumentStatus,
    DocumentStore,
    EmbeddingStatus,
)
from docchat.telemetry import emit_ingest_event
from docchat.vectorstore import VectorIndex

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


class IngestionService:
    """Turn uploaded PDFs and raw text into stored, embedded documents.

    The document record is saved as soon as text is available. Chunking,
    embedding and vector writes happen afterwards; if they fail the record
    stays in place with ``embedding_status=failed``. Chunks are embedded before
    any stored point is purged, so an embedding outage keeps the previous points
    and chunk count; a backend failure after the purge resets the count to 0.
    A later :meth:`reembed` can pick the document up again.
    """

    def __init__(
        self,
        documents: DocumentStore,
        index: VectorIndex,
        *,
        chunking: ChunkingConfig | None = None,
        upload_dir: str | Path = "uploads",
        max_upload_bytes: int = 10 * 1024 * 1024,
        download_timeout: float = 30.0,
        purge_on_reingest: bool = True,
        tokenizer: Optional[Tokenizer] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._documents = documents
        self._index = index
        self.chunking = chunking or ChunkingConfig()
        self.upload_dir = Path(upload_dir)
        self.max_upload_bytes = max_upload_bytes
        self.download_timeout = download_timeout
        self.purge_on_reingest = purge_on_reingest
        self._tokenizer = tokenizer
        self._http_client = http_client

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        documents: DocumentStore,
        index: VectorIndex,
    ) -> "IngestionService":
        return cls(
            documents,
            index,
            chunking=ChunkingConfig(
                chunk_tokens=settings.chunk_tokens,
                overlap_tokens=settings.chunk_overlap_tokens,
                encoding=settings.tokenizer_model,
            ),
            upload_dir=settings.upload_dir,
            max_upload_bytes=settings.max_upload_bytes,
            download_timeout=settings.download_timeout,
            purge_on_reingest=settings.reingest_purge,
        )

    def ingest_pdf(self, data: bytes, original_name: str) -> DocumentRecord:
        if len(data) > self.max_upload_bytes:
            raise ExtractionError(f"File exceeds the {self.max_upload_bytes} byte upload limit")
        stored = save_bytes(self.upload_dir, original_name, data)
        return self._ingest_stored(stored, original_name, {"filename": original_name})

    def ingest_url(self, url: str) -> DocumentRecord:
        stored = download_pdf(
            url,
            self.upload_dir,
            timeout=self.download_timeout,
            max_bytes=self.max_upload_bytes,
            client=self._http_client,
        )
        original_name = filename_from_url(url)
        return self._ingest_stored(
            stored,
            original_name,
            {"filename": original_name, "source_url": url},
            source_url=url,
        )

    def ingest_text(
        self,
        text: str,
        *,
        original_name: str = "document.txt",
        document_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> DocumentRecord:
        """Register already extracted text and embed it."""

        record = DocumentRecord(
            document_id=document_id or str(uuid.uuid4()),
            filename=original_name,
            original_name=original_name,
            file_path=None,
            file_size=len(text.encode("utf-8")),
            content=text,
            pages=1 if text else 0,
            status=DocumentStatus.COMPLETED,
            metadata=DocumentMetadata(title=original_name),
        )
        self._documents.add(record)
        base_metadata: Dict[str, Any] = {"filename": original_name}
        base_metadata.update(metadata or {})
        return self._embed(record, base_metadata)

    def reembed(self, document_id: str) -> DocumentRecord:
        record = self._documents.get(document_id)
        metadata: Dict[str, Any] = {"filename": record.original_name}
        if record.source_url:
            metadata["source_url"] = record.source_url
        return self._embed(record, metadata)

    def _ingest_stored(
        self,
        stored: StoredFile,
        original_name: str,
        base_metadata: Dict[str, Any],
        *,
        source_url: str | None = None,
    ) -> DocumentRecord:
        document_id = str(uuid.uuid4())
        started = time.perf_counter()
        try:
            extracted = extract_pdf(stored.path.read_bytes())
        except ExtractionError as exc:
            stored.path.unlink(missing_ok=True)
            emit_ingest_event(
                "ingest.extract",
                document_id=document_id,
                file_name=original_name,
                size_bytes=stored.size,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=exc,
            )
            raise

        record = self._documents.add(
            self._build_record(document_id, stored, original_name, extracted, source_url)
        )
        emit_ingest_event(
            "ingest.extract",
            document_id=document_id,
            file_name=original_name,
            size_bytes=stored.size,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            pages=extracted.pages,
        )
        return self._embed(record, base_metadata)

    @staticmethod
    def _build_record(
        document_id: str,
        stored: StoredFile,
        original_name: str,
        extracted: ExtractedPDF,
        source_url: str | None,
    ) -> DocumentRecord:
        author = extracted.info.get("Author")
        return DocumentRecord(
            document_id=document_id,
            filename=stored.filename,
            original_name=original_name,
            file_path=str(stored.path),
            file_size=stored.size,
            content=extracted.text,
            pages=extracted.pages,
            status=DocumentStatus.COMPLETED,
            embedding_status=EmbeddingStatus.PENDING,
            metadata=DocumentMetadata(
                title=extracted.info.get("Title") or original_name,
                authors=[author] if author else [],
            ),
            source_url=source_url,
        )

    def _embed(self, record: DocumentRecord, base_metadata: Dict[str, Any]) -> DocumentRecord:
        started = time.perf_counter()
        purged = False
        try:
            chunks = chunk_with_config(record.content, self.chunking, tokenizer=self._tokenizer)
            # embed everything before touching the points already stored
            points = self._index.prepare_points(record.document_id, chunks, base_metadata)
            if self.purge_on_reingest:
                purged = True
                self._index.delete_document(record.document_id)
            result = self._index.write_points(record.document_id, points, started=started)
        except (ChunkingError, EmbeddingFailure, VectorBackendError) as exc:
            LOGGER.warning("Embedding failed for document %s: %s", record.document_id, exc)
            emit_ingest_event(
                "ingest.embed",
                document_id=record.document_id,
                file_name=record.original_name,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=exc,
            )
            AUDIT_LOGGER.info(
                {
                    "event": "ingest",
                    "document_id": record.document_id,
                    "file_name": record.original_name,
                    "embedding_status": EmbeddingStatus.FAILED.value,
                    "error": str(exc),
                }
            )
            changes: Dict[str, Any] = {"embedding_status": EmbeddingStatus.FAILED}
            if purged:
                changes["chunk_count"] = 0
            return self._documents.update(record.document_id, **changes)

        updated = self._documents.update(
            record.document_id,
            chunk_count=result.upserted,
            last_embedded_at=utcnow(),
            embedding_status=EmbeddingStatus.COMPLETED,
        )
        emit_ingest_event(
            "ingest.embed",
            document_id=record.document_id,
            file_name=record.original_name,
            size_bytes=record.file_size,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            pages=record.pages,
            chunks=result.upserted,
        )
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "document_id": record.document_id,
                "file_name": record.original_name,
                "chunk_count": result.upserted,
                "embedding_status": EmbeddingStatus.COMPLETED.value,
            }
        )
        return updated


__all__ = ["IngestionService"]
