"""API router for uploading PDFs and reading document status."""
from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from docchat.errors import DocChatError
from docchat.services import IngestionService, get_document_store, get_ingestion_service
from docchat.stores import DocumentRecord, DocumentStore

from . import to_http_exception

router = APIRouter(prefix="/api/upload", tags=["upload"])

PDF_CONTENT_TYPES = {"application/pdf"}


class UrlUploadRequest(BaseModel):
    url: str = Field("", description="Address of the PDF to download.")


class DocumentMetadataModel(BaseModel):
    title: str
    authors: list[str]
    keywords: list[str]


class UploadResponse(BaseModel):
    """Response body returned after a PDF has been ingested."""

    success: bool = True
    document_id: str
    message: str
    status: str
    embedding_status: str
    pages: int
    file_size: int
    filename: str
    chunk_count: int
    upload_date: dt.datetime


class DocumentResponse(BaseModel):
    document_id: str
    filename: str
    status: str
    embedding_status: str
    pages: int
    file_size: int
    upload_date: dt.datetime
    metadata: DocumentMetadataModel
    chunk_count: int
    last_embedded_at: Optional[dt.datetime]
    source_url: Optional[str] = None


def _upload_response(record: DocumentRecord) -> UploadResponse:
    return UploadResponse(
        document_id=record.document_id,
        message="PDF uploaded and processed successfully",
        status=record.status.value,
        embedding_status=record.embedding_status.value,
        pages=record.pages,
        file_size=record.file_size,
        filename=record.original_name,
        chunk_count=record.chunk_count,
        upload_date=record.upload_date,
    )


@router.post("", response_model=UploadResponse, status_code=201)
def upload_pdf(
    pdf: Optional[UploadFile] = File(None),
    service: IngestionService = Depends(get_ingestion_service),
) -> UploadResponse:
    """Store an uploaded PDF, extract its text and index its chunks."""

    if pdf is None:
        raise HTTPException(status_code=400, detail={"error": "No PDF file provided"})
    if pdf.content_type not in PDF_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail={"error": "Only PDF files are allowed"})

    # one byte past the limit is enough for ingest_pdf to reject the upload
    data = pdf.file.read(service.max_upload_bytes + 1)
    if not data:
        raise HTTPException(status_code=400, detail={"error": "No PDF file provided"})

    try:
        record = service.ingest_pdf(data, pdf.filename or "upload.pdf")
    except DocChatError as exc:
        raise to_http_exception(exc) from exc
    return _upload_response(record)


@router.post("/url", response_model=UploadResponse, status_code=201)
def upload_pdf_from_url(
    request: UrlUploadRequest,
    service: IngestionService = Depends(get_ingestion_service),
) -> UploadResponse:
    """Download a PDF and ingest it like an upload."""

    if not request.url.strip():
        raise HTTPException(status_code=400, detail={"error": "URL is required"})
    try:
        record = service.ingest_url(request.url.strip())
    except DocChatError as exc:
        raise to_http_exception(exc) from exc
    return _upload_response(record)


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(
    document_id: str,
    documents: DocumentStore = Depends(get_document_store),
) -> DocumentResponse:
    try:
        record = documents.get(document_id)
    except DocChatError as exc:
        raise to_http_exception(exc) from exc
    return DocumentResponse(
        document_id=record.document_id,
        filename=record.original_name,
        status=record.status.value,
        embedding_status=record.embedding_status.value,
        pages=record.pages,
        file_size=record.file_size,
        upload_date=record.upload_date,
        metadata=DocumentMetadataModel(
            title=record.metadata.title,
            authors=list(record.metadata.authors),
            keywords=list(record.metadata.keywords),
        ),
        chunk_count=record.chunk_count,
        last_embedded_at=record.last_embedded_at,
        source_url=record.source_url,
    )
