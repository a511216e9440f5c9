"""In-memory document and chat session stores."""
from __future__ import annotations

import datetime as dt
import threading
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from docchat.errors import DocumentNotFoundError, SessionNotFoundError
from docchat.models import ConversationTurn, utcnow


class DocumentStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class EmbeddingStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class DocumentMetadata:
    title: str = ""
    authors: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)


@dataclass(slots=True)
class DocumentRecord:
    """Everything known about one ingested document."""

    document_id: str
    filename: str
    original_name: str
    file_path: Optional[str]
    file_size: int
    content: str
    pages: int
    status: DocumentStatus = DocumentStatus.PROCESSING
    embedding_status: EmbeddingStatus = EmbeddingStatus.PENDING
    chunk_count: int = 0
    last_embedded_at: Optional[dt.datetime] = None
    upload_date: dt.datetime = field(default_factory=utcnow)
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    source_url: Optional[str] = None


@dataclass(slots=True)
class ChatSession:
    session_id: str
    document_id: str
    messages: List[ConversationTurn] = field(default_factory=list)
    created_at: dt.datetime = field(default_factory=utcnow)
    updated_at: dt.datetime = field(default_factory=utcnow)


class DocumentStore:
    """Thread-safe mapping of document ids to records."""

    def __init__(self) -> None:
        self._records: Dict[str, DocumentRecord] = {}
        self._lock = threading.Lock()

    def add(self, record: DocumentRecord) -> DocumentRecord:
        with self._lock:
            self._records[record.document_id] = record
        return record

    def get(self, document_id: str) -> DocumentRecord:
        with self._lock:
            record = self._records.get(document_id)
        if record is None:
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        return record

    def update(self, document_id: str, **changes: Any) -> DocumentRecord:
        with self._lock:
            current = self._records.get(document_id)
            if current is None:
                raise DocumentNotFoundError(f"Document not found: {document_id}")
            updated = replace(current, **changes)
            self._records[document_id] = updated
        return updated

    def list(self) -> List[DocumentRecord]:
        with self._lock:
            return sorted(self._records.values(), key=lambda record: record.upload_date, reverse=True)


class ChatStore:
    """Thread-safe mapping of session ids to chat sessions."""

    def __init__(self) -> None:
        self._sessions: Dict[str, ChatSession] = {}
        self._lock = threading.Lock()

    def create(self, document_id: str) -> ChatSession:
        session = ChatSession(session_id=str(uuid.uuid4()), document_id=document_id)
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> ChatSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Chat session not found: {session_id}")
        return session

    def append(self, session_id: str, *turns: ConversationTurn) -> ChatSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(f"Chat session not found: {session_id}")
            session.messages.extend(turns)
            session.updated_at = utcnow()
        return session

    def list_for_document(self, document_id: str) -> List[ChatSession]:
        with self._lock:
            sessions = [s for s in self._sessions.values() if s.document_id == document_id]
        return sorted(sessions, key=lambda session: session.updated_at, reverse=True)

    def delete(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFoundError(f"Chat session not found: {session_id}")


__all__ = [
    "ChatSession",
    "ChatStore",
    "DocumentMetadata",
    "DocumentRecord",
    "DocumentStatus",
    "DocumentStore",
    "EmbeddingStatus",
]
