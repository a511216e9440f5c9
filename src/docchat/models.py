"""Data models passed between the chunker, index, retriever and assembler."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass(slots=True)
class Chunk:
    """A window of document text produced by the chunker."""

    chunk_index: int
    text: str
    page: Optional[int] = None


@dataclass(slots=True)
class VectorPoint:
    """One stored vector together with its payload."""

    id: str
    vector: List[float]
    payload: Dict[str, Any]


@dataclass(slots=True)
class SearchResult:
    """Nearest-neighbour hit returned by the vector index."""

    id: str
    score: float
    payload: Dict[str, Any]


@dataclass(slots=True)
class UpsertResult:
    upserted: int


@dataclass(slots=True)
class ContextItem:
    """Retrieved passage considered for the generation context."""

    text: Any
    page: Optional[int]
    score: Optional[float]


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(slots=True)
class SourcePreview:
    """Short excerpt of a retrieved passage shown back to the caller."""

    page: Optional[int]
    text: str
    confidence: float


@dataclass(slots=True)
class ConversationTurn:
    """A single chat message owned by the chat session store."""

    role: Role
    content: str
    timestamp: dt.datetime = field(default_factory=utcnow)
    sources: List[SourcePreview] = field(default_factory=list)


@dataclass(slots=True)
class HistoryMessage:
    """Role/content pair forwarded to the generation backend."""

    role: str
    content: str

    def as_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(slots=True)
class AssembledContext:
    """Size bounded package handed to the generation backend."""

    context_texts: List[str]
    history_messages: List[HistoryMessage]


class RetrievalPath(str, Enum):
    VECTOR = "vector"
    FALLBACK = "fallback"


__all__ = [
    "AssembledContext",
    "Chunk",
    "ContextItem",
    "ConversationTurn",
    "HistoryMessage",
    "RetrievalPath",
    "Role",
    "SearchResult",
    "SourcePreview",
    "UpsertResult",
    "VectorPoint",
    "utcnow",
]
