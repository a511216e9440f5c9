"""Two-stage retrieval: vector search first, lexical sentence scoring second."""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from docchat.context import coerce_text
from docchat.errors import RetrievalDegraded
from docchat.models import ContextItem, RetrievalPath, SearchResult
from docchat.telemetry import emit_retrieval_degraded, emit_retriever_event, summarise_sources

LOGGER = logging.getLogger(__name__)

FALLBACK_SCORE = 0.5
MIN_SENTENCE_CHARS = 10
_SENTENCE_BREAK = re.compile(r"[.!?]+")


class SearchIndex(Protocol):
    def search(self, document_id: str, query_text: str, top_k: int = 6) -> List[SearchResult]:
        ...


def rank_sentences(content: str, query: str) -> List[Tuple[str, int]]:
    """Return ``(sentence, overlap)`` pairs ordered by overlap, ties in text order.

    A query word counts once for a sentence if it is a substring of, or
    contains, any word of that sentence.
    """

    sentences = [
        fragment.strip()
        for fragment in _SENTENCE_BREAK.split(content or "")
        if len(fragment.strip()) > MIN_SENTENCE_CHARS
    ]
    query_words = (query or "").lower().split()

    scored: List[Tuple[str, int]] = []
    for sentence in sentences:
        words = sentence.lower().split()
        overlap = sum(
            1 for query_word in query_words if any(query_word in word or word in query_word for word in words)
        )
        scored.append((sentence, overlap))
    # sorted() is stable with reverse=True as well
    return sorted(scored, key=lambda item: item[1], reverse=True)


def fallback_score(content: str, query: str, max_chunks: int = 3) -> List[ContextItem]:
    """Lexical stand-in for vector search over the raw document text."""

    if max_chunks <= 0:
        return []
    return [
        ContextItem(text=sentence, page=None, score=FALLBACK_SCORE)
        for sentence, _ in rank_sentences(content, query)[:max_chunks]
    ]


@dataclass(slots=True)
class RetrievalOutcome:
    items: List[ContextItem]
    path: RetrievalPath
    degraded: Optional[RetrievalDegraded] = None


def _to_context_item(result: SearchResult) -> ContextItem:
    payload = result.payload or {}
    page = payload.get("page")
    return ContextItem(
        text=coerce_text(payload.get("text", "")),
        page=page if isinstance(page, int) and page else None,
        score=result.score,
    )


class Retriever:
    """Serve context for a question, degrading to lexical scoring on failure.

    Any error raised by the vector index (backend, embedding or otherwise) is
    recorded on the outcome as :class:`RetrievalDegraded` and logged; the
    caller always receives items.
    """

    def __init__(self, index: SearchIndex, *, max_chunks: int = 40) -> None:
        self._index = index
        self.max_chunks = max_chunks

    def retrieve(self, document_id: str, question: str, content: str) -> RetrievalOutcome:
        started = time.perf_counter()
        try:
            results = self._index.search(document_id, question, self.max_chunks)
        except Exception as exc:
            degraded = RetrievalDegraded(
                f"Vector search failed for document {document_id}; using lexical fallback",
                document_id=document_id,
                cause=exc,
            )
            emit_retrieval_degraded(document_id=document_id, query=question, error=exc)
            outcome = RetrievalOutcome(
                items=fallback_score(content, question, self.max_chunks),
                path=RetrievalPath.FALLBACK,
                degraded=degraded,
            )
        else:
            outcome = RetrievalOutcome(
                items=[_to_context_item(result) for result in results],
                path=RetrievalPath.VECTOR,
            )

        emit_retriever_event(
            document_id=document_id,
            query=question,
            top_k=self.max_chunks,
            path=outcome.path.value,
            results=summarise_sources(outcome.items),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return outcome


__all__ = [
    "FALLBACK_SCORE",
    "RetrievalOutcome",
    "Retriever",
    "fallback_score",
    "rank_sentences",
]
