"""Exception taxonomy shared by the retrieval pipeline and its collaborators."""
from __future__ import annotations


class DocChatError(RuntimeError):
    """Base class for every error raised by :mod:`docchat`."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class ChunkingError(DocChatError):
    """Raised for invalid chunking configuration or tokenizer failures."""


class EmbeddingFailure(DocChatError):
    """Raised when no embedding endpoint produced a usable vector."""


class VectorBackendError(DocChatError):
    """Raised when the vector backend cannot create, write or query a collection."""


class RetrievalDegraded(DocChatError):
    """Records that vector search failed and the lexical fallback served the query.

    The retrieval strategy never raises this; it is attached to the outcome so
    callers and logs can observe the degradation.
    """

    def __init__(
        self,
        message: str,
        *,
        document_id: str,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.document_id = document_id


class ContextOverflow(DocChatError):
    """Raised if an assembled context exceeds its configured budget."""


class GenerationError(DocChatError):
    """Raised when the completion backend fails to produce an answer."""


class ExtractionError(DocChatError):
    """Raised when text cannot be extracted from an uploaded document."""


class DocumentNotFoundError(DocChatError):
    """Raised when a document id is unknown to the metadata store."""


class DocumentNotReadyError(DocChatError):
    """Raised when a question targets a document that is still being processed."""


class SessionNotFoundError(DocChatError):
    """Raised when a chat session id is unknown to the metadata store."""


__all__ = [
    "ChunkingError",
    "ContextOverflow",
    "DocChatError",
    "DocumentNotFoundError",
    "DocumentNotReadyError",
    "EmbeddingFailure",
    "ExtractionError",
    "GenerationError",
    "RetrievalDegraded",
    "SessionNotFoundError",
    "VectorBackendError",
]
