"""Service layer and the shared instances handed to FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from docchat.config import get_settings
from docchat.context import ContextBudget
from docchat.llm import get_llm_adapter
from docchat.retriever import Retriever
from docchat.stores import ChatStore, DocumentStore
from docchat.vectorstore import get_vector_index

from .chat import ChatAnswer, ChatService, SessionSummary
from .ingestion import IngestionService


@lru_cache()
def get_document_store() -> DocumentStore:
    return DocumentStore()


@lru_cache()
def get_chat_store() -> ChatStore:
    return ChatStore()


@lru_cache()
def get_ingestion_service() -> IngestionService:
    """FastAPI dependency returning the shared :class:`IngestionService`."""

    return IngestionService.from_settings(get_settings(), get_document_store(), get_vector_index())


@lru_cache()
def get_chat_service() -> ChatService:
    """FastAPI dependency returning the shared :class:`ChatService`."""

    settings = get_settings()
    return ChatService(
        get_document_store(),
        get_chat_store(),
        Retriever(get_vector_index(), max_chunks=settings.max_context_chunks),
        get_llm_adapter(),
        budget=ContextBudget.from_settings(settings),
    )


def reset_service_caches() -> None:
    """Drop every shared service instance (primarily for testing)."""

    for factory in (get_chat_service, get_ingestion_service, get_chat_store, get_document_store):
        factory.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "ChatAnswer",
    "ChatService",
    "IngestionService",
    "SessionSummary",
    "get_chat_service",
    "get_chat_store",
    "get_document_store",
    "get_ingestion_service",
    "reset_service_caches",
]
