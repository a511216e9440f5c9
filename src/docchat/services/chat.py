from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import List, Optional

from docchat.context import ContextBudget, assemble, preview_sources
from docchat.errors import DocChatError, DocumentNotReadyError, SessionNotFoundError
from docchat.llm import LLMAdapter
from docchat.logging_config import AUDIT_LOGGER_NAME
from docchat.models import ConversationTurn, RetrievalPath, Role, SourcePreview
from docchat.prompt_builder import build_messages
from docchat.retriever import Retriever
from docchat.stores import ChatSession, ChatStore, DocumentStatus, DocumentStore
from docchat.telemetry import emit_exception

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


@dataclass(slots=True)
class ChatAnswer:
    session_id: str
    answer: str
    sources: List[SourcePreview]
    document_id: str
    retrieval_path: RetrievalPath
    timestamp: dt.datetime


@dataclass(slots=True)
class SessionSummary:
    session_id: str
    created_at: dt.datetime
    updated_at: dt.datetime
    message_count: int


class ChatService:
    """Answer questions about one document while keeping per-session history."""

    def __init__(
        self,
        documents: DocumentStore,
        sessions: ChatStore,
        retriever: Retriever,
        llm: LLMAdapter,
        *,
        budget: ContextBudget | None = None,
    ) -> None:
        self._documents = documents
        self._sessions = sessions
        self._retriever = retriever
        self._llm = llm
        self.budget = budget or ContextBudget()

    def ask(self, document_id: str, question: str, session_id: Optional[str] = None) -> ChatAnswer:
        document = self._documents.get(document_id)
        if document.status is not DocumentStatus.COMPLETED:
            raise DocumentNotReadyError("Document is still being processed")

        session: Optional[ChatSession] = None
        history: List[ConversationTurn] = []
        if session_id:
            session = self._sessions.get(session_id)
            if session.document_id != document_id:
                raise SessionNotFoundError(
                    f"Chat session {session_id} does not belong to document {document_id}"
                )
            history = list(session.messages)

        outcome = self._retriever.retrieve(document_id, question, document.content)

        context = assemble(outcome.items, history, self.budget)
        messages = build_messages(question, context.context_texts, context.history_messages)
        try:
            answer = self._llm.generate(messages)
        except DocChatError as exc:
            emit_exception(
                module=__name__,
                error=exc,
                session_id=session_id,
                document_id=document_id,
                suggestion="Check the AI_PROVIDER backend",
            )
            raise

        sources = preview_sources(outcome.items, self.budget)
        if session is None:
            session = self._sessions.create(document_id)
        assistant_turn = ConversationTurn(role=Role.ASSISTANT, content=answer, sources=sources)
        self._sessions.append(
            session.session_id,
            ConversationTurn(role=Role.USER, content=question),
            assistant_turn,
        )

        AUDIT_LOGGER.info(
            {
                "event": "query",
                "session_id": session.session_id,
                "document_id": document_id,
                "question": question,
                "retrieval_path": outcome.path.value,
                "sources": len(sources),
            }
        )
        return ChatAnswer(
            session_id=session.session_id,
            answer=answer,
            sources=sources,
            document_id=document_id,
            retrieval_path=outcome.path,
            timestamp=assistant_turn.timestamp,
        )

    def get_session(self, session_id: str) -> ChatSession:
        return self._sessions.get(session_id)

    def list_sessions(self, document_id: str) -> List[SessionSummary]:
        return [
            SessionSummary(
                session_id=session.session_id,
                created_at=session.created_at,
                updated_at=session.updated_at,
                message_count=len(session.messages),
            )
            for session in self._sessions.list_for_document(document_id)
        ]

    def delete_session(self, session_id: str) -> None:
        self._sessions.delete(session_id)
        LOGGER.info("Deleted chat session %s", session_id)


__all__ = ["ChatAnswer", "ChatService", "SessionSummary"]
