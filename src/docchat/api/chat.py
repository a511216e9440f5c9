"""API router for asking questions and managing chat sessions."""
from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from docchat.errors import DocChatError
from docchat.models import ConversationTurn, SourcePreview
from docchat.services import ChatService, get_chat_service

from . import to_http_exception

router = APIRouter(prefix="/api/chat", tags=["chat"])


class ChatRequest(BaseModel):
    """Request body accepted by the chat endpoint."""

    document_id: str = Field("", description="Document to ask about.")
    question: str = Field("", description="User question about the document.")
    session_id: Optional[str] = Field(None, description="Continue an existing chat session.")


class SourceModel(BaseModel):
    page: Optional[int]
    text: str
    confidence: float


class ChatResponse(BaseModel):
    success: bool = True
    session_id: str
    answer: str
    sources: list[SourceModel]
    document_id: str
    retrieval_path: str
    timestamp: dt.datetime


class MessageModel(BaseModel):
    role: str
    content: str
    timestamp: dt.datetime
    sources: list[SourceModel] = []


class SessionResponse(BaseModel):
    session_id: str
    document_id: str
    messages: list[MessageModel]
    created_at: dt.datetime
    updated_at: dt.datetime


class SessionSummaryModel(BaseModel):
    session_id: str
    created_at: dt.datetime
    updated_at: dt.datetime
    message_count: int


class SessionListResponse(BaseModel):
    document_id: str
    sessions: list[SessionSummaryModel]


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


def _source(preview: SourcePreview) -> SourceModel:
    return SourceModel(page=preview.page, text=preview.text, confidence=preview.confidence)


def _message(turn: ConversationTurn) -> MessageModel:
    return MessageModel(
        role=turn.role.value,
        content=turn.content,
        timestamp=turn.timestamp,
        sources=[_source(preview) for preview in turn.sources],
    )


@router.post("", response_model=ChatResponse)
def ask_question(
    request: ChatRequest,
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    """Answer a question using the document's retrieved context."""

    if not request.question.strip() or not request.document_id.strip():
        raise HTTPException(status_code=400, detail={"error": "Document ID and question are required"})

    try:
        result = service.ask(request.document_id, request.question, request.session_id)
    except DocChatError as exc:
        raise to_http_exception(exc) from exc
    return ChatResponse(
        session_id=result.session_id,
        answer=result.answer,
        sources=[_source(preview) for preview in result.sources],
        document_id=result.document_id,
        retrieval_path=result.retrieval_path.value,
        timestamp=result.timestamp,
    )


@router.get("/document/{document_id}", response_model=SessionListResponse)
def list_document_sessions(
    document_id: str,
    service: ChatService = Depends(get_chat_service),
) -> SessionListResponse:
    return SessionListResponse(
        document_id=document_id,
        sessions=[
            SessionSummaryModel(
                session_id=summary.session_id,
                created_at=summary.created_at,
                updated_at=summary.updated_at,
                message_count=summary.message_count,
            )
            for summary in service.list_sessions(document_id)
        ],
    )


@router.get("/{session_id}", response_model=SessionResponse)
def get_chat_session(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
) -> SessionResponse:
    try:
        session = service.get_session(session_id)
    except DocChatError as exc:
        raise to_http_exception(exc) from exc
    return SessionResponse(
        session_id=session.session_id,
        document_id=session.document_id,
        messages=[_message(turn) for turn in session.messages],
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


@router.delete("/{session_id}", response_model=DeleteResponse)
def delete_chat_session(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
) -> DeleteResponse:
    try:
        service.delete_session(session_id)
    except DocChatError as exc:
        raise to_http_exception(exc) from exc
    return DeleteResponse(message="Chat session deleted successfully")
