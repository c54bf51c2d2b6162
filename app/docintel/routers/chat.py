"""
Router for chat endpoints.

Handles:
- Chat history for a document
- Sending a question and receiving the assistant's answer
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_user, load_owned_document
from ..models import ChatMessageResponse, ChatRequest, Citation
from ..models_db import ChatMessage, User
from ..services.ai import AIService, get_ai_service
from ..services.chat_service import answer_question, get_chat_messages

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


def _to_response(message: ChatMessage) -> ChatMessageResponse:
    return ChatMessageResponse(
        id=str(message.id),
        document_id=str(message.document_id),
        user_id=message.user_id,
        role=message.role,
        content=message.content,
        citations=[Citation.model_validate(c) for c in message.citations or []],
        created_at=message.created_at.isoformat(),
    )


@router.get("/{document_id}", response_model=list[ChatMessageResponse])
async def get_chat_history(
    document_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[ChatMessageResponse]:
    """Get all chat messages of a document, oldest first."""
    document = load_owned_document(db, document_id, user)
    return [_to_response(m) for m in get_chat_messages(db, document.id)]


@router.post("", response_model=ChatMessageResponse)
async def send_chat_message(
    request: ChatRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    ai_service: AIService = Depends(get_ai_service),
) -> ChatMessageResponse:
    """
    Ask a question about a document.

    The answer comes from the LLM when configured; otherwise (or when the
    LLM call fails) it quotes matching passages of the document.
    """
    content = (request.content or "").strip()
    if not request.document_id or not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing documentId or content",
        )

    document = load_owned_document(db, request.document_id, user)
    message = await answer_question(db, document, user.id, content, ai_service)

    logger.info(
        "Answered chat message for document %s (%d citations)",
        document.id,
        len(message.citations or []),
    )
    return _to_response(message)
