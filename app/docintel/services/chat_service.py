"""
Chat about a document.

Answers come from the LLM when it is configured and reachable. Otherwise the
reply is built from a naive citation search: sentences of the extracted text
that contain any significant word of the question.
"""

import logging
import re

from sqlalchemy.orm import Session

from ..models import Citation
from ..models_db import ChatMessage, Document
from .ai import AIService, AIServiceError
from .document_store import get_pages

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10
MAX_CITATIONS = 3
MIN_TERM_LENGTH = 4
APOLOGY = "I'm sorry, I couldn't find an answer to that in this document."

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+|\n+")
TERM_PATTERN = re.compile(r"[a-z0-9]+")


def question_terms(question: str) -> list[str]:
    """Lowercase words of four or more characters, English stop words removed."""
    from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS

    terms: list[str] = []
    for term in TERM_PATTERN.findall(question.lower()):
        if len(term) >= MIN_TERM_LENGTH and term not in ENGLISH_STOP_WORDS and term not in terms:
            terms.append(term)
    return terms


def find_citations(
    pages: list[tuple[int, str]],
    question: str,
    limit: int = MAX_CITATIONS,
) -> list[Citation]:
    """
    Find sentences mentioning the question's terms.

    Args:
        pages: (page number, page text) pairs in page order.
        question: The user's question.
        limit: Maximum number of citations.
    """
    terms = question_terms(question)
    if not terms:
        return []

    citations: list[Citation] = []
    seen: set[str] = set()
    for page_number, text in pages:
        for sentence in SENTENCE_BOUNDARY.split(text or ""):
            sentence = " ".join(sentence.split())
            if not sentence or sentence.lower() in seen:
                continue
            lowered = sentence.lower()
            if any(term in lowered for term in terms):
                seen.add(lowered)
                citations.append(Citation(page_number=page_number, text=sentence))
                if len(citations) >= limit:
                    return citations
    return citations


def build_fallback_reply(
    pages: list[tuple[int, str]],
    question: str,
) -> tuple[str, list[Citation]]:
    """Reply quoting matching passages, or the apology when nothing matches."""
    citations = find_citations(pages, question)
    if not citations:
        return APOLOGY, []

    quotes = "\n".join(f'- "{c.text}" (page {c.page_number})' for c in citations)
    return f"Here is what the document says about that:\n{quotes}", citations


def get_chat_messages(db: Session, document_id) -> list[ChatMessage]:
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.document_id == document_id)
        .order_by(ChatMessage.created_at)
        .all()
    )


async def answer_question(
    db: Session,
    document: Document,
    user_id: str,
    question: str,
    ai_service: AIService,
) -> ChatMessage:
    """
    Store the user's message, produce an answer and store it.

    Returns:
        The stored assistant message.
    """
    history = get_chat_messages(db, document.id)[-HISTORY_LIMIT:]

    db.add(
        ChatMessage(
            document_id=document.id,
            user_id=user_id,
            role="user",
            content=question,
        )
    )
    db.commit()

    pages = [(p.page_number, p.extracted_text or "") for p in get_pages(db, document.id)]
    document_text = "\n\n".join(text for _, text in pages if text.strip())

    answer: str | None = None
    citations: list[Citation] = []
    if ai_service.enabled:
        try:
            answer = await ai_service.generate_chat_response(
                document_text,
                question,
                [{"role": m.role, "content": m.content} for m in history],
            )
        except AIServiceError as e:
            logger.error("AI chat failed for document %s: %s", document.id, e)

    if answer is None:
        answer, citations = build_fallback_reply(pages, question)

    message = ChatMessage(
        document_id=document.id,
        user_id=user_id,
        role="assistant",
        content=answer,
        citations=[c.model_dump(by_alias=True) for c in citations],
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message
