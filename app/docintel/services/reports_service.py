"""
Dashboard statistics and report aggregation over a user's documents.
"""

import logging
from collections import Counter

from sqlalchemy.orm import Session

from ..models import (
    DashboardStats,
    DateCount,
    DocumentResponse,
    KeywordCount,
    NameValue,
    ReportsData,
    StatusCount,
)
from ..models_db import Document, DocumentStatus, Extraction, ExtractionType

logger = logging.getLogger(__name__)

RECENT_DOCUMENTS = 5
TOP_ENTITIES = 5
TOP_KEYWORDS = 10
TIMELINE_DAYS = 30


def list_user_documents(db: Session, user_id: str, query: str | None = None) -> list[Document]:
    """A user's documents, newest first, optionally filtered by name."""
    q = db.query(Document).filter(Document.user_id == user_id)
    if query:
        q = q.filter(Document.original_name.ilike(f"%{query}%"))
    return q.order_by(Document.upload_date.desc()).all()


def get_dashboard_stats(db: Session, user_id: str) -> DashboardStats:
    documents = list_user_documents(db, user_id)
    statuses = Counter(d.status for d in documents)

    return DashboardStats(
        total_documents=len(documents),
        processing_count=statuses[DocumentStatus.PENDING] + statuses[DocumentStatus.PROCESSING],
        completed_count=statuses[DocumentStatus.COMPLETED],
        error_count=statuses[DocumentStatus.ERROR],
        recent_documents=[DocumentResponse.from_db(d) for d in documents[:RECENT_DOCUMENTS]],
    )


def get_reports_data(db: Session, user_id: str) -> ReportsData:
    """
    Aggregate page, word, entity and keyword counts.

    Entity and keyword counts are the number of documents mentioning each
    entity text or keyword.
    """
    documents = list_user_documents(db, user_id)
    if not documents:
        return ReportsData()

    extractions = (
        db.query(Extraction)
        .filter(Extraction.document_id.in_([d.id for d in documents]))
        .all()
    )

    total_words = 0
    entity_counts: Counter[str] = Counter()
    keyword_counts: Counter[str] = Counter()

    # Once per document, first-seen order kept for ties
    for extraction in extractions:
        data = extraction.data or {}
        if extraction.extraction_type == ExtractionType.STATISTICS.value:
            total_words += int(data.get("wordCount", 0) or 0)
        elif extraction.extraction_type == ExtractionType.ENTITIES.value:
            texts = [e.get("text") for e in data.get("entities", []) if e.get("text")]
            entity_counts.update(dict.fromkeys(texts).keys())
        elif extraction.extraction_type == ExtractionType.KEYWORDS.value:
            keyword_counts.update(dict.fromkeys(data.get("keywords", [])).keys())

    per_day = Counter(d.upload_date.date().isoformat() for d in documents)
    timeline = sorted(per_day.items())[-TIMELINE_DAYS:]

    statuses = Counter(d.status.value for d in documents)

    return ReportsData(
        total_documents=len(documents),
        total_pages=sum(d.page_count or 0 for d in documents),
        total_words=total_words,
        documents_over_time=[DateCount(date=day, count=n) for day, n in timeline],
        entity_distribution=[
            NameValue(name=name, value=n) for name, n in entity_counts.most_common(TOP_ENTITIES)
        ],
        top_keywords=[
            KeywordCount(keyword=kw, count=n) for kw, n in keyword_counts.most_common(TOP_KEYWORDS)
        ],
        status_distribution=[
            StatusCount(status=status, count=n) for status, n in sorted(statuses.items())
        ],
    )
