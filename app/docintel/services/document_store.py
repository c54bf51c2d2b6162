"""
Persistence helpers shared by routers and the processing pipeline.

Covers the document cascade delete, page/extraction lookups and folding a
document's extractions into a single analysis view.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from ..models import (
    DocumentAnalysis,
    DocumentInsights,
    ExtractedEntity,
    ExtractedTable,
    TextStatistics,
)
from ..models_db import ChatMessage, Document, Extraction, ExtractionType, Page, utcnow

logger = logging.getLogger(__name__)


def get_document(db: Session, document_id: uuid.UUID) -> Document | None:
    return db.query(Document).filter(Document.id == document_id).first()


def get_pages(db: Session, document_id: uuid.UUID) -> list[Page]:
    return (
        db.query(Page)
        .filter(Page.document_id == document_id)
        .order_by(Page.page_number)
        .all()
    )


def get_extractions(db: Session, document_id: uuid.UUID) -> list[Extraction]:
    return (
        db.query(Extraction)
        .filter(Extraction.document_id == document_id)
        .order_by(Extraction.processed_at)
        .all()
    )


def get_extraction(
    db: Session, document_id: uuid.UUID, extraction_type: ExtractionType
) -> Extraction | None:
    return (
        db.query(Extraction)
        .filter(Extraction.document_id == document_id)
        .filter(Extraction.extraction_type == extraction_type.value)
        .first()
    )


def save_extraction(
    db: Session,
    document_id: uuid.UUID,
    extraction_type: ExtractionType,
    data: dict,
) -> Extraction:
    """Create the extraction of this type, or overwrite its data in place."""
    extraction = get_extraction(db, document_id, extraction_type)
    if extraction is None:
        extraction = Extraction(
            document_id=document_id,
            extraction_type=extraction_type.value,
            data=data,
        )
        db.add(extraction)
    else:
        extraction.data = data
        extraction.updated_at = utcnow()
    return extraction


def get_extracted_text(db: Session, document_id: uuid.UUID) -> str:
    """Join non-empty page texts with blank lines."""
    pages = get_pages(db, document_id)
    return "\n\n".join(
        p.extracted_text for p in pages if p.extracted_text and p.extracted_text.strip()
    )


def clear_processing_results(db: Session, document_id: uuid.UUID) -> None:
    """Remove pages and extractions so a document can be processed again."""
    pages = db.query(Page).filter(Page.document_id == document_id).delete(
        synchronize_session=False
    )
    extractions = db.query(Extraction).filter(Extraction.document_id == document_id).delete(
        synchronize_session=False
    )
    db.commit()
    logger.info(
        "Cleared %d pages and %d extractions for document %s",
        pages,
        extractions,
        document_id,
    )


def delete_document_cascade(db: Session, document_id: uuid.UUID) -> dict[str, int]:
    """
    Delete a document and every row that references it.

    Returns:
        Number of deleted rows per table.
    """
    counts = {
        "pages": db.query(Page)
        .filter(Page.document_id == document_id)
        .delete(synchronize_session=False),
        "extractions": db.query(Extraction)
        .filter(Extraction.document_id == document_id)
        .delete(synchronize_session=False),
        "chat_messages": db.query(ChatMessage)
        .filter(ChatMessage.document_id == document_id)
        .delete(synchronize_session=False),
        "documents": db.query(Document)
        .filter(Document.id == document_id)
        .delete(synchronize_session=False),
    }
    db.commit()
    logger.info("Deleted document %s: %s", document_id, counts)
    return counts


def build_analysis(extractions: list[Extraction]) -> DocumentAnalysis:
    """Fold typed extraction records into one `DocumentAnalysis`."""
    analysis = DocumentAnalysis()
    for extraction in extractions:
        data = extraction.data or {}
        try:
            kind = ExtractionType(extraction.extraction_type)
        except ValueError:
            logger.warning("Unknown extraction type '%s'", extraction.extraction_type)
            continue

        if kind == ExtractionType.SUMMARY:
            analysis.summary = data.get("summary", "")
        elif kind == ExtractionType.KEYWORDS:
            analysis.keywords = list(data.get("keywords", []))
        elif kind == ExtractionType.ENTITIES:
            analysis.entities = [ExtractedEntity.model_validate(e) for e in data.get("entities", [])]
        elif kind == ExtractionType.TABLES:
            analysis.tables = [ExtractedTable.model_validate(t) for t in data.get("tables", [])]
        elif kind == ExtractionType.STATISTICS:
            analysis.statistics = TextStatistics.model_validate(data)
        elif kind == ExtractionType.INSIGHTS:
            analysis.insights = DocumentInsights.model_validate(data)
    return analysis
