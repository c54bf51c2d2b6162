"""
Document processing pipeline.

Each uploaded document moves through:

    pending -> processing -> completed | error

with `Document.progress` written at fixed checkpoints:

    upload accepted (10) -> PDF parsed (25) -> page text saved (40)
    -> NLP done (60) -> analysis saved (80) -> AI enhancement scheduled (90)
    -> completed (100)

Any exception moves the document to `error` with progress -1. Rows already
committed (pages, extractions) are kept. Each run starts by removing the
pages and extractions of any earlier run, and a document already in
`processing` is left to the run that claimed it.

AI enhancement is fire-and-forget: it starts after the document is
completed, updates the summary and keywords extractions in place and never
changes the document status. It writes nothing if the document was deleted
while the model was answering.

On startup, documents left in `processing` past a timeout are reprocessed
from their stored file, or marked `error` if the file is gone.
"""

import asyncio
import enum
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..models_db import Document, DocumentStatus, ExtractionType, Page, utcnow
from .ai import AIService, AIServiceError, get_ai_service
from .document_store import (
    clear_processing_results,
    get_document,
    get_extracted_text,
    get_extraction,
    save_extraction,
)
from .file_storage import FileStorage, get_file_storage
from .nlp_service import (
    MAX_KEYWORDS,
    extract_entities,
    extract_keywords,
    extract_tables,
    get_text_statistics,
    summarize_text,
)
from .pdf_service import PDFParseError, PDFService, get_pdf_service

logger = logging.getLogger(__name__)

OCR_CONFIDENCE = 0.8
MISSING_SOURCE_MESSAGE = "Source file missing; cannot recover processing"


class Checkpoint(enum.IntEnum):
    """Progress values written at each pipeline stage."""

    FAILED = -1
    UPLOADED = 10
    PARSED = 25
    TEXT_SAVED = 40
    NLP_DONE = 60
    ANALYSIS_SAVED = 80
    ENHANCEMENT_SCHEDULED = 90
    COMPLETED = 100


class SourceFileMissingError(Exception):
    """Raised when a document's stored PDF no longer exists on disk."""

    pass


# Running enhancement tasks; the event loop only keeps weak references
_enhancement_tasks: set[asyncio.Task] = set()


def _set_checkpoint(
    db: Session,
    document: Document,
    checkpoint: Checkpoint,
    message: str | None = None,
) -> None:
    document.progress = int(checkpoint)
    document.status_message = message
    db.commit()
    logger.info(
        "Document %s: %s (%d%%)",
        document.id,
        message or checkpoint.name.lower(),
        checkpoint,
    )


def mark_error(db: Session, document_id: uuid.UUID, message: str) -> None:
    """Move a document to the error state."""
    document = get_document(db, document_id)
    if document is None:
        return
    document.status = DocumentStatus.ERROR
    document.progress = int(Checkpoint.FAILED)
    document.status_message = "Processing failed"
    document.error_message = message
    db.commit()
    logger.warning("Document %s marked as error: %s", document_id, message)


def reset_for_processing(db: Session, document: Document) -> None:
    """Clear earlier results and put the document back at the upload checkpoint."""
    clear_processing_results(db, document.id)
    document.status = DocumentStatus.PENDING
    document.progress = int(Checkpoint.UPLOADED)
    document.status_message = "Queued for processing"
    document.error_message = None
    document.page_count = None
    document.processing_started_at = None
    document.processed_at = None
    db.commit()


def prepare_reprocess(
    db: Session,
    document: Document,
    file_storage: FileStorage | None = None,
) -> None:
    """
    Reset a document so the pipeline can run again from scratch.

    Raises:
        SourceFileMissingError: If the stored PDF is gone. The document is
            marked as error first.
    """
    storage = file_storage or get_file_storage()
    if not storage.exists(document.filename):
        mark_error(db, document.id, MISSING_SOURCE_MESSAGE)
        raise SourceFileMissingError(MISSING_SOURCE_MESSAGE)
    reset_for_processing(db, document)


def _run_nlp(text: str) -> dict:
    """Run every NLP extractor, each under its own guard."""
    results: dict = {}

    # Entity types are already guarded individually inside extract_entities
    results["entities"] = extract_entities(text)

    try:
        results["keywords"] = extract_keywords(text)
    except Exception as e:
        logger.warning("Keyword extraction failed: %s", e)
        results["keywords"] = []

    try:
        results["tables"] = extract_tables(text)
    except Exception as e:
        logger.warning("Table extraction failed: %s", e)
        results["tables"] = []

    try:
        results["statistics"] = get_text_statistics(text)
    except Exception as e:
        logger.warning("Text statistics failed: %s", e)
        results["statistics"] = get_text_statistics("")

    results["summary"] = summarize_text(text)
    return results


async def _ocr_empty_pages(
    content: bytes,
    page_texts: list[str],
    pdf_service: PDFService,
    ai_service: AIService,
) -> dict[int, str]:
    """Transcribe pages without embedded text. Returns {page index: text}."""
    recovered: dict[int, str] = {}
    if not ai_service.enabled:
        return recovered

    for index, text in enumerate(page_texts):
        if text:
            continue
        try:
            image = await asyncio.to_thread(pdf_service.render_page, content, index + 1)
            transcription = await ai_service.transcribe_page(image)
        except (PDFParseError, AIServiceError) as e:
            logger.warning("OCR failed for page %d: %s", index + 1, e)
            continue
        if transcription:
            recovered[index] = transcription
    return recovered


async def _run_pipeline(
    db: Session,
    document: Document,
    pdf_service: PDFService,
    ai_service: AIService,
    file_storage: FileStorage,
) -> str:
    """Run every stage up to (not including) completion. Returns the full text."""
    clear_processing_results(db, document.id)
    if not file_storage.exists(document.filename):
        raise SourceFileMissingError(MISSING_SOURCE_MESSAGE)
    content = await asyncio.to_thread(file_storage.read, document.filename)

    page_texts = await asyncio.to_thread(pdf_service.extract_pages, content)
    document.page_count = len(page_texts)
    _set_checkpoint(db, document, Checkpoint.PARSED, "PDF parsed")

    recovered = await _ocr_empty_pages(content, page_texts, pdf_service, ai_service)
    for index, text in enumerate(page_texts):
        from_ocr = index in recovered
        db.add(
            Page(
                document_id=document.id,
                page_number=index + 1,
                extracted_text=recovered[index] if from_ocr else text,
                ocr_confidence=OCR_CONFIDENCE if from_ocr else 1.0,
            )
        )
    db.commit()
    _set_checkpoint(db, document, Checkpoint.TEXT_SAVED, "Text extracted")

    full_text = get_extracted_text(db, document.id)
    nlp = await asyncio.to_thread(_run_nlp, full_text)
    _set_checkpoint(db, document, Checkpoint.NLP_DONE, "Analysis complete")

    save_extraction(
        db,
        document.id,
        ExtractionType.ENTITIES,
        {"entities": [e.model_dump(by_alias=True) for e in nlp["entities"]]},
    )
    save_extraction(db, document.id, ExtractionType.KEYWORDS, {"keywords": nlp["keywords"]})
    save_extraction(
        db,
        document.id,
        ExtractionType.TABLES,
        {"tables": [t.model_dump(by_alias=True) for t in nlp["tables"]]},
    )
    save_extraction(
        db,
        document.id,
        ExtractionType.SUMMARY,
        {"summary": nlp["summary"], "source": "nlp"},
    )
    save_extraction(
        db,
        document.id,
        ExtractionType.STATISTICS,
        nlp["statistics"].model_dump(by_alias=True),
    )
    db.commit()
    _set_checkpoint(db, document, Checkpoint.ANALYSIS_SAVED, "Analysis saved")

    return full_text


async def process_document(
    document_id: uuid.UUID,
    session_factory: Callable[[], Session] | None = None,
    pdf_service: PDFService | None = None,
    ai_service: AIService | None = None,
    file_storage: FileStorage | None = None,
) -> bool:
    """
    Background task running the full pipeline for one document.

    Args:
        document_id: The document to process.
        session_factory: Creates the task's own database session.
        pdf_service: PDF service override.
        ai_service: AI service override.
        file_storage: File storage override.

    Returns:
        True if the document reached `completed`.
    """
    session_factory = session_factory or SessionLocal
    pdf_service = pdf_service or get_pdf_service()
    ai_service = ai_service or get_ai_service()
    file_storage = file_storage or get_file_storage()

    db = session_factory()
    try:
        document = get_document(db, document_id)
        if document is None:
            logger.warning("Document %s not found; nothing to process", document_id)
            return False
        if document.status == DocumentStatus.PROCESSING:
            # Claimed by another run; no await between this check and the claim below
            logger.warning("Document %s is already being processed", document_id)
            return False

        try:
            document.status = DocumentStatus.PROCESSING
            document.processing_started_at = utcnow()
            document.error_message = None
            _set_checkpoint(db, document, Checkpoint.UPLOADED, "Processing started")

            full_text = await _run_pipeline(db, document, pdf_service, ai_service, file_storage)

            enhance = ai_service.enabled and bool(full_text.strip())
            _set_checkpoint(
                db,
                document,
                Checkpoint.ENHANCEMENT_SCHEDULED,
                "AI enhancement scheduled" if enhance else "Finalizing",
            )

            document.status = DocumentStatus.COMPLETED
            document.processed_at = utcnow()
            _set_checkpoint(db, document, Checkpoint.COMPLETED, None)
        except Exception as e:
            logger.exception("Error processing document %s", document_id)
            db.rollback()
            try:
                mark_error(db, document_id, str(e) or e.__class__.__name__)
            except Exception:
                logger.exception("Could not record error state for document %s", document_id)
            return False

        if enhance:
            schedule_enhancement(document_id, session_factory, ai_service)
        return True
    finally:
        db.close()


# =============================================================================
# AI Enhancement (fire-and-forget)
# =============================================================================


def merge_keywords(ai_keywords: list[str], nlp_keywords: list[str]) -> list[str]:
    """AI keywords first, then NLP keywords, de-duplicated case-insensitively."""
    merged: list[str] = []
    seen: set[str] = set()
    for keyword in [*ai_keywords, *nlp_keywords]:
        key = keyword.strip().lower()
        if key and key not in seen:
            seen.add(key)
            merged.append(keyword.strip())
    return merged[:MAX_KEYWORDS]


async def enhance_document(
    document_id: uuid.UUID,
    session_factory: Callable[[], Session] | None = None,
    ai_service: AIService | None = None,
) -> None:
    """
    Improve a completed document's summary and keywords with the LLM.

    Updates the existing extraction records in place and adds an insights
    extraction when the model returns one. Errors are logged and dropped.
    """
    session_factory = session_factory or SessionLocal
    ai_service = ai_service or get_ai_service()

    db = session_factory()
    try:
        text = get_extracted_text(db, document_id)
        if not text.strip():
            return

        summary, ai_keywords = await asyncio.gather(
            ai_service.generate_summary(text),
            ai_service.extract_keywords(text),
            return_exceptions=True,
        )
        if get_document(db, document_id) is None:
            logger.info("Document %s deleted during AI enhancement", document_id)
            return

        if isinstance(summary, BaseException):
            logger.warning("AI summary failed for document %s: %s", document_id, summary)
        elif summary:
            save_extraction(
                db,
                document_id,
                ExtractionType.SUMMARY,
                {"summary": summary, "source": "ai"},
            )

        if isinstance(ai_keywords, BaseException):
            logger.warning("AI keywords failed for document %s: %s", document_id, ai_keywords)
        elif ai_keywords:
            existing = get_extraction(db, document_id, ExtractionType.KEYWORDS)
            nlp_keywords = (existing.data or {}).get("keywords", []) if existing else []
            save_extraction(
                db,
                document_id,
                ExtractionType.KEYWORDS,
                {"keywords": merge_keywords(ai_keywords, nlp_keywords)},
            )
        db.commit()

        try:
            insights = await ai_service.analyze_structured_data(text)
        except AIServiceError as e:
            logger.warning("AI insights failed for document %s: %s", document_id, e)
            insights = None
        if insights is not None and get_document(db, document_id) is not None:
            save_extraction(
                db,
                document_id,
                ExtractionType.INSIGHTS,
                insights.model_dump(by_alias=True),
            )
            db.commit()

        logger.info("AI enhancement finished for document %s", document_id)
    except Exception:
        logger.exception("AI enhancement failed for document %s", document_id)
        db.rollback()
    finally:
        db.close()


def schedule_enhancement(
    document_id: uuid.UUID,
    session_factory: Callable[[], Session] | None = None,
    ai_service: AIService | None = None,
) -> asyncio.Task:
    """Start `enhance_document` without waiting for it."""
    task = asyncio.create_task(enhance_document(document_id, session_factory, ai_service))
    _enhancement_tasks.add(task)
    task.add_done_callback(_enhancement_tasks.discard)
    return task


# =============================================================================
# Crash Recovery
# =============================================================================


def find_orphaned_documents(
    db: Session,
    timeout_minutes: int,
    now: datetime | None = None,
) -> list[Document]:
    """
    Documents whose pipeline has not finished within the timeout.

    Covers `processing` documents by their start time and `pending` ones
    by their upload time.
    """
    cutoff = (now or utcnow()) - timedelta(minutes=timeout_minutes)
    candidates = (
        db.query(Document)
        .filter(Document.status.in_([DocumentStatus.PROCESSING, DocumentStatus.PENDING]))
        .all()
    )
    return [
        doc
        for doc in candidates
        if (doc.processing_started_at or doc.upload_date) < cutoff
    ]


async def recover_orphaned_documents(
    session_factory: Callable[[], Session] | None = None,
    timeout_minutes: int | None = None,
    pdf_service: PDFService | None = None,
    ai_service: AIService | None = None,
    file_storage: FileStorage | None = None,
) -> dict[str, list[uuid.UUID]]:
    """
    Requeue or fail documents interrupted by a restart.

    Returns:
        {"requeued": [...], "failed": [...]} document ids.
    """
    from ..config import get_settings

    session_factory = session_factory or SessionLocal
    file_storage = file_storage or get_file_storage()
    if timeout_minutes is None:
        timeout_minutes = get_settings().stuck_document_timeout_minutes

    requeued: list[uuid.UUID] = []
    failed: list[uuid.UUID] = []

    db = session_factory()
    try:
        orphans = find_orphaned_documents(db, timeout_minutes)
        if orphans:
            logger.info("Found %d orphaned document(s)", len(orphans))
        for document in orphans:
            if file_storage.exists(document.filename):
                reset_for_processing(db, document)
                requeued.append(document.id)
            else:
                mark_error(db, document.id, MISSING_SOURCE_MESSAGE)
                failed.append(document.id)
    finally:
        db.close()

    if requeued:
        await asyncio.gather(
            *(
                process_document(
                    document_id,
                    session_factory=session_factory,
                    pdf_service=pdf_service,
                    ai_service=ai_service,
                    file_storage=file_storage,
                )
                for document_id in requeued
            )
        )

    return {"requeued": requeued, "failed": failed}
