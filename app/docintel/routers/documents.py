"""
Router for document endpoints.

Handles:
- PDF upload (starts background processing)
- Listing, searching and retrieving documents
- Page text and original file retrieval
- Reprocessing and deletion
"""

import logging
from typing import Annotated

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    HTTPException,
    Response,
    UploadFile,
    status,
)
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..dependencies import get_current_user, load_owned_document
from ..models import (
    DocumentDetailResponse,
    DocumentResponse,
    ExtractionResponse,
    MessageResponse,
    PageResponse,
)
from ..models_db import Document, DocumentStatus, User
from ..services.document_store import (
    build_analysis,
    delete_document_cascade,
    get_extracted_text,
    get_extractions,
    get_pages,
)
from ..services.file_storage import get_file_storage
from ..services.pdf_service import get_pdf_service
from ..services.processing import (
    Checkpoint,
    SourceFileMissingError,
    prepare_reprocess,
    process_document,
)
from ..services.reports_service import list_user_documents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])

PDF_MIME_TYPE = "application/pdf"


@router.post("/upload", response_model=DocumentResponse)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: Annotated[UploadFile, File(description="PDF file to process")],
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> DocumentResponse:
    """
    Upload a PDF and start processing it in the background.

    The document is returned immediately in the `pending` state at 10%
    progress. Poll GET /api/documents/{id} to follow it.
    """
    # Validate file type
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded",
        )

    is_pdf_type = file.content_type == PDF_MIME_TYPE
    is_pdf_name = file.filename.lower().endswith(".pdf")
    if not (is_pdf_type or is_pdf_name):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF files are allowed",
        )

    try:
        content = await file.read()
    finally:
        await file.close()

    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Empty file provided",
        )

    settings = get_settings()
    if len(content) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.max_upload_size_mb} MB limit",
        )

    # Raises PDFParseError (422) when the content is not a PDF
    get_pdf_service().validate(content)

    stored_name = get_file_storage().save(content, file.filename)

    document = Document(
        user_id=user.id,
        filename=stored_name,
        original_name=file.filename,
        mime_type=PDF_MIME_TYPE,
        file_size=len(content),
        status=DocumentStatus.PENDING,
        progress=int(Checkpoint.UPLOADED),
        status_message="Queued for processing",
    )
    db.add(document)
    db.commit()
    db.refresh(document)

    logger.info(
        "Accepted upload %s (%d bytes) as document %s",
        file.filename,
        len(content),
        document.id,
    )

    background_tasks.add_task(process_document, document.id)

    return DocumentResponse.from_db(document)


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    q: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[DocumentResponse]:
    """List the user's documents, newest first. `q` filters by file name."""
    documents = list_user_documents(db, user.id, q.strip() if q else None)
    return [DocumentResponse.from_db(d) for d in documents]


@router.get("/{document_id}", response_model=DocumentDetailResponse)
async def get_document_detail(
    document_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> DocumentDetailResponse:
    """Get a document with its extractions, analysis and extracted text."""
    document = load_owned_document(db, document_id, user)
    extractions = get_extractions(db, document.id)

    return DocumentDetailResponse(
        **DocumentResponse.from_db(document).model_dump(),
        extractions=[
            ExtractionResponse(
                id=str(e.id),
                document_id=str(e.document_id),
                extraction_type=e.extraction_type,
                data=e.data or {},
                processed_at=e.processed_at.isoformat(),
                updated_at=e.updated_at.isoformat() if e.updated_at else None,
            )
            for e in extractions
        ],
        extracted_text=get_extracted_text(db, document.id),
        analysis=build_analysis(extractions),
    )


@router.get("/{document_id}/pages", response_model=list[PageResponse])
async def get_document_pages(
    document_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[PageResponse]:
    """Get the extracted text of each page."""
    document = load_owned_document(db, document_id, user)
    return [
        PageResponse(
            id=str(p.id),
            page_number=p.page_number,
            extracted_text=p.extracted_text or "",
            ocr_confidence=p.ocr_confidence,
        )
        for p in get_pages(db, document.id)
    ]


@router.get("/{document_id}/file")
async def get_document_file(
    document_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    """
    Retrieve the original PDF.

    Used for PDF preview in the frontend.
    """
    document = load_owned_document(db, document_id, user)
    storage = get_file_storage()

    if not storage.exists(document.filename):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="PDF content not available for this document",
        )

    return Response(
        content=storage.read(document.filename),
        media_type=PDF_MIME_TYPE,
        headers={
            "Content-Disposition": f'inline; filename="{document.original_name}"',
        },
    )


@router.post("/{document_id}/reprocess", response_model=DocumentResponse)
async def reprocess_document(
    document_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> DocumentResponse:
    """
    Discard earlier results and run the pipeline again from the stored file.
    """
    document = load_owned_document(db, document_id, user)

    if document.status in (DocumentStatus.PENDING, DocumentStatus.PROCESSING):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Document is already queued or being processed",
        )

    try:
        prepare_reprocess(db, document)
    except SourceFileMissingError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    logger.info("Reprocessing document %s", document.id)
    background_tasks.add_task(process_document, document.id)

    db.refresh(document)
    return DocumentResponse.from_db(document)


@router.delete("/{document_id}", response_model=MessageResponse)
async def delete_document(
    document_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MessageResponse:
    """Delete a document, its stored file, pages, extractions and chat messages."""
    document = load_owned_document(db, document_id, user)

    get_file_storage().delete(document.filename)
    delete_document_cascade(db, document.id)

    return MessageResponse(message="Document deleted")
