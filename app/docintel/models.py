"""
Pydantic models for the document intelligence API.

Defines the NLP result types stored inside extractions and the request and
response bodies of every endpoint. Responses are serialized with camelCase
field names.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads snake_case and writes camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# NLP Result Models
# =============================================================================


class ExtractedEntity(CamelModel):
    """A named entity found in document text."""

    type: str = Field(
        ...,
        description="Entity type",
        examples=["person", "organization", "location", "date", "money", "email", "phone"],
    )
    text: str = Field(..., min_length=1, description="Entity text as it appears")
    confidence: float = Field(..., ge=0.0, le=1.0)


class ExtractedTable(CamelModel):
    """A table-like block detected in plain text."""

    headers: list[str] = Field(..., min_length=1)
    rows: list[list[str]] = Field(default_factory=list)
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)


class TextStatistics(CamelModel):
    """Basic counts over extracted text."""

    word_count: int = Field(default=0, ge=0)
    character_count: int = Field(default=0, ge=0)
    sentence_count: int = Field(default=0, ge=0)
    paragraph_count: int = Field(default=0, ge=0)
    avg_words_per_sentence: float = Field(default=0.0, ge=0.0)
    reading_time: int = Field(default=0, ge=0, description="Estimated minutes at 200 wpm")


class DocumentInsights(CamelModel):
    """Structured view of a document produced by the LLM."""

    document_type: str = Field(default="Unknown")
    summary: str = Field(default="")
    fields: dict[str, Any] = Field(default_factory=dict)
    insights: list[str] = Field(default_factory=list)

    @field_validator("insights", mode="before")
    @classmethod
    def coerce_insights(cls, v: Any) -> list[str]:
        """Accept a single string where a list was expected."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(item) for item in v]


class DocumentAnalysis(CamelModel):
    """All extractions of a document folded into one view."""

    summary: str = ""
    keywords: list[str] = Field(default_factory=list)
    entities: list[ExtractedEntity] = Field(default_factory=list)
    tables: list[ExtractedTable] = Field(default_factory=list)
    statistics: TextStatistics = Field(default_factory=TextStatistics)
    insights: DocumentInsights | None = None


# =============================================================================
# Users
# =============================================================================


class UserResponse(CamelModel):
    """Current user record."""

    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    role: str = "user"
    created_at: str


# =============================================================================
# Documents
# =============================================================================


class DocumentResponse(CamelModel):
    """A document and its processing state."""

    id: str = Field(..., description="Document ID (UUID)")
    user_id: str
    filename: str = Field(..., description="Stored filename")
    original_name: str = Field(..., description="Filename as uploaded")
    mime_type: str
    file_size: int = Field(..., ge=0, description="Size in bytes")
    status: str = Field(..., description="pending, processing, completed or error")
    progress: int = Field(..., ge=-1, le=100, description="Progress percentage, -1 on error")
    status_message: str | None = None
    error_message: str | None = None
    page_count: int | None = None
    upload_date: str
    processed_at: str | None = None

    @classmethod
    def from_db(cls, document: Any) -> "DocumentResponse":
        """Build the response from a `Document` ORM row."""
        return cls(
            id=str(document.id),
            user_id=document.user_id,
            filename=document.filename,
            original_name=document.original_name,
            mime_type=document.mime_type,
            file_size=document.file_size,
            status=document.status.value,
            progress=document.progress,
            status_message=document.status_message,
            error_message=document.error_message,
            page_count=document.page_count,
            upload_date=document.upload_date.isoformat(),
            processed_at=document.processed_at.isoformat() if document.processed_at else None,
        )


class ExtractionResponse(CamelModel):
    """A stored extraction record."""

    id: str
    document_id: str
    extraction_type: str
    data: dict[str, Any]
    processed_at: str
    updated_at: str | None = None


class DocumentDetailResponse(DocumentResponse):
    """A document with its extractions and full extracted text."""

    extractions: list[ExtractionResponse] = Field(default_factory=list)
    extracted_text: str = ""
    analysis: DocumentAnalysis = Field(default_factory=DocumentAnalysis)


class PageResponse(CamelModel):
    """Text of a single page."""

    id: str
    page_number: int = Field(..., ge=1)
    extracted_text: str = ""
    ocr_confidence: float | None = None


class MessageResponse(BaseModel):
    """Plain status message."""

    message: str


# =============================================================================
# Chat
# =============================================================================


class Citation(CamelModel):
    """A passage of the document supporting an answer."""

    page_number: int = Field(..., ge=1)
    text: str


class ChatRequest(CamelModel):
    """Request body for sending a chat message."""

    document_id: str | None = None
    content: str | None = None


class ChatMessageResponse(CamelModel):
    """A stored chat message."""

    id: str
    document_id: str
    user_id: str
    role: str
    content: str
    citations: list[Citation] = Field(default_factory=list)
    created_at: str


# =============================================================================
# Dashboard & Reports
# =============================================================================


class DashboardStats(CamelModel):
    """Counts shown on the dashboard."""

    total_documents: int = 0
    processing_count: int = 0
    completed_count: int = 0
    error_count: int = 0
    recent_documents: list[DocumentResponse] = Field(default_factory=list)


class DateCount(CamelModel):
    date: str
    count: int


class NameValue(CamelModel):
    name: str
    value: int


class KeywordCount(CamelModel):
    keyword: str
    count: int


class StatusCount(CamelModel):
    status: str
    count: int


class ReportsData(CamelModel):
    """Aggregates across all of a user's documents."""

    total_documents: int = 0
    total_pages: int = 0
    total_words: int = 0
    documents_over_time: list[DateCount] = Field(default_factory=list)
    entity_distribution: list[NameValue] = Field(default_factory=list)
    top_keywords: list[KeywordCount] = Field(default_factory=list)
    status_distribution: list[StatusCount] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(default="1.0.0")
    message: str | None = None
    ai_enabled: bool = False
