"""
SQLAlchemy database models for the Document Intelligence application.

This module defines the ORM models for persisting users, uploaded documents,
their per-page text, NLP/AI extractions and chat conversations.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DocumentStatus(enum.Enum):
    """Status of a document in the processing pipeline."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ExtractionType(str, enum.Enum):
    """Kinds of NLP/AI output attached to a document."""

    ENTITIES = "entities"
    KEYWORDS = "keywords"
    TABLES = "tables"
    SUMMARY = "summary"
    STATISTICS = "statistics"
    INSIGHTS = "insights"


class User(Base):
    """An account that owns documents and chat messages."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    role: Mapped[str] = mapped_column(
        String(50),
        default="user",
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User(id='{self.id}', email='{self.email}')>"


class Document(Base):
    """
    An uploaded PDF and the state of its processing pipeline.

    `progress` moves through fixed checkpoints (10, 25, 40, 60, 80, 90, 100)
    and is -1 once the document is in the error state.
    """

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    filename: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        comment="Name of the stored file inside the upload directory",
    )
    original_name: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
    )
    mime_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="application/pdf",
    )
    file_size: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus),
        default=DocumentStatus.PENDING,
        nullable=False,
        index=True,
    )
    progress: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    status_message: Mapped[str | None] = mapped_column(
        String(512),
        nullable=True,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    page_count: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    upload_date: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True,
    )
    processing_started_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
    doc_metadata: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    # Relationships (read side only; deletes are issued explicitly)
    pages: Mapped[list["Page"]] = relationship(
        "Page",
        back_populates="document",
        order_by="Page.page_number",
        passive_deletes=True,
    )
    extractions: Mapped[list["Extraction"]] = relationship(
        "Extraction",
        back_populates="document",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Document(id={self.id}, original_name='{self.original_name}', "
            f"status={self.status.value}, progress={self.progress})>"
        )


class Page(Base):
    """Text extracted from a single page of a document."""

    __tablename__ = "pages"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    page_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    extracted_text: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    ocr_confidence: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        comment="1.0 for embedded text, lower when the text came from OCR",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )

    document: Mapped[Document] = relationship(
        "Document",
        back_populates="pages",
    )

    def __repr__(self) -> str:
        return f"<Page(document_id={self.document_id}, page_number={self.page_number})>"


class Extraction(Base):
    """
    A typed blob of NLP or AI output for a document.

    The `data` payload depends on `extraction_type`: a list of entities,
    keywords or tables, a summary string wrapper, text statistics, or
    LLM-derived insights.
    """

    __tablename__ = "extractions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    extraction_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    data: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )
    processed_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )

    document: Mapped[Document] = relationship(
        "Document",
        back_populates="extractions",
    )

    def __repr__(self) -> str:
        return f"<Extraction(id={self.id}, type='{self.extraction_type}')>"


class ChatMessage(Base):
    """One turn of a conversation about a document."""

    __tablename__ = "chat_messages"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    citations: Mapped[list | None] = mapped_column(
        JSON,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ChatMessage(id={self.id}, role='{self.role}')>"
