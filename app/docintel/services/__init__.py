"""
Services package for the document intelligence application.

Contains:
- pdf_service: PDF text extraction and page rendering
- nlp_service: Entities, keywords, tables, statistics
- file_storage: Uploaded file storage on local disk
- document_store: Shared persistence helpers and cascade delete
- processing: Document processing state machine and crash recovery
- chat_service: Chat answers with citation fallback
- reports_service: Dashboard and report aggregation
- ai: LLM integration (OpenAI / Gemini)
"""

from .ai import AIService
from .file_storage import FileStorage
from .pdf_service import PDFService

__all__ = ["PDFService", "AIService", "FileStorage"]
