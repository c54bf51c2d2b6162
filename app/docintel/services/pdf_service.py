"""
PDF processing service.

Extracts per-page text with pdfplumber and renders pages to PIL Images with
pdf2image (poppler) when a page has no embedded text and needs OCR.
"""

import io
import logging
from typing import BinaryIO

from PIL import Image

logger = logging.getLogger(__name__)


class PDFParseError(Exception):
    """Raised when a PDF cannot be read."""

    pass


def _read_bytes(file_bytes: bytes | BinaryIO) -> bytes:
    if hasattr(file_bytes, "read"):
        return file_bytes.read()
    return file_bytes


class PDFService:
    """
    Service for PDF processing operations.

    Text extraction uses pdfplumber; page rendering uses pdf2image.
    """

    def __init__(self, dpi: int = 200, image_format: str = "PNG"):
        """
        Initialize the PDF service.

        Args:
            dpi: Resolution for page rendering. Higher = better OCR but slower.
            image_format: Output image format (PNG recommended for quality).
        """
        self.dpi = dpi
        self.image_format = image_format

    def validate(self, file_bytes: bytes | BinaryIO) -> bytes:
        """
        Check that the content looks like a PDF.

        Returns:
            The PDF content as bytes.

        Raises:
            PDFParseError: If the content is empty or lacks the PDF header.
        """
        pdf_bytes = _read_bytes(file_bytes)

        if not pdf_bytes:
            raise PDFParseError("Empty PDF file provided")

        # Validate PDF magic bytes
        if not pdf_bytes[:4] == b"%PDF":
            raise PDFParseError("Invalid PDF file: does not start with PDF header")

        return pdf_bytes

    def extract_pages(self, file_bytes: bytes | BinaryIO) -> list[str]:
        """
        Extract the text of every page.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            One string per page, in page order. Pages without embedded
            text yield an empty string.

        Raises:
            PDFParseError: If the PDF cannot be opened or parsed.
        """
        import pdfplumber

        pdf_bytes = self.validate(file_bytes)

        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                pages = [(page.extract_text() or "").strip() for page in pdf.pages]
        except Exception as e:
            logger.error("PDF text extraction failed: %s", e)
            raise PDFParseError(f"Invalid or corrupted PDF file: {e}") from e

        if not pages:
            raise PDFParseError("No pages found in PDF")

        logger.info(
            "Extracted text from %d page(s), %d characters",
            len(pages),
            sum(len(p) for p in pages),
        )
        return pages

    def render_page(self, file_bytes: bytes | BinaryIO, page_number: int) -> Image.Image:
        """
        Render a single page to a PIL Image.

        Args:
            file_bytes: PDF file as bytes or file-like object.
            page_number: 1-indexed page to render.

        Raises:
            PDFParseError: If rendering fails for any reason.
        """
        from pdf2image import convert_from_bytes
        from pdf2image.exceptions import (
            PDFInfoNotInstalledError,
            PDFPageCountError,
            PDFSyntaxError,
        )

        pdf_bytes = self.validate(file_bytes)

        try:
            logger.info("Rendering page %d (dpi=%d)", page_number, self.dpi)
            images = convert_from_bytes(
                pdf_bytes,
                dpi=self.dpi,
                fmt=self.image_format.lower(),
                first_page=page_number,
                last_page=page_number,
            )
        except PDFInfoNotInstalledError as e:
            logger.error("Poppler not installed: %s", e)
            raise PDFParseError(
                "Poppler not installed. Install poppler-utils: "
                "brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
            ) from e
        except PDFPageCountError as e:
            raise PDFParseError(f"Could not determine PDF page count: {e}") from e
        except PDFSyntaxError as e:
            raise PDFParseError(f"Invalid or corrupted PDF file: {e}") from e
        except Exception as e:
            logger.exception("Unexpected error during page rendering")
            raise PDFParseError(f"Page rendering failed: {e}") from e

        if not images:
            raise PDFParseError(f"Page {page_number} not found in PDF")
        return images[0]


# Singleton instance for convenience
_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        _pdf_service = PDFService()
    return _pdf_service
