"""
Page transcription for scanned PDFs using a vision-capable model.
"""

import asyncio
import base64
import io
import logging
from typing import Any

from PIL import Image

from .providers import generate_text

logger = logging.getLogger(__name__)

MAX_IMAGE_SIDE = 2048

TRANSCRIBE_PROMPT = (
    "Please analyze this document image. Extract all readable text content exactly "
    "as it appears. If it's a form, marksheet, or bill, try to preserve the structure "
    "in your text output (e.g. using tables or key-value pairs). "
    "Return only the extracted text."
)


def _image_to_base64(image: Image.Image) -> str:
    """Convert PIL Image to base64 string for API."""
    buffer = io.BytesIO()
    # Resize if too large (max 2048px on longest side for efficiency)
    if max(image.size) > MAX_IMAGE_SIDE:
        ratio = MAX_IMAGE_SIDE / max(image.size)
        new_size = (int(image.size[0] * ratio), int(image.size[1] * ratio))
        image = image.resize(new_size, Image.Resampling.LANCZOS)

    image.save(buffer, format="PNG", optimize=True)
    buffer.seek(0)
    return base64.b64encode(buffer.getvalue()).decode("utf-8")


async def transcribe_page(
    image: Image.Image,
    client: Any,
    provider: str,
    model: str,
) -> str:
    """
    Read the text of a rendered page.

    Raises:
        AIServiceError: If the request fails.
    """
    text = await asyncio.to_thread(
        generate_text,
        client,
        provider,
        model,
        [{"role": "user", "content": TRANSCRIBE_PROMPT}],
        image_base64=_image_to_base64(image),
        max_tokens=4096,
    )
    logger.info("Transcribed page image (%d characters)", len(text))
    return text
