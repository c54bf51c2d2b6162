"""
Question answering over a single document's text.
"""

import asyncio
import logging
from typing import Any

from .providers import generate_text

logger = logging.getLogger(__name__)

DOCUMENT_TEXT_LIMIT = 12000
MAX_ANSWER_TOKENS = 1000

CHAT_SYSTEM_PROMPT = """You are a helpful document assistant. Answer the user's question based ONLY on the provided document text.

Document Content:
---
{document}
---

If the answer is not in the document, say so. Quote the relevant parts of the document where possible."""


async def generate_chat_response(
    document_text: str,
    question: str,
    history: list[dict[str, str]],
    client: Any,
    provider: str,
    model: str,
) -> str:
    """
    Answer a question about a document.

    Args:
        document_text: Extracted document text (truncated to the prompt limit).
        question: The user's question.
        history: Earlier turns as {"role", "content"}, oldest first, not
            including the question itself.
        client: SDK client.
        provider: "openai" or "gemini".
        model: Model name.

    Raises:
        AIServiceError: If the request fails.
    """
    system = CHAT_SYSTEM_PROMPT.format(
        document=document_text[:DOCUMENT_TEXT_LIMIT] or "No text extracted from document."
    )
    turns = [
        {"role": m["role"], "content": m["content"]}
        for m in history
        if m.get("role") in ("user", "assistant") and m.get("content")
    ]
    turns.append({"role": "user", "content": question})

    logger.info("Generating chat answer (%d history turns)", len(turns) - 1)
    return await asyncio.to_thread(
        generate_text,
        client,
        provider,
        model,
        turns,
        system=system,
        max_tokens=MAX_ANSWER_TOKENS,
    )
