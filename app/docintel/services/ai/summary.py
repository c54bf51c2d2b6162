"""
Document-level enrichment with an LLM: summary, keywords and structured insights.
"""

import asyncio
import json
import logging
from typing import Any

from pydantic import ValidationError

from ...models import DocumentInsights
from .exceptions import AIServiceError
from .providers import generate_text

logger = logging.getLogger(__name__)

SUMMARY_TEXT_LIMIT = 12000
KEYWORD_TEXT_LIMIT = 12000
INSIGHTS_TEXT_LIMIT = 50000

SUMMARY_PROMPT = (
    "Summarize the following text, focusing on the main points and key takeaways. "
    "Answer with a single short paragraph.\n\n{text}"
)

KEYWORDS_PROMPT = (
    "Extract the 8-12 most important keywords or key phrases from the following text. "
    "Return them as a comma-separated list and nothing else.\n\n{text}"
)

INSIGHTS_SYSTEM_PROMPT = """Analyze the provided text and identify if it is a specific type of document (e.g., Marksheet, Bill, Invoice, Report, Resume).
If it is, extract key structured data in JSON format.

For a Marksheet/Transcript:
- Extract Student Name, Roll Number, Exam Name.
- Extract Subjects and Marks/Grades.
- Identify weak areas (low marks) and strong areas (high marks).

For a Bill/Invoice:
- Extract Vendor Name, Date, Invoice Number.
- Extract Line Items and Total Amount.

For others:
- Extract key key-value pairs.

Return ONLY valid JSON in this format:
{
  "documentType": "Marksheet" | "Invoice" | "Report" | "Resume" | "Unknown",
  "summary": "Brief summary",
  "fields": { ...extracted data... },
  "insights": ["insight 1", "insight 2"]
}"""


def parse_keyword_list(raw: str) -> list[str]:
    """Split a comma/newline separated model answer into clean keywords."""
    keywords: list[str] = []
    seen: set[str] = set()
    for item in raw.replace("\n", ",").split(","):
        keyword = item.strip().strip("-*•.\"'").strip()
        if keyword and keyword.lower() not in seen:
            seen.add(keyword.lower())
            keywords.append(keyword)
    return keywords


async def generate_summary(
    text: str,
    client: Any,
    provider: str,
    model: str,
) -> str:
    """
    Summarize document text.

    Raises:
        AIServiceError: If the request fails.
    """
    if not text.strip():
        raise AIServiceError("No text to summarize")
    prompt = SUMMARY_PROMPT.format(text=text[:SUMMARY_TEXT_LIMIT])
    summary = await asyncio.to_thread(
        generate_text,
        client,
        provider,
        model,
        [{"role": "user", "content": prompt}],
    )
    logger.info("Generated AI summary (%d characters)", len(summary))
    return summary


async def extract_keywords(
    text: str,
    client: Any,
    provider: str,
    model: str,
) -> list[str]:
    """
    Ask the model for the document's key phrases.

    Raises:
        AIServiceError: If the request fails.
    """
    if not text.strip():
        return []
    prompt = KEYWORDS_PROMPT.format(text=text[:KEYWORD_TEXT_LIMIT])
    raw = await asyncio.to_thread(
        generate_text,
        client,
        provider,
        model,
        [{"role": "user", "content": prompt}],
    )
    keywords = parse_keyword_list(raw)
    logger.info("Extracted %d AI keywords", len(keywords))
    return keywords


async def analyze_structured_data(
    text: str,
    client: Any,
    provider: str,
    model: str,
) -> DocumentInsights | None:
    """
    Classify the document and pull out key fields.

    Returns None when the model answer is not usable JSON.

    Raises:
        AIServiceError: If the request fails.
    """
    if not text.strip():
        return None

    content = await asyncio.to_thread(
        generate_text,
        client,
        provider,
        model,
        [{"role": "user", "content": text[:INSIGHTS_TEXT_LIMIT]}],
        system=INSIGHTS_SYSTEM_PROMPT,
        json_mode=True,
    )

    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        logger.error("Failed to parse insights response: %s", content[:500])
        return None

    if not isinstance(payload, dict):
        return None

    try:
        return DocumentInsights.model_validate(payload)
    except ValidationError as e:
        logger.warning("Insights response did not match the expected shape: %s", e)
        return None
