"""
AI service package for LLM-backed document enrichment and chat.

This package provides modular AI functionality split into:
- providers: OpenAI / Gemini client creation and text generation
- summary: Summaries, keywords and structured insights
- chat: Question answering over document text
- vision: Transcription of scanned pages

The AIService class binds a provider, model and API key and delegates to
these modules. When no API key is configured the service is disabled and
callers fall back to the NLP-only behaviour.
"""

import logging
from typing import Any

from PIL import Image

from ...models import DocumentInsights
from .chat import generate_chat_response as _generate_chat_response
from .exceptions import AIServiceError
from .providers import GEMINI, SUPPORTED_PROVIDERS, create_client
from .summary import (
    analyze_structured_data as _analyze_structured_data,
    extract_keywords as _extract_keywords,
    generate_summary as _generate_summary,
    parse_keyword_list,
)
from .vision import transcribe_page as _transcribe_page

logger = logging.getLogger(__name__)

__all__ = [
    "AIService",
    "AIServiceError",
    "get_ai_service",
    "set_ai_service",
    "parse_keyword_list",
]


class AIService:
    """
    Service for LLM-powered document analysis.

    Supports OpenAI chat models and Google Gemini for:
    - Summaries and keyword extraction
    - Structured insights (document type, key fields)
    - Chat answers grounded in the document text
    - OCR of pages that have no embedded text
    """

    def __init__(
        self,
        provider: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
    ):
        """
        Initialize the AI service.

        Args:
            provider: "openai" or "gemini". If None, reads from settings.
            api_key: API key for the provider. If None, reads from settings.
            model: Model name. If None, uses the provider's configured model.
        """
        if provider is None or api_key is None or model is None:
            from ...config import get_settings

            settings = get_settings()
            provider = provider or settings.ai_provider
            if provider == GEMINI:
                api_key = settings.gemini_api_key if api_key is None else api_key
                model = model or settings.gemini_model
            else:
                api_key = settings.openai_api_key if api_key is None else api_key
                model = model or settings.openai_model

        provider = provider.lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise AIServiceError(
                f"Unknown AI provider '{provider}'. Choose from: {list(SUPPORTED_PROVIDERS)}"
            )

        self.provider = provider
        self.api_key = api_key
        self.model = model
        self._client = None

        if not self.enabled:
            logger.warning(
                "AI Service disabled: no API key for provider '%s'. "
                "Summaries, keywords and chat use NLP fallbacks.",
                self.provider,
            )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> Any:
        """Lazy-load the provider client."""
        if self._client is None:
            if not self.enabled:
                raise AIServiceError(
                    f"API key not provided for '{self.provider}'. "
                    f"Set {self.provider.upper()}_API_KEY environment variable."
                )
            try:
                self._client = create_client(self.provider, self.api_key)
            except ImportError as e:
                raise AIServiceError(
                    f"SDK for '{self.provider}' not installed"
                ) from e
        return self._client

    async def generate_summary(self, text: str) -> str:
        return await _generate_summary(text, self.client, self.provider, self.model)

    async def extract_keywords(self, text: str) -> list[str]:
        return await _extract_keywords(text, self.client, self.provider, self.model)

    async def analyze_structured_data(self, text: str) -> DocumentInsights | None:
        return await _analyze_structured_data(text, self.client, self.provider, self.model)

    async def generate_chat_response(
        self,
        document_text: str,
        question: str,
        history: list[dict[str, str]],
    ) -> str:
        """
        Answer a question about a document.

        Args:
            document_text: Extracted text of the document.
            question: The user's question.
            history: Earlier turns, oldest first.
        """
        return await _generate_chat_response(
            document_text,
            question,
            history,
            client=self.client,
            provider=self.provider,
            model=self.model,
        )

    async def transcribe_page(self, image: Image.Image) -> str:
        return await _transcribe_page(image, self.client, self.provider, self.model)


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service


def set_ai_service(service: AIService | None) -> None:
    """Replace the singleton (None resets it to be rebuilt from settings)."""
    global _ai_service
    _ai_service = service
