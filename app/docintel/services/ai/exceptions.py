"""
Errors raised by the LLM integration.
"""


class AIServiceError(Exception):
    """An LLM provider is unavailable, misconfigured or returned nothing usable."""
