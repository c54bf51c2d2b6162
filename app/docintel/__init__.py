"""
Document Intelligence Backend Application.

A FastAPI service that ingests PDF documents, extracts their text,
runs lightweight NLP over it and optionally enriches the results
with a hosted LLM (OpenAI or Google Gemini).
"""

__version__ = "1.0.0"
