"""
Routers package for FastAPI endpoints.

Organized by domain:
- chat: Document chat
- dashboard: Dashboard statistics and reports
- documents: Upload, retrieval, reprocessing and deletion
- users: Current user
"""

from . import chat, dashboard, documents, users

__all__ = ["chat", "dashboard", "documents", "users"]
