"""
Shared FastAPI dependencies.

User identity is taken from the `X-User-Id` header set by the fronting
auth proxy; requests without it belong to the configured default user.
"""

import logging
import uuid
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .config import get_settings
from .database import get_db
from .models_db import Document, User
from .services.document_store import get_document

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
    db: Session = Depends(get_db),
) -> User:
    """Resolve the calling user, creating the record on first sight."""
    user_id = (x_user_id or "").strip() or get_settings().default_user_id

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        user = User(id=user_id)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created user record %s", user_id)
    return user


def parse_document_id(document_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(document_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid document ID format",
        )


def load_owned_document(db: Session, document_id: str, user: User) -> Document:
    """
    Fetch a document the user is allowed to see.

    Raises:
        HTTPException: 400 for a malformed id, 404 if missing, 403 if owned
            by another user.
    """
    document = get_document(db, parse_document_id(document_id))
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document {document_id} not found",
        )
    if document.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )
    return document
