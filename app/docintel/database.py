"""
Database configuration and session management.

This module sets up the SQLAlchemy engine and session factory. PostgreSQL is
the production target; SQLite URLs are accepted for local runs and tests.
"""

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings

settings = get_settings()
DATABASE_URL = settings.database_url


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Pipeline stages run in worker threads
        return {"connect_args": {"check_same_thread": False}}
    # - pool_pre_ping: Verify connections are alive before using them
    # - pool_size: Number of connections to keep in pool
    # - max_overflow: Number of connections to allow beyond pool_size
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


engine = create_engine(
    DATABASE_URL,
    echo=settings.sql_debug,
    **_engine_options(DATABASE_URL),
)

if DATABASE_URL.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        # SQLite enforces foreign keys only when enabled per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Base class for declarative models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
        @app.get("/items")
        def get_items(db: Session = Depends(get_db)):
            ...

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Initialize the database by creating all tables.

    Note: In production, use Alembic migrations instead.
    """
    # Import models to ensure they are registered with Base
    from . import models_db  # noqa: F401

    Base.metadata.create_all(bind=engine)
