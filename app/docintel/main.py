"""
FastAPI application for the document intelligence service.

Provides endpoints for:
- Uploading PDFs and following their processing progress
- Retrieving extracted text, entities, keywords, tables and summaries
- Chatting with a document
- Dashboard statistics and reports
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .database import init_db
from .models import HealthResponse
from .routers import chat, dashboard, documents, users
from .services.ai import AIServiceError, get_ai_service
from .services.pdf_service import PDFParseError, get_pdf_service
from .services.processing import recover_orphaned_documents

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Document Intelligence Service...")
    # Note: In production, use Alembic migrations instead of init_db()
    init_db()
    get_pdf_service()
    get_ai_service()

    recovery = None
    if settings.recover_on_startup:
        recovery = asyncio.create_task(recover_orphaned_documents())
    logger.info("Services initialized successfully")
    yield
    if recovery is not None and not recovery.done():
        recovery.cancel()
    logger.info("Shutting down Document Intelligence Service...")


# Create FastAPI application
app = FastAPI(
    title="Document Intelligence API",
    description="PDF text extraction, NLP analysis and document chat",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        message="Document Intelligence API is running",
        ai_enabled=get_ai_service().enabled,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        message="Service is healthy",
        ai_enabled=get_ai_service().enabled,
    )


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(users.router)
app.include_router(documents.router)
app.include_router(chat.router)
app.include_router(dashboard.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(PDFParseError)
async def pdf_parse_error_handler(request, exc: PDFParseError):
    """Handle PDF parsing errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request, exc: AIServiceError):
    """Handle AI service errors."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )
