"""
Resume Analysis Platform - Main Application

FastAPI backend with:
- PostgreSQL for users, resumes, versions and matching scores
- MongoDB for parsed content, analysis payloads and suggestions
- Redis + RQ for background analysis jobs
- Gemini / OpenAI / Claude with automatic fallback
- JWT authentication

Run: uvicorn app.main:app --reload
Worker: python -m app.worker
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.exceptions import (
    NotFoundError, InvalidRequestError, FileParseError, AllProvidersFailedError
)
from app.core.logging_config import setup_logging
from app.db.mongodb import init_mongo_indexes
from app.db.postgres import init_postgres_schema

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Resume Analysis Platform",
    description="""
    Resume upload, ATS scoring and job description matching.
    
    ## Features
    - **Authentication**: JWT-based auth
    - **Resumes**: PDF/DOCX/TXT upload, single or bulk, with background ATS analysis
    - **Versions**: Up to 10 versions per resume with compare and restore
    - **JD Matching**: Keyword + AI semantic matching with improvement suggestions
    - **Queues**: Job status polling and data retention
    - **AI Providers**: Health, fallback and cost analytics
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


# Domain errors -> HTTP
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(FileParseError)
async def file_parse_handler(request: Request, exc: FileParseError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(AllProvidersFailedError)
async def providers_failed_handler(request: Request, exc: AllProvidersFailedError):
    logger.error("%s: %s", exc, exc.errors)
    return JSONResponse(status_code=503, content={"detail": "AI service temporarily unavailable"})


# Startup event
@app.on_event("startup")
async def startup_event():
    """Create PostgreSQL tables and MongoDB indexes on startup."""
    try:
        init_postgres_schema()
        logger.info("PostgreSQL schema initialized")
    except Exception as e:
        logger.warning("PostgreSQL schema initialization failed: %s", e)
    
    try:
        init_mongo_indexes()
        logger.info("MongoDB indexes initialized")
    except Exception as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": "Resume Analysis Platform", "docs": "/docs"}


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    from app.db.postgres import test_postgres_connection
    from app.db.mongodb import test_mongo_connection
    from app.db.redis_client import test_redis_connection
    from app.services.ai_provider_service import get_ai_provider_service
    
    checks = {
        "postgres": test_postgres_connection(),
        "mongodb": test_mongo_connection(),
        "redis": test_redis_connection(),
    }
    return {
        "status": "healthy" if all(checks.values()) else "degraded",
        **{name: "connected" if ok else "disconnected" for name, ok in checks.items()},
        "ai_providers": {
            name: info["is_healthy"] and info["is_configured"]
            for name, info in get_ai_provider_service().get_provider_health().items()
        }
    }
