"""Maestro Backend Application.

This is the main entry point for the Maestro ingestion service. Maestro
lets a user upload documents, drives each one through the remote
upload/summarization workflow, and keeps a consistent status view tied to
chat sessions.

Modules:
    - files: FileRecord store, admission checks, ingestion endpoints
    - upload: per-file workflow, concurrent batch coordination, HTTP backend
    - sessions: chat sessions and the query-context file selection
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from maestro.config import get_config
from maestro.files.router import router as files_router
from maestro.pipeline import IngestPipeline, get_pipeline, set_pipeline
from maestro.sessions.router import router as sessions_router
from maestro.upload.http_backend import HttpUploadBackend

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# httpx/httpcore log every request line and TLS handshake, including
# presigned URLs whose query strings carry credentials.
for _noisy in (
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in maestro.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    created = False
    if get_pipeline() is None:
        set_pipeline(IngestPipeline(HttpUploadBackend.from_config(config), config))
        created = True
        logger.info(
            "Ingest pipeline ready: backend=%s notify_enabled=%s",
            config.backend.base_url,
            config.backend.notify_enabled,
        )

    yield  # Application runs here

    # Shutdown
    pipeline = get_pipeline()
    if created and pipeline is not None:
        await pipeline.aclose()
        set_pipeline(None)
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Maestro API",
    description="Document ingestion and summarization pipeline for chat sessions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register all routers
app.include_router(files_router)
app.include_router(sessions_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}
