"""
FastAPI Application Entry Point

Configures and runs the personal site assistant backend.
Answers visitor questions from the site owner's knowledge base and relays
progress of admin-triggered ingestion runs.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from persona_rag import __version__
from persona_rag.config import settings
from persona_rag.rag.providers import (
    get_default_embedding_provider,
    get_default_llm_provider,
    get_embedding_model_name,
    get_llm_model_name,
    get_provider_api_key,
)
from persona_rag.routers import chat, health, ingest
from persona_rag.services.ingestion import get_run_manager, load_ingestion_procedure


def configure_logging() -> None:
    """Configure application logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    # Reduce noise from HTTP clients
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# Configure logging on module load
configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan events.

    Startup:
    - Log configuration
    - Validate environment
    - Install the ingestion procedure, if configured

    Shutdown:
    - Cancel running ingestion runs
    - Close HTTP clients
    """
    # Startup
    llm_provider = get_default_llm_provider()
    embedding_provider = get_default_embedding_provider()

    logger.info(f"Starting {settings.assistant_name} v{app.version}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"LLM: {llm_provider.value}/{get_llm_model_name(llm_provider)}")
    logger.info(
        f"Embeddings: {embedding_provider.value}/{get_embedding_model_name(embedding_provider)}"
    )
    logger.info(f"Vector store backend: {settings.vector_store_backend}")

    for provider in {llm_provider, embedding_provider}:
        if not get_provider_api_key(provider):
            logger.warning(f"No API key for {provider.value} - requests using it will fail")

    if settings.vector_store_backend == "supabase" and not settings.supabase_url:
        logger.warning("SUPABASE_URL not set - retrieval will fail")

    if settings.ingestion_procedure:
        get_run_manager().set_procedure(load_ingestion_procedure(settings.ingestion_procedure))
        logger.info(f"Manual ingestion procedure: {settings.ingestion_procedure}")
    else:
        logger.info("INGESTION_PROCEDURE not set - manual ingestion disabled")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.assistant_name}")

    await get_run_manager().close_all()

    from persona_rag.rag.embeddings import get_embedding_generator
    from persona_rag.rag.vector_store import close_vector_store

    await get_embedding_generator().close()
    await close_vector_store()
    logger.info("All clients closed")


app = FastAPI(
    title="Personal AI Assistant",
    description="""
Answers questions about the site owner from their public notes and pages.

## Endpoints

- `POST /api/chat`: streamed plain-text answer to the last message
- `POST /api/admin/manual-ingest`: ingest one Notion page or URL, progress as Server-Sent Events

## Ingestion events

- `run`: the run record was created
- `log`: progress message (`info`, `warn`, `error`)
- `progress`: named step with percentage
- `complete`: terminal event with status and stats
""",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS
cors_origins = settings.cors_origins
if settings.debug:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(chat.router, tags=["Chat"])
app.include_router(ingest.router, tags=["Ingestion"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic service information."""
    return {
        "name": settings.assistant_name,
        "version": __version__,
        "status": "running",
        "docs": "/docs",
        "chat": "/api/chat",
    }


@app.get("/config")
async def get_config() -> dict:
    """
    Get current configuration (non-sensitive values only).

    Useful for debugging and verification.
    """
    llm_provider = get_default_llm_provider()
    embedding_provider = get_default_embedding_provider()
    return {
        "llm_provider": llm_provider.value,
        "llm_model": get_llm_model_name(llm_provider),
        "embedding_provider": embedding_provider.value,
        "embedding_model": get_embedding_model_name(embedding_provider),
        "vector_store_backend": settings.vector_store_backend,
        "max_response_tokens": settings.max_response_tokens,
        "temperature": settings.temperature,
        "openai_configured": bool(settings.openai_api_key),
        "gemini_configured": bool(settings.gemini_api_key),
        "huggingface_configured": bool(settings.huggingface_api_key),
        "supabase_configured": bool(settings.supabase_url and settings.supabase_service_role_key),
        "manual_ingestion_enabled": get_run_manager().is_configured,
    }


# For running directly with Python
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "persona_rag.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
