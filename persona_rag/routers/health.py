"""
Health Check Endpoint

Provides health status for monitoring and load balancer checks.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter

from persona_rag import __version__
from persona_rag.config import settings
from persona_rag.rag.providers import get_provider_defaults
from persona_rag.services.ingestion import get_run_manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns service status and configuration information.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "config": {
            **get_provider_defaults(),
            "vector_store_backend": settings.vector_store_backend,
        },
        "ingestion": get_run_manager().get_status(),
    }


@router.get("/health/ready")
async def readiness_check() -> Dict[str, str]:
    """
    Readiness check for container orchestration.

    Ready once the vector store is configured.
    """
    if settings.vector_store_backend == "supabase" and not (
        settings.supabase_url and settings.supabase_service_role_key
    ):
        return {"status": "not_ready", "reason": "Supabase is not configured"}
    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Liveness check for container orchestration.

    Verifies the service is running.
    """
    return {"status": "alive"}


@router.get("/health/rag")
async def rag_status() -> Dict[str, Any]:
    """
    Knowledge base status.

    Returns information about the configured vector store.
    """
    try:
        from persona_rag.rag.vector_store import get_vector_store

        store = get_vector_store()
        stats = store.get_collection_stats()

        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "store": stats,
        }

    except Exception as e:
        logger.error(f"RAG health check failed: {e}")
        return {
            "status": "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "error": str(e),
        }
