"""
Manual Ingestion Endpoint

Starts an ingestion run for one Notion page or URL and streams its progress
as Server-Sent Events.

Protocol:
    Each event is one ``data: <json>`` frame. The stream closes after the
    terminal ``complete`` event. A viewer that disconnects stops receiving
    events; the run itself continues to completion.
"""

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from persona_rag.exceptions import BadRequest, ClientDisconnected
from persona_rag.models.schemas import serialize_event
from persona_rag.services.ingestion import (
    IngestionRun,
    IngestionRunManager,
    get_run_manager,
    validate_ingestion_request,
)

router = APIRouter()
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
}


async def _event_frames(run: IngestionRun, request: Request) -> AsyncIterator[str]:
    try:
        async for event in run.subscription:
            if await request.is_disconnected():
                raise ClientDisconnected(f"Viewer of ingestion run {run.run_key} disconnected")
            yield f"data: {serialize_event(event)}\n\n"
    except ClientDisconnected as e:
        logger.info(f"{e}; run continues unobserved")
    finally:
        run.subscription.close()


@router.post("/api/admin/manual-ingest")
async def manual_ingest(
    request: Request,
    manager: IngestionRunManager = Depends(get_run_manager),
):
    """
    Start a manual ingestion run.

    Body: ``{"mode": "notion_page", "pageId": ...}`` or
    ``{"mode": "url", "url": ...}``, with optional ``"ingestionType"``
    (``"full"`` or ``"partial"``).
    """
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid JSON payload."}, status_code=400)

    try:
        ingestion_request = validate_ingestion_request(body)
    except BadRequest as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    if not manager.is_configured:
        logger.warning("Manual ingestion requested but no procedure is configured")
        return JSONResponse({"error": "Manual ingestion is not configured."}, status_code=503)

    run = await manager.start(ingestion_request)

    return StreamingResponse(
        _event_frames(run, request),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
