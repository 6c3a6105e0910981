"""
Chat Endpoint

Answers visitor questions about the site owner as a plain-text stream.
"""

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from persona_rag.exceptions import BadRequest, ClientDisconnected, UpstreamFailure
from persona_rag.models.schemas import ChatRequest
from persona_rag.rag.generation import ChatTurn
from persona_rag.rag.orchestrator import RAGQueryOrchestrator, get_orchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


async def _answer_body(fragments: AsyncIterator[str], request: Request) -> AsyncIterator[str]:
    """Forward fragments until the answer ends or the caller leaves."""
    try:
        async for fragment in fragments:
            if await request.is_disconnected():
                raise ClientDisconnected("Client disconnected during answer stream")
            yield fragment
    except ClientDisconnected as e:
        logger.info(str(e))
    except UpstreamFailure as e:
        # Headers are already sent; aborting leaves the body incomplete
        logger.error(f"Answer stream aborted: {e}")
        raise
    finally:
        await fragments.aclose()


@router.post("/api/chat")
async def chat(
    request: Request,
    orchestrator: RAGQueryOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """
    Stream an answer to the last message of the conversation.

    Body: ``{"messages": [{"role": ..., "content": ...}], "provider": ...}``
    """
    try:
        payload = ChatRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Bad Request: {e}")

    history = [ChatTurn(role=m.role, content=m.content or "") for m in payload.messages]

    try:
        fragments = await orchestrator.answer_query(history, provider=payload.provider)
    except BadRequest as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamFailure as e:
        raise HTTPException(status_code=500, detail=str(e))

    return StreamingResponse(
        _answer_body(fragments, request),
        media_type="text/plain; charset=utf-8",
    )
