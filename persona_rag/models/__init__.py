"""Pydantic Models and Schemas."""

from persona_rag.models.schemas import (
    ChatMessage,
    ChatRequest,
    CompleteEvent,
    IngestionEvent,
    IngestRunStats,
    LogEvent,
    ManualIngestionRequest,
    NotionPageIngestionRequest,
    ProgressEvent,
    RunEvent,
    UrlIngestionRequest,
    serialize_event,
)

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "CompleteEvent",
    "IngestionEvent",
    "IngestRunStats",
    "LogEvent",
    "ManualIngestionRequest",
    "NotionPageIngestionRequest",
    "ProgressEvent",
    "RunEvent",
    "UrlIngestionRequest",
    "serialize_event",
]
