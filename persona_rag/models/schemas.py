"""
Pydantic Schemas

Request bodies for the chat endpoint and the request/event contract of the
manual ingestion stream.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Chat
# =============================================================================


class ChatMessage(BaseModel):
    """A single message of the incoming conversation."""

    role: Literal["system", "user", "assistant"] = "user"
    content: Optional[str] = Field(None, description="Message text")


class ChatRequest(BaseModel):
    """Body of a chat request."""

    messages: List[ChatMessage] = Field(default_factory=list)
    provider: Optional[str] = Field(None, description="Embedding provider hint")


# =============================================================================
# Manual ingestion requests
# =============================================================================


IngestionType = Literal["full", "partial"]


class NotionPageIngestionRequest(BaseModel):
    """Ingest a single Notion page."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["notion_page"] = "notion_page"
    page_id: str = Field(..., description="Canonical dashed page UUID")
    ingestion_type: IngestionType = "partial"


class UrlIngestionRequest(BaseModel):
    """Ingest a single web page."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["url"] = "url"
    url: str = Field(..., description="HTTP or HTTPS URL")
    ingestion_type: IngestionType = "partial"


ManualIngestionRequest = Union[NotionPageIngestionRequest, UrlIngestionRequest]


# =============================================================================
# Ingestion events (server -> client)
# =============================================================================


class IngestRunStats(BaseModel):
    """Totals for one ingestion run."""

    model_config = ConfigDict(populate_by_name=True)

    documents_processed: int = Field(0, alias="documentsProcessed")
    documents_added: int = Field(0, alias="documentsAdded")
    documents_updated: int = Field(0, alias="documentsUpdated")
    documents_skipped: int = Field(0, alias="documentsSkipped")
    chunks_added: int = Field(0, alias="chunksAdded")
    chunks_updated: int = Field(0, alias="chunksUpdated")
    characters_added: int = Field(0, alias="charactersAdded")
    characters_updated: int = Field(0, alias="charactersUpdated")
    error_count: int = Field(0, alias="errorCount")


class RunEvent(BaseModel):
    """The run record was created."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["run"] = "run"
    run_id: Optional[str] = Field(None, alias="runId")


class LogEvent(BaseModel):
    """Human-readable progress message."""

    type: Literal["log"] = "log"
    message: str
    level: Literal["info", "warn", "error"] = "info"


class ProgressEvent(BaseModel):
    """Named step with completion percentage."""

    type: Literal["progress"] = "progress"
    step: str
    percent: float = Field(..., ge=0, le=100)


class CompleteEvent(BaseModel):
    """Terminal event; exactly one per run."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["complete"] = "complete"
    status: Literal["success", "completed_with_errors", "failed"]
    message: Optional[str] = None
    run_id: Optional[str] = Field(None, alias="runId")
    stats: IngestRunStats = Field(default_factory=IngestRunStats)


IngestionEvent = Annotated[
    Union[RunEvent, LogEvent, ProgressEvent, CompleteEvent],
    Field(discriminator="type"),
]


def serialize_event(event: BaseModel) -> str:
    """Serialize an event with the camelCase keys the admin UI reads."""
    return event.model_dump_json(by_alias=True)
