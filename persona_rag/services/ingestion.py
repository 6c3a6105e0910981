"""
Manual Ingestion Relay

Runs admin-triggered ingestion procedures and relays their progress events
to whoever is watching.

The procedure publishes to an event sink; each viewer reads from its own
subscription. A viewer that disconnects only closes its subscription: the
run keeps going until the procedure finishes, so progress is never cut off
halfway from the procedure's point of view.
"""

import asyncio
import importlib
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from pydantic import TypeAdapter

from persona_rag.exceptions import BadRequest
from persona_rag.models.schemas import (
    CompleteEvent,
    IngestionEvent,
    IngestRunStats,
    LogEvent,
    ManualIngestionRequest,
    NotionPageIngestionRequest,
    UrlIngestionRequest,
)

logger = logging.getLogger(__name__)

EmitFn = Callable[[Union[IngestionEvent, Dict[str, Any]]], Awaitable[None]]
IngestionProcedure = Callable[[ManualIngestionRequest, EmitFn], Awaitable[None]]

_EVENT_ADAPTER = TypeAdapter(IngestionEvent)

_COMPACT_PAGE_ID = re.compile(r"\b([0-9a-f]{32})$", re.IGNORECASE)
_DASHED_PAGE_ID = re.compile(
    r"\b([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})$",
    re.IGNORECASE,
)


# =============================================================================
# Request validation
# =============================================================================


def parse_page_id(value: str) -> Optional[str]:
    """
    Extract a Notion page ID and return it in dashed UUID form.

    Accepts bare IDs (with or without dashes) and page URLs ending in the ID.
    """
    candidate = value.strip().split("?")[0].split("#")[0]
    match = _COMPACT_PAGE_ID.search(candidate) or _DASHED_PAGE_ID.search(candidate)
    if not match:
        return None

    raw = match.group(1).replace("-", "").lower()
    return f"{raw[:8]}-{raw[8:12]}-{raw[12:16]}-{raw[16:20]}-{raw[20:]}"


def _parse_http_url(value: str) -> str:
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        raise BadRequest("Invalid URL.")

    if not parts.scheme or not parts.netloc:
        raise BadRequest("Invalid URL.")
    if parts.scheme.lower() not in ("http", "https"):
        raise BadRequest("Only HTTP and HTTPS URLs are supported.")

    return urlunsplit(parts)


def validate_ingestion_request(body: Any) -> ManualIngestionRequest:
    """
    Validate a manual ingestion request body.

    Args:
        body: Decoded JSON body.

    Returns:
        The typed request.

    Raises:
        BadRequest: With a message describing what is wrong.
    """
    if not isinstance(body, dict):
        raise BadRequest("Invalid payload.")

    ingestion_type = "full" if body.get("ingestionType") == "full" else "partial"
    mode = body.get("mode")

    if mode == "notion_page":
        page_id = body.get("pageId")
        if not isinstance(page_id, str):
            raise BadRequest("Missing Notion page ID.")

        parsed = parse_page_id(page_id)
        if not parsed:
            raise BadRequest("Invalid Notion page ID.")

        return NotionPageIngestionRequest(page_id=parsed, ingestion_type=ingestion_type)

    if mode == "url":
        url = body.get("url")
        if not isinstance(url, str):
            raise BadRequest("Missing URL.")

        return UrlIngestionRequest(url=_parse_http_url(url), ingestion_type=ingestion_type)

    raise BadRequest("Unsupported ingestion mode.")


# =============================================================================
# Event sink and subscriptions
# =============================================================================


class IngestionSubscription:
    """
    One viewer's feed of run events.

    Events are queued without bound while the subscription is open, so none
    are dropped. Iteration ends after the terminal event.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: IngestionEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        """Stop delivery. Queued events are discarded."""
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()

    def __aiter__(self) -> AsyncIterator[IngestionEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[IngestionEvent]:
        while not self._closed:
            event = await self._queue.get()
            yield event
            if isinstance(event, CompleteEvent):
                return


class IngestionEventSink:
    """Fans published events out to the attached subscriptions."""

    def __init__(self) -> None:
        self._subscriptions: List[IngestionSubscription] = []
        self.events_published = 0

    def subscribe(self) -> IngestionSubscription:
        subscription = IngestionSubscription()
        self._subscriptions.append(subscription)
        return subscription

    async def publish(self, event: IngestionEvent) -> None:
        self.events_published += 1
        for subscription in list(self._subscriptions):
            if subscription.closed:
                self._subscriptions.remove(subscription)
                continue
            subscription.deliver(event)


# =============================================================================
# Runner
# =============================================================================


class ManualIngestionRunner:
    """
    Runs one ingestion procedure and enforces the event contract.

    The stream always ends with exactly one ``complete`` event: procedure
    errors become a failed completion, a procedure that never completes gets
    one synthesized, and anything published after completion is discarded.
    """

    def __init__(self, procedure: IngestionProcedure, sink: IngestionEventSink) -> None:
        self.procedure = procedure
        self.sink = sink
        self.completed = False

    async def emit(self, event: Union[IngestionEvent, Dict[str, Any]]) -> None:
        """Publish an event on behalf of the procedure."""
        if isinstance(event, dict):
            event = _EVENT_ADAPTER.validate_python(event)

        if self.completed:
            logger.warning(f"Dropping '{event.type}' event published after completion")
            return

        if isinstance(event, CompleteEvent):
            self.completed = True
        await self.sink.publish(event)

    async def run(self, request: ManualIngestionRequest) -> None:
        try:
            await self.procedure(request, self.emit)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Manual ingestion aborted: {e}")
            if self.completed:
                return
            await self.emit(LogEvent(level="error", message=f"Manual ingestion aborted: {e}"))
            await self.emit(
                CompleteEvent(
                    status="failed",
                    message=f"Manual ingestion failed: {e}",
                    stats=IngestRunStats(error_count=1),
                )
            )
            return

        if not self.completed:
            logger.warning("Ingestion procedure returned without a completion event")
            await self.emit(
                CompleteEvent(
                    status="failed",
                    message="Manual ingestion finished without reporting a result.",
                    stats=IngestRunStats(error_count=1),
                )
            )


# =============================================================================
# Run manager
# =============================================================================


@dataclass
class IngestionRun:
    """Tracks one running ingestion."""

    run_key: str
    request: ManualIngestionRequest
    subscription: IngestionSubscription
    sink: IngestionEventSink
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    task: Optional[asyncio.Task] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert run state to dictionary for status reporting."""
        return {
            "run_key": self.run_key,
            "mode": self.request.mode,
            "started_at": self.started_at.isoformat(),
            "events_published": self.sink.events_published,
            "viewer_attached": not self.subscription.closed,
        }


class IngestionRunManager:
    """
    Starts ingestion runs and keeps track of them until they finish.

    Runs are independent tasks; closing a run's subscription never cancels
    the run. Only application shutdown does.
    """

    def __init__(self, procedure: Optional[IngestionProcedure] = None) -> None:
        self._procedure = procedure
        self._runs: Dict[str, IngestionRun] = {}
        self._lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        return self._procedure is not None

    def set_procedure(self, procedure: Optional[IngestionProcedure]) -> None:
        """Install the procedure that performs ingestion."""
        self._procedure = procedure

    async def start(self, request: ManualIngestionRequest) -> IngestionRun:
        """
        Start a run with a viewer subscription already attached.

        Raises:
            RuntimeError: If no ingestion procedure is configured.
        """
        if self._procedure is None:
            raise RuntimeError("No ingestion procedure configured")

        sink = IngestionEventSink()
        run = IngestionRun(
            run_key=str(uuid.uuid4()),
            request=request,
            subscription=sink.subscribe(),
            sink=sink,
        )
        runner = ManualIngestionRunner(self._procedure, sink)

        async with self._lock:
            self._runs[run.run_key] = run

        run.task = asyncio.create_task(self._execute(run, runner))
        logger.info(f"Ingestion run {run.run_key} started ({request.mode}). Active runs: {len(self._runs)}")
        return run

    async def _execute(self, run: IngestionRun, runner: ManualIngestionRunner) -> None:
        try:
            await runner.run(run.request)
        finally:
            async with self._lock:
                self._runs.pop(run.run_key, None)
            logger.info(
                f"Ingestion run {run.run_key} finished after "
                f"{run.sink.events_published} events "
                f"(viewer attached: {not run.subscription.closed})"
            )

    def get_active_count(self) -> int:
        return len(self._runs)

    def get_status(self) -> Dict[str, Any]:
        return {
            "configured": self.is_configured,
            "active_runs": len(self._runs),
            "runs": [run.to_dict() for run in self._runs.values()],
        }

    async def close_all(self) -> None:
        """Cancel outstanding runs (application shutdown)."""
        tasks = [run.task for run in list(self._runs.values()) if run.task is not None]
        logger.info(f"Cancelling {len(tasks)} ingestion runs")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


_run_manager: Optional[IngestionRunManager] = None


def get_run_manager() -> IngestionRunManager:
    """Get the global ingestion run manager."""
    global _run_manager
    if _run_manager is None:
        _run_manager = IngestionRunManager()
    return _run_manager


def load_ingestion_procedure(path: str) -> IngestionProcedure:
    """
    Import an ingestion procedure from a ``"package.module:function"`` path.

    Raises:
        ValueError: If the path is malformed or does not name a callable.
        ImportError: If the module cannot be imported.
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Expected 'module:function', got {path!r}")

    procedure = getattr(importlib.import_module(module_name), attribute, None)
    if not callable(procedure):
        raise ValueError(f"{path!r} is not a callable ingestion procedure")
    return procedure
