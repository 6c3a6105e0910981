"""
Tests for persona_rag/services/ingestion.py
Request validation, the runner's event contract and viewer decoupling.
"""

import asyncio

import pytest

from persona_rag.exceptions import BadRequest
from persona_rag.models.schemas import (
    CompleteEvent,
    LogEvent,
    NotionPageIngestionRequest,
    ProgressEvent,
    RunEvent,
    UrlIngestionRequest,
)
from persona_rag.services.ingestion import (
    IngestionEventSink,
    IngestionRunManager,
    ManualIngestionRunner,
    load_ingestion_procedure,
    parse_page_id,
    validate_ingestion_request,
)

PAGE_ID = "0123456789abcdef0123456789abcdef"
DASHED_PAGE_ID = "01234567-89ab-cdef-0123-456789abcdef"


async def _drain(subscription):
    return [event async for event in subscription]


class TestParsePageId:
    """Test Notion page ID canonicalization."""

    @pytest.mark.parametrize(
        "raw",
        [
            PAGE_ID,
            PAGE_ID.upper(),
            DASHED_PAGE_ID,
            f"https://www.notion.so/ada/Projects-{PAGE_ID}",
            f"https://www.notion.so/Projects-{PAGE_ID}?pvs=4",
            f"  {PAGE_ID}  ",
        ],
    )
    def test_valid_ids(self, raw):
        assert parse_page_id(raw) == DASHED_PAGE_ID

    @pytest.mark.parametrize("raw", ["", "not-a-page", PAGE_ID[:-1], f"{PAGE_ID}zz"])
    def test_invalid_ids(self, raw):
        assert parse_page_id(raw) is None


class TestValidateIngestionRequest:
    """Test manual ingestion payload validation."""

    def test_notion_page(self):
        request = validate_ingestion_request({"mode": "notion_page", "pageId": PAGE_ID})

        assert isinstance(request, NotionPageIngestionRequest)
        assert request.page_id == DASHED_PAGE_ID
        assert request.ingestion_type == "partial"

    def test_full_ingestion_type(self):
        request = validate_ingestion_request(
            {"mode": "url", "url": "https://example.com/about", "ingestionType": "full"}
        )

        assert isinstance(request, UrlIngestionRequest)
        assert request.url == "https://example.com/about"
        assert request.ingestion_type == "full"

    def test_unknown_ingestion_type_is_partial(self):
        request = validate_ingestion_request(
            {"mode": "url", "url": "http://example.com", "ingestionType": "everything"}
        )
        assert request.ingestion_type == "partial"

    @pytest.mark.parametrize(
        "body, message",
        [
            ({"mode": "notion_page"}, "Missing Notion page ID."),
            ({"mode": "notion_page", "pageId": 42}, "Missing Notion page ID."),
            ({"mode": "notion_page", "pageId": "hello"}, "Invalid Notion page ID."),
            ({"mode": "url"}, "Missing URL."),
            ({"mode": "url", "url": "example.com"}, "Invalid URL."),
            ({"mode": "url", "url": "ftp://example.com"}, "Only HTTP and HTTPS URLs are supported."),
            ({"mode": "url", "url": "file:///etc/passwd"}, "Invalid URL."),
            ({"mode": "sitemap"}, "Unsupported ingestion mode."),
            ({}, "Unsupported ingestion mode."),
            (["mode", "url"], "Invalid payload."),
        ],
    )
    def test_rejected_payloads(self, body, message):
        with pytest.raises(BadRequest) as exc_info:
            validate_ingestion_request(body)
        assert str(exc_info.value) == message


class TestIngestionRunner:
    """Test the terminal event guarantees."""

    @pytest.mark.asyncio
    async def test_relays_events_in_order(self):
        async def procedure(request, emit):
            await emit(RunEvent(run_id="run-1"))
            await emit({"type": "log", "message": "Fetching page"})
            await emit(ProgressEvent(step="chunking", percent=50))
            await emit(CompleteEvent(status="success", run_id="run-1"))

        sink = IngestionEventSink()
        subscription = sink.subscribe()
        await ManualIngestionRunner(procedure, sink).run(UrlIngestionRequest(url="https://a.example"))

        events = await _drain(subscription)
        assert [e.type for e in events] == ["run", "log", "progress", "complete"]
        assert isinstance(events[1], LogEvent)
        assert events[1].level == "info"

    @pytest.mark.asyncio
    async def test_events_after_complete_are_dropped(self, caplog):
        async def procedure(request, emit):
            await emit(CompleteEvent(status="success"))
            await emit(LogEvent(message="too late"))
            await emit(CompleteEvent(status="failed"))

        sink = IngestionEventSink()
        subscription = sink.subscribe()
        await ManualIngestionRunner(procedure, sink).run(UrlIngestionRequest(url="https://a.example"))

        events = await _drain(subscription)
        assert len(events) == 1
        assert events[0].status == "success"
        assert sink.events_published == 1
        assert "after completion" in caplog.text

    @pytest.mark.asyncio
    async def test_procedure_error_becomes_failed_completion(self):
        async def procedure(request, emit):
            await emit(LogEvent(message="Starting"))
            raise RuntimeError("Notion API returned 502")

        sink = IngestionEventSink()
        subscription = sink.subscribe()
        await ManualIngestionRunner(procedure, sink).run(UrlIngestionRequest(url="https://a.example"))

        events = await _drain(subscription)
        assert [e.type for e in events] == ["log", "log", "complete"]
        assert events[1].level == "error"
        assert "Notion API returned 502" in events[1].message
        assert events[2].status == "failed"
        assert events[2].stats.error_count == 1
        assert events[2].stats.documents_processed == 0

    @pytest.mark.asyncio
    async def test_missing_completion_is_synthesized(self):
        async def procedure(request, emit):
            await emit(LogEvent(message="Did some work"))

        sink = IngestionEventSink()
        subscription = sink.subscribe()
        await ManualIngestionRunner(procedure, sink).run(UrlIngestionRequest(url="https://a.example"))

        events = await _drain(subscription)
        assert events[-1].type == "complete"
        assert events[-1].status == "failed"
        assert sum(1 for e in events if e.type == "complete") == 1


class TestRunManager:
    """Test that runs outlive their viewers."""

    @pytest.mark.asyncio
    async def test_run_continues_after_viewer_leaves(self):
        resume = asyncio.Event()
        finished = []

        async def procedure(request, emit):
            await emit(LogEvent(message="step 1"))
            await resume.wait()
            for step in range(2, 6):
                await emit(LogEvent(message=f"step {step}"))
            await emit(CompleteEvent(status="success"))
            finished.append(True)

        manager = IngestionRunManager(procedure)
        run = await manager.start(NotionPageIngestionRequest(page_id=DASHED_PAGE_ID))

        first = await run.subscription.__aiter__().__anext__()
        assert first.message == "step 1"
        run.subscription.close()
        resume.set()

        await asyncio.wait_for(run.task, timeout=1)

        assert finished == [True]
        assert run.sink.events_published == 6
        assert manager.get_active_count() == 0

    @pytest.mark.asyncio
    async def test_subscription_attached_before_first_event(self):
        async def procedure(request, emit):
            await emit(RunEvent(run_id="abc"))
            await emit(CompleteEvent(status="success", run_id="abc"))

        manager = IngestionRunManager(procedure)
        run = await manager.start(UrlIngestionRequest(url="https://a.example"))

        events = await _drain(run.subscription)
        assert [e.type for e in events] == ["run", "complete"]
        assert run.to_dict()["started_at"].endswith("+00:00")

    @pytest.mark.asyncio
    async def test_start_without_procedure(self):
        manager = IngestionRunManager()

        assert not manager.is_configured
        with pytest.raises(RuntimeError):
            await manager.start(UrlIngestionRequest(url="https://a.example"))

    @pytest.mark.asyncio
    async def test_close_all_cancels_runs(self):
        started = asyncio.Event()

        async def procedure(request, emit):
            started.set()
            await asyncio.sleep(3600)

        manager = IngestionRunManager(procedure)
        run = await manager.start(UrlIngestionRequest(url="https://a.example"))
        await started.wait()

        status = manager.get_status()
        assert status["active_runs"] == 1
        assert status["runs"][0]["mode"] == "url"

        await manager.close_all()

        assert run.task.cancelled()
        assert manager.get_active_count() == 0


class TestLoadIngestionProcedure:
    """Test loading a procedure from an import path."""

    def test_loads_callable(self):
        procedure = load_ingestion_procedure("asyncio:sleep")
        assert procedure is asyncio.sleep

    @pytest.mark.parametrize("path", ["asyncio", ":sleep", "asyncio:"])
    def test_malformed_path(self, path):
        with pytest.raises(ValueError):
            load_ingestion_procedure(path)

    def test_not_callable(self):
        with pytest.raises(ValueError):
            load_ingestion_procedure("asyncio:__name__")
