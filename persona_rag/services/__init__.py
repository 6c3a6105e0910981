"""
Services Package

Contains the manual ingestion relay:
- IngestionRunManager: starts runs and tracks them until they finish
- ManualIngestionRunner: enforces the event contract around a procedure
- IngestionEventSink / IngestionSubscription: decouple publishing from viewers
"""

from persona_rag.services.ingestion import (
    IngestionEventSink,
    IngestionRun,
    IngestionRunManager,
    IngestionSubscription,
    ManualIngestionRunner,
    get_run_manager,
    load_ingestion_procedure,
    validate_ingestion_request,
)

__all__ = [
    # Relay
    "IngestionEventSink",
    "IngestionSubscription",
    "ManualIngestionRunner",
    # Runs
    "IngestionRun",
    "IngestionRunManager",
    "get_run_manager",
    "load_ingestion_procedure",
    # Validation
    "validate_ingestion_request",
]
