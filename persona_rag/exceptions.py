"""
Custom exceptions for the RAG query pipeline.

Every failure is terminal for the request that raised it; nothing in the
pipeline retries.
"""

from typing import Optional


class RAGError(Exception):
    """Base exception for all pipeline errors."""

    status_code = 500


class BadRequest(RAGError):
    """
    Malformed or missing required input.

    Raised before any external service is called, so a bad request never
    has partial side effects.
    """

    status_code = 400


class UpstreamFailure(RAGError):
    """
    A dependency failed while serving the request.

    Wraps the dependency error, which is kept as ``__cause__``.
    """

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class UpstreamEmbeddingFailure(UpstreamFailure):
    """The embedding service could not produce a query vector."""
    pass


class UpstreamStoreFailure(UpstreamFailure):
    """The vector store match procedure failed."""
    pass


class UpstreamGenerationFailure(UpstreamFailure):
    """
    The answer generation service failed.

    Raised either when the stream cannot be opened or when it breaks
    after fragments have already been delivered.
    """
    pass


class ClientDisconnected(RAGError):
    """The caller went away. A cancellation signal, not a failure."""

    status_code = 499
