"""
Pytest configuration for the persona_rag test suite.

Configures:
- pytest-asyncio for async test support
- Provider settings reset to defaults for every test
- Fake collaborators for the query pipeline
"""

import asyncio
from typing import List, Optional, Sequence

import pytest

from persona_rag.config import settings
from persona_rag.rag.embeddings import EmbeddingGenerator
from persona_rag.rag.generation import AnswerGenerator, ChatTurn
from persona_rag.rag.providers import EmbeddingProvider
from persona_rag.rag.tables import ProviderStorageBinding
from persona_rag.rag.vector_store import RetrievedChunk, VectorStore

pytest_plugins = ["pytest_asyncio"]


@pytest.fixture(autouse=True)
def default_provider_settings(monkeypatch):
    """Ignore whatever provider configuration the environment carries."""
    for name in (
        "llm_provider",
        "embedding_provider",
        "llm_model",
        "embedding_model",
        "openai_model",
        "openai_embedding_model",
        "google_llm_model",
        "google_embedding_model",
        "huggingface_llm_model",
        "huggingface_embedding_model",
    ):
        monkeypatch.setattr(settings, name, None)
    monkeypatch.setattr(settings, "site_owner_name", "Ada")
    monkeypatch.setattr(settings, "assistant_name", "Ada's Assistant")


class FakeEmbeddingGenerator(EmbeddingGenerator):
    """Returns a fixed vector and records every call."""

    def __init__(self, vector: Optional[List[float]] = None, error: Optional[Exception] = None):
        super().__init__()
        self.vector = vector or [0.1, 0.2, 0.3]
        self.error = error
        self.calls = []

    async def embed_query(self, text: str, provider: EmbeddingProvider) -> List[float]:
        self.calls.append((text, provider))
        if self.error:
            raise self.error
        return self.vector


class FakeVectorStore(VectorStore):
    """Returns canned chunks and records every match call."""

    def __init__(self, chunks: Optional[List[RetrievedChunk]] = None, error: Optional[Exception] = None):
        self.chunks = chunks or []
        self.error = error
        self.calls = []

    async def match_chunks(
        self,
        binding: ProviderStorageBinding,
        query_embedding: List[float],
        similarity_threshold: float,
        match_count: int,
    ) -> List[RetrievedChunk]:
        self.calls.append(
            {
                "binding": binding,
                "query_embedding": query_embedding,
                "similarity_threshold": similarity_threshold,
                "match_count": match_count,
            }
        )
        if self.error:
            raise self.error
        return list(self.chunks)

    async def close(self) -> None:
        pass


class CountingSource:
    """
    Async fragment source that counts how often it is polled.

    With ``fragments=None`` it never ends. With ``fail_after`` it raises
    after that many fragments.
    """

    def __init__(self, fragments: Optional[List[str]] = None, fail_after: Optional[int] = None):
        self.fragments = fragments
        self.fail_after = fail_after
        self.polls = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if self.closed:
            raise StopAsyncIteration
        self.polls += 1
        await asyncio.sleep(0)

        if self.fail_after is not None and self.polls > self.fail_after:
            raise RuntimeError("generation service dropped the connection")
        if self.fragments is None:
            return f"tok{self.polls}"
        if self.polls > len(self.fragments):
            raise StopAsyncIteration
        return self.fragments[self.polls - 1]

    async def aclose(self) -> None:
        self.closed = True


class FakeAnswerGenerator(AnswerGenerator):
    """Streams canned fragments and records the turns it was given."""

    def __init__(
        self,
        fragments: Optional[List[str]] = None,
        fail_after: Optional[int] = None,
        open_error: Optional[Exception] = None,
    ):
        self.fragments = fragments if fragments is not None else ["Hello", " there"]
        self.fail_after = fail_after
        self.open_error = open_error
        self.calls: List[List[ChatTurn]] = []
        self.sources: List[CountingSource] = []

    async def stream_answer(self, turns: Sequence[ChatTurn]) -> CountingSource:
        self.calls.append(list(turns))
        if self.open_error:
            raise self.open_error
        source = CountingSource(self.fragments, fail_after=self.fail_after)
        self.sources.append(source)
        return source


@pytest.fixture
def embedding_generator():
    return FakeEmbeddingGenerator()


@pytest.fixture
def vector_store():
    return FakeVectorStore()


@pytest.fixture
def answer_generator():
    return FakeAnswerGenerator()
