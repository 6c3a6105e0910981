"""
RAG Storage Bindings

Maps each embedding provider to the database objects holding vectors that
provider produced. Vectors from different providers have different
dimensions, so every provider gets its own chunk table, LangChain view and
match functions.

To support a new provider, add one entry to ``PROVIDER_BINDINGS``.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from persona_rag.rag.providers import EmbeddingProvider, normalize_embedding_provider


@dataclass(frozen=True)
class ProviderStorageBinding:
    """Storage object names for one embedding provider."""

    chunk_table: str
    legacy_chunk_view: str
    match_function: str
    legacy_match_function: str


PROVIDER_BINDINGS: Mapping[EmbeddingProvider, ProviderStorageBinding] = MappingProxyType(
    {
        EmbeddingProvider.OPENAI: ProviderStorageBinding(
            chunk_table="rag_chunks_openai",
            legacy_chunk_view="lc_chunks_openai",
            match_function="match_rag_chunks_openai",
            legacy_match_function="match_lc_chunks_openai",
        ),
        EmbeddingProvider.GEMINI: ProviderStorageBinding(
            chunk_table="rag_chunks_gemini",
            legacy_chunk_view="lc_chunks_gemini",
            match_function="match_rag_chunks_gemini",
            legacy_match_function="match_lc_chunks_gemini",
        ),
        EmbeddingProvider.HUGGINGFACE: ProviderStorageBinding(
            chunk_table="rag_chunks_hf",
            legacy_chunk_view="lc_chunks_hf",
            match_function="match_rag_chunks_hf",
            legacy_match_function="match_lc_chunks_hf",
        ),
    }
)

# Single-table objects from before multi-provider support
LEGACY_RAG_CHUNKS_TABLE = "rag_chunks"
LEGACY_LC_CHUNKS_VIEW = "lc_chunks"
LEGACY_RAG_MATCH_FUNCTION = "match_rag_chunks"
LEGACY_LC_MATCH_FUNCTION = "match_lc_chunks"


def resolve_binding(provider: EmbeddingProvider) -> ProviderStorageBinding:
    """
    Get the storage binding for an already-normalized provider.

    Raises:
        KeyError: If ``provider`` is not a supported provider. Callers are
            expected to normalize first, so this is a programming error.
    """
    return PROVIDER_BINDINGS[provider]


def get_rag_chunks_table(provider: Any = None) -> str:
    return resolve_binding(normalize_embedding_provider(provider)).chunk_table


def get_lc_chunks_view(provider: Any = None) -> str:
    return resolve_binding(normalize_embedding_provider(provider)).legacy_chunk_view


def get_rag_match_function(provider: Any = None) -> str:
    return resolve_binding(normalize_embedding_provider(provider)).match_function


def get_lc_match_function(provider: Any = None) -> str:
    return resolve_binding(normalize_embedding_provider(provider)).legacy_match_function


def get_legacy_rag_chunks_table() -> str:
    return LEGACY_RAG_CHUNKS_TABLE


def get_legacy_lc_chunks_view() -> str:
    return LEGACY_LC_CHUNKS_VIEW


def get_legacy_rag_match_function() -> str:
    return LEGACY_RAG_MATCH_FUNCTION


def get_legacy_lc_match_function() -> str:
    return LEGACY_LC_MATCH_FUNCTION
