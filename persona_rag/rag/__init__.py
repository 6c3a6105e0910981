"""
RAG (Retrieval-Augmented Generation) Pipeline

This package answers questions from the site owner's knowledge base.

Modules:
    - providers: Provider enum, normalization, model defaults and API keys
    - tables: Per-provider chunk tables and match functions
    - embeddings: Query embeddings for every provider
    - vector_store: Similarity search (Supabase RPC, or ChromaDB locally)
    - generation: Streaming chat completions
    - streaming: Bounded producer/consumer fragment relay
    - orchestrator: End-to-end question answering
    - cli: Command-line interface for checking the knowledge base

Usage:
    from persona_rag.rag import ChatTurn, get_orchestrator

    fragments = await get_orchestrator().answer_query(
        [ChatTurn(role="user", content="What projects are on the site?")],
        provider="gemini",
    )
    async for fragment in fragments:
        print(fragment, end="")
"""

from persona_rag.rag.providers import (
    EmbeddingProvider,
    normalize_model_provider,
    normalize_embedding_provider,
    normalize_llm_provider,
)
from persona_rag.rag.tables import (
    PROVIDER_BINDINGS,
    ProviderStorageBinding,
    resolve_binding,
)
from persona_rag.rag.embeddings import EmbeddingGenerator, get_embedding_generator
from persona_rag.rag.vector_store import (
    ChromaVectorStore,
    RetrievedChunk,
    SupabaseVectorStore,
    VectorStore,
    create_vector_store,
    get_vector_store,
)
from persona_rag.rag.generation import (
    AnswerGenerator,
    ChatTurn,
    GeminiChatGenerator,
    OpenAIChatGenerator,
    create_answer_generator,
    get_answer_generator,
)
from persona_rag.rag.streaming import relay_fragments
from persona_rag.rag.orchestrator import RAGQueryOrchestrator, get_orchestrator

__all__ = [
    # Providers
    "EmbeddingProvider",
    "normalize_model_provider",
    "normalize_embedding_provider",
    "normalize_llm_provider",
    # Storage bindings
    "PROVIDER_BINDINGS",
    "ProviderStorageBinding",
    "resolve_binding",
    # Embeddings
    "EmbeddingGenerator",
    "get_embedding_generator",
    # Vector Store
    "VectorStore",
    "SupabaseVectorStore",
    "ChromaVectorStore",
    "RetrievedChunk",
    "create_vector_store",
    "get_vector_store",
    # Generation
    "AnswerGenerator",
    "ChatTurn",
    "OpenAIChatGenerator",
    "GeminiChatGenerator",
    "create_answer_generator",
    "get_answer_generator",
    # Orchestration
    "relay_fragments",
    "RAGQueryOrchestrator",
    "get_orchestrator",
]
