"""
Vector Store Module

Runs similarity search against the per-provider chunk storage.

Production data lives in Supabase (Postgres + pgvector), where each provider
has a ``match_rag_chunks_*`` function exposed over PostgREST RPC. A ChromaDB
store with one collection per chunk table is available for local development.
Both implement the abstract VectorStore interface.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from persona_rag.config import settings
from persona_rag.rag.tables import ProviderStorageBinding

logger = logging.getLogger(__name__)


@dataclass
class RetrievedChunk:
    """A chunk returned by a match procedure."""

    text: str
    similarity: float  # higher = more similar
    source_id: Optional[str] = None
    title: Optional[str] = None
    source_url: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RetrievedChunk":
        """Build a chunk from a match function result row."""
        text = row.get("chunk")
        if text is None:
            text = row.get("content", "")
        return cls(
            text=text or "",
            similarity=float(row.get("similarity") or 0.0),
            source_id=row.get("doc_id") or row.get("id"),
            title=row.get("title"),
            source_url=row.get("source_url"),
        )


class VectorStore(ABC):
    """
    Abstract base class for vector stores.

    Implementations must return matches in similarity-descending order and
    must let failures propagate; callers decide how to report them.
    """

    @abstractmethod
    async def match_chunks(
        self,
        binding: ProviderStorageBinding,
        query_embedding: List[float],
        similarity_threshold: float,
        match_count: int,
    ) -> List[RetrievedChunk]:
        """
        Find chunks similar to the query vector.

        Args:
            binding: Storage objects for the provider that produced the vector.
            query_embedding: The query vector.
            similarity_threshold: Minimum similarity a chunk must reach.
            match_count: Maximum number of chunks to return.

        Returns:
            Matching chunks ordered by similarity (highest first).
        """
        pass

    async def close(self) -> None:
        """Release any held connections."""
        pass

    def get_collection_stats(self) -> Dict[str, Any]:
        """Describe the store for health checks."""
        return {"backend": type(self).__name__}


class SupabaseVectorStore(VectorStore):
    """
    Supabase-backed vector store.

    Calls the provider's match function through the PostgREST RPC endpoint
    using the service role key.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        service_role_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the Supabase vector store.

        Args:
            url: Supabase project URL.
            service_role_key: Service role key used for RPC calls.
            client: Optional pre-configured HTTP client.
        """
        self.url = (url or settings.supabase_url).rstrip("/")
        self.service_role_key = service_role_key or settings.supabase_service_role_key

        if not self.url or not self.service_role_key:
            logger.warning("Supabase URL or service role key not configured - retrieval will fail")

        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)

        logger.info(f"Supabase vector store initialized: url='{self.url}'")

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "Content-Type": "application/json",
        }

    async def match_chunks(
        self,
        binding: ProviderStorageBinding,
        query_embedding: List[float],
        similarity_threshold: float,
        match_count: int,
    ) -> List[RetrievedChunk]:
        """Invoke ``binding.match_function`` and convert its rows."""
        response = await self._client.post(
            f"{self.url}/rest/v1/rpc/{binding.match_function}",
            headers=self._headers(),
            json={
                "query_embedding": query_embedding,
                "similarity_threshold": similarity_threshold,
                "match_count": match_count,
            },
        )
        response.raise_for_status()

        rows = response.json() or []
        chunks = [RetrievedChunk.from_row(row) for row in rows]

        logger.debug(f"{binding.match_function} returned {len(chunks)} chunks")
        return chunks

    async def close(self) -> None:
        await self._client.aclose()

    def get_collection_stats(self) -> Dict[str, Any]:
        return {
            "backend": "supabase",
            "url": self.url,
            "configured": bool(self.url and self.service_role_key),
        }


class ChromaVectorStore(VectorStore):
    """
    ChromaDB-based vector store for local development.

    Each provider's chunk table maps to a collection of the same name, so
    vectors from different providers never share a collection.
    """

    def __init__(self, persist_directory: Optional[str] = None) -> None:
        """
        Initialize the ChromaDB vector store.

        Args:
            persist_directory: Directory for persistent storage.
        """
        import chromadb
        from chromadb.config import Settings as ChromaSettings

        self.persist_directory = persist_directory or settings.chroma_persist_directory

        persist_path = Path(self.persist_directory)
        persist_path.mkdir(parents=True, exist_ok=True)

        self._client = chromadb.PersistentClient(
            path=str(persist_path),
            settings=ChromaSettings(anonymized_telemetry=False),
        )

        logger.info(f"ChromaDB initialized: persist_dir='{self.persist_directory}'")

    def _collection(self, binding: ProviderStorageBinding):
        # Cosine distance, matching the pgvector match functions
        return self._client.get_or_create_collection(
            name=binding.chunk_table,
            metadata={"hnsw:space": "cosine"},
        )

    async def match_chunks(
        self,
        binding: ProviderStorageBinding,
        query_embedding: List[float],
        similarity_threshold: float,
        match_count: int,
    ) -> List[RetrievedChunk]:
        """Query the provider's collection and keep results above the threshold."""
        collection = self._collection(binding)
        count = collection.count()
        if count == 0:
            return []

        results = collection.query(
            query_embeddings=[query_embedding],
            n_results=min(match_count, count),
            include=["documents", "metadatas", "distances"],
        )

        chunks = []
        if results["ids"] and results["ids"][0]:
            for i, doc_id in enumerate(results["ids"][0]):
                # Cosine distance to cosine similarity
                similarity = 1.0 - results["distances"][0][i]
                if similarity < similarity_threshold:
                    continue
                metadata = results["metadatas"][0][i] if results["metadatas"] else {}
                metadata = metadata or {}
                chunks.append(
                    RetrievedChunk(
                        text=results["documents"][0][i] if results["documents"] else "",
                        similarity=similarity,
                        source_id=metadata.get("doc_id", doc_id),
                        title=metadata.get("title"),
                        source_url=metadata.get("source_url"),
                    )
                )

        logger.debug(f"Collection '{binding.chunk_table}' returned {len(chunks)} chunks")
        return chunks

    def get_collection_stats(self) -> Dict[str, Any]:
        collections = {}
        for entry in self._client.list_collections():
            # Newer chromadb releases return names instead of collections
            name = entry if isinstance(entry, str) else entry.name
            collections[name] = self._client.get_collection(name).count()

        return {
            "backend": "chroma",
            "persist_directory": self.persist_directory,
            "collections": collections,
        }


def create_vector_store(store_type: str = "supabase", **kwargs: Any) -> VectorStore:
    """
    Factory function to create a vector store instance.

    Args:
        store_type: Type of vector store ("supabase" or "chroma").
        **kwargs: Additional arguments passed to the store constructor.

    Raises:
        ValueError: If store_type is not supported.
    """
    if store_type == "supabase":
        return SupabaseVectorStore(**kwargs)
    elif store_type == "chroma":
        return ChromaVectorStore(**kwargs)
    else:
        raise ValueError(f"Unsupported vector store type: {store_type}")


_vector_store: Optional[VectorStore] = None


def get_vector_store() -> VectorStore:
    """Get the global vector store instance for the configured backend."""
    global _vector_store
    if _vector_store is None:
        _vector_store = create_vector_store(settings.vector_store_backend)
    return _vector_store


async def close_vector_store() -> None:
    """Close and forget the global vector store."""
    global _vector_store
    if _vector_store is not None:
        await _vector_store.close()
        _vector_store = None
