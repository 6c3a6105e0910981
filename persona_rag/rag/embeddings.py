"""
Embedding Module

Turns query text into a vector using the same provider that embedded the
stored chunks. A vector is only comparable with chunks from its own
provider, so the provider is chosen per call rather than per process.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from persona_rag.config import settings
from persona_rag.rag.providers import (
    EmbeddingProvider,
    get_embedding_model_name,
    require_provider_api_key,
)

logger = logging.getLogger(__name__)


class EmbeddingGenerator:
    """
    Generates query embeddings for any supported provider.

    Clients are created on first use so a deployment only needs keys for
    the providers it actually serves. Failures propagate to the caller.
    """

    def __init__(
        self,
        openai_client: Optional[Any] = None,
        genai_client: Optional[Any] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the embedding generator.

        Args:
            openai_client: Optional pre-configured AsyncOpenAI client.
            genai_client: Optional pre-configured google-genai client.
            http_client: Optional HTTP client for the Hugging Face endpoint.
        """
        self._openai_client = openai_client
        self._genai_client = genai_client
        self._http_client = http_client

        self._embedders: Dict[EmbeddingProvider, Callable[[str, str], Awaitable[List[float]]]] = {
            EmbeddingProvider.OPENAI: self._embed_openai,
            EmbeddingProvider.GEMINI: self._embed_gemini,
            EmbeddingProvider.HUGGINGFACE: self._embed_huggingface,
        }

    async def embed_query(self, text: str, provider: EmbeddingProvider) -> List[float]:
        """
        Generate an embedding for a single query string.

        Args:
            text: The query text.
            provider: Provider whose embedding model to use.

        Returns:
            Embedding vector.

        Raises:
            ValueError: If the provider returned no vector.
            Exception: Any client error, unchanged.
        """
        model = get_embedding_model_name(provider)
        embedding = await self._embedders[provider](text, model)

        if not embedding:
            raise ValueError(f"{provider.value} returned an empty embedding")

        logger.debug(f"Embedded query with {provider.value}/{model} ({len(embedding)}d)")
        return list(embedding)

    async def _embed_openai(self, text: str, model: str) -> List[float]:
        if self._openai_client is None:
            from openai import AsyncOpenAI

            self._openai_client = AsyncOpenAI(
                api_key=require_provider_api_key(EmbeddingProvider.OPENAI)
            )

        response = await self._openai_client.embeddings.create(model=model, input=text)
        return response.data[0].embedding

    async def _embed_gemini(self, text: str, model: str) -> List[float]:
        if self._genai_client is None:
            from google import genai

            self._genai_client = genai.Client(
                api_key=require_provider_api_key(EmbeddingProvider.GEMINI)
            )

        result = await self._genai_client.aio.models.embed_content(model=model, contents=text)
        if not result.embeddings:
            return []
        return result.embeddings[0].values

    async def _embed_huggingface(self, text: str, model: str) -> List[float]:
        api_key = require_provider_api_key(EmbeddingProvider.HUGGINGFACE)
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=settings.request_timeout_seconds)

        response = await self._http_client.post(
            f"{settings.huggingface_inference_url}/{model}/pipeline/feature-extraction",
            headers={"Authorization": f"Bearer {api_key}"},
            json={"inputs": text},
        )
        response.raise_for_status()

        vector = response.json()
        # Some models return one vector per input even for a single string
        if vector and isinstance(vector[0], list):
            vector = vector[0]
        return vector

    async def close(self) -> None:
        """Close the Hugging Face HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


_embedding_generator: Optional[EmbeddingGenerator] = None


def get_embedding_generator() -> EmbeddingGenerator:
    """Get the global embedding generator instance."""
    global _embedding_generator
    if _embedding_generator is None:
        _embedding_generator = EmbeddingGenerator()
    return _embedding_generator
