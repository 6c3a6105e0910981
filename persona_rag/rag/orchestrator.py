"""
RAG Query Orchestrator

Handles one question end to end: provider resolution, query embedding,
similarity search, context assembly and the streamed answer.

Nothing here retries. Each upstream failure is classified, logged and
raised to the caller, who decides whether to ask again.
"""

import logging
from typing import AsyncIterator, List, Optional, Sequence

from persona_rag.config import settings
from persona_rag.exceptions import (
    BadRequest,
    UpstreamEmbeddingFailure,
    UpstreamGenerationFailure,
    UpstreamStoreFailure,
)
from persona_rag.rag.embeddings import EmbeddingGenerator, get_embedding_generator
from persona_rag.rag.generation import AnswerGenerator, ChatTurn, get_answer_generator
from persona_rag.rag.providers import normalize_embedding_provider
from persona_rag.rag.streaming import relay_fragments
from persona_rag.rag.tables import resolve_binding
from persona_rag.rag.vector_store import RetrievedChunk, VectorStore, get_vector_store

logger = logging.getLogger(__name__)

# Retrieval cutoffs
SIMILARITY_THRESHOLD = 0.75
MATCH_COUNT = 5

CONTEXT_DELIMITER = "\n\n---\n\n"

INSUFFICIENT_INFO_REPLY = (
    "I'm sorry, but I don't have enough information to answer that question. "
    "You can find more about {owner} on their LinkedIn or GitHub."
)

PERSONA_PROMPT = """You are a very enthusiastic personal assistant for {owner}.
You are helping a user who is visiting {owner}'s personal website.
Your name is "{assistant}".
You are friendly and helpful.
You will be given a question and a context.
The context is a series of excerpts from {owner}'s public notes and pages.
You should use the provided context to answer the question.
If the context does not contain the answer, say "{insufficient}" and do not add any more information.
Do not mention that you are using a context.
Answer in the same language as the question.
Be concise and helpful.
Here is the context:
{context}"""


def build_context(chunks: Sequence[RetrievedChunk]) -> str:
    """
    Join chunk texts in the order the store returned them.

    Args:
        chunks: Matches, most similar first.

    Returns:
        Context text, empty when there are no matches.
    """
    return CONTEXT_DELIMITER.join(chunk.text for chunk in chunks)


def build_system_prompt(
    context_text: str,
    owner: Optional[str] = None,
    assistant: Optional[str] = None,
) -> str:
    """Fill the persona prompt with the retrieved context."""
    owner = owner or settings.site_owner_name
    return PERSONA_PROMPT.format(
        owner=owner,
        assistant=assistant or settings.assistant_name,
        insufficient=INSUFFICIENT_INFO_REPLY.format(owner=owner),
        context=context_text,
    ).strip()


class RAGQueryOrchestrator:
    """
    Answers questions from the knowledge base.

    Collaborators are injected so tests can replace them; by default the
    process-wide instances are used.
    """

    def __init__(
        self,
        vector_store: Optional[VectorStore] = None,
        embedding_generator: Optional[EmbeddingGenerator] = None,
        answer_generator: Optional[AnswerGenerator] = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            vector_store: Store used for similarity search.
            embedding_generator: Generator for query embeddings.
            answer_generator: Streaming chat model.
        """
        self.vector_store = vector_store or get_vector_store()
        self.embedding_generator = embedding_generator or get_embedding_generator()
        self.answer_generator = answer_generator or get_answer_generator()

    async def answer_query(
        self,
        history: Sequence[ChatTurn],
        provider: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Retrieve context for the last message and start streaming an answer.

        Everything up to opening the answer stream happens before this
        returns, so pre-stream failures are raised here rather than from
        the iterator.

        Args:
            history: Conversation so far; the last turn is the question.
            provider: Embedding provider hint, normalized with fallback.

        Returns:
            Iterator of answer fragments in generation order.

        Raises:
            BadRequest: No history, or the last turn has no content.
            UpstreamEmbeddingFailure: The question could not be embedded.
            UpstreamStoreFailure: The match procedure failed.
            UpstreamGenerationFailure: The answer stream could not be opened
                (or, from the iterator, broke mid-stream).
        """
        if not history:
            raise BadRequest("Bad Request: No messages found")

        question = history[-1].content
        if not question or not question.strip():
            raise BadRequest("Bad Request: Missing user query")

        resolved = normalize_embedding_provider(provider)
        binding = resolve_binding(resolved)

        try:
            query_embedding = await self.embedding_generator.embed_query(question, resolved)
        except Exception as e:
            logger.error(f"Failed to embed query with {resolved.value}: {e}")
            raise UpstreamEmbeddingFailure(
                f"Error embedding query: {e}", provider=resolved.value
            ) from e

        try:
            chunks = await self.vector_store.match_chunks(
                binding,
                query_embedding,
                similarity_threshold=SIMILARITY_THRESHOLD,
                match_count=MATCH_COUNT,
            )
        except Exception as e:
            logger.error(f"Error matching documents via {binding.match_function}: {e}")
            raise UpstreamStoreFailure(
                f"Error matching documents: {e}", provider=resolved.value
            ) from e

        if chunks:
            logger.info(
                f"Retrieved {len(chunks)} chunks from {binding.match_function} "
                f"(top_similarity={chunks[0].similarity:.3f})"
            )
        else:
            logger.info(f"No chunks above {SIMILARITY_THRESHOLD} from {binding.match_function}")

        turns = self._build_turns(history, build_context(chunks))

        try:
            source = await self.answer_generator.stream_answer(turns)
        except Exception as e:
            logger.error(f"Failed to start answer stream: {e}")
            raise UpstreamGenerationFailure(f"Error generating answer: {e}") from e

        return relay_fragments(source)

    @staticmethod
    def _build_turns(history: Sequence[ChatTurn], context_text: str) -> List[ChatTurn]:
        """Prepend the system turn to a copy of the history."""
        return [ChatTurn(role="system", content=build_system_prompt(context_text)), *history]


_orchestrator: Optional[RAGQueryOrchestrator] = None


def get_orchestrator() -> RAGQueryOrchestrator:
    """Get the global orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = RAGQueryOrchestrator()
    return _orchestrator
