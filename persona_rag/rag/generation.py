"""
Answer Generation Service

Streams chat completions from the configured LLM provider.

OpenAI and Hugging Face (through its OpenAI-compatible router) share one
implementation; Gemini uses the google-genai async streaming API.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from persona_rag.config import settings
from persona_rag.rag.providers import (
    EmbeddingProvider,
    get_llm_model_name,
    normalize_llm_provider,
    require_provider_api_key,
)

logger = logging.getLogger(__name__)

CHAT_ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class ChatTurn:
    """One message of a conversation."""

    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in CHAT_ROLES:
            raise ValueError(f"Unsupported chat role: {self.role!r}")

    def to_dict(self) -> Dict[str, str]:
        """Convert to the OpenAI message format."""
        return {"role": self.role, "content": self.content}


class AnswerGenerator(ABC):
    """Opens a streamed completion for a conversation."""

    @abstractmethod
    async def stream_answer(self, turns: Sequence[ChatTurn]) -> AsyncIterator[str]:
        """
        Start generating a reply.

        Awaiting this opens the upstream stream, so connection and
        authentication errors surface here. The returned iterator yields
        text fragments in the order the provider produces them and closes
        the upstream stream when it is closed early.
        """
        pass


class OpenAIChatGenerator(AnswerGenerator):
    """Chat completions over the OpenAI API or any compatible endpoint."""

    def __init__(
        self,
        provider: EmbeddingProvider = EmbeddingProvider.OPENAI,
        client: Optional[Any] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        self.provider = provider
        self.model = get_llm_model_name(provider, model)
        self.base_url = base_url
        self.temperature = settings.temperature
        self.max_tokens = settings.max_response_tokens
        self._client = client

        logger.info(f"OpenAIChatGenerator initialized - provider: {provider.value}, model: {self.model}")

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=require_provider_api_key(self.provider),
                base_url=self.base_url,
            )
        return self._client

    async def stream_answer(self, turns: Sequence[ChatTurn]) -> AsyncIterator[str]:
        stream = await self._get_client().chat.completions.create(
            model=self.model,
            messages=[turn.to_dict() for turn in turns],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            stream=True,
        )
        return self._fragments(stream)

    async def _fragments(self, stream) -> AsyncIterator[str]:
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        finally:
            await stream.close()


class GeminiChatGenerator(AnswerGenerator):
    """Chat completions over the Gemini API."""

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None) -> None:
        self.model = get_llm_model_name(EmbeddingProvider.GEMINI, model)
        self.temperature = settings.temperature
        self.max_tokens = settings.max_response_tokens
        self._client = client

        logger.info(f"GeminiChatGenerator initialized - model: {self.model}")

    def _get_client(self):
        if self._client is None:
            from google import genai

            self._client = genai.Client(
                api_key=require_provider_api_key(EmbeddingProvider.GEMINI)
            )
        return self._client

    @staticmethod
    def _build_contents(turns: Sequence[ChatTurn]) -> List[Dict[str, Any]]:
        # Gemini takes system text separately and calls the assistant "model"
        return [
            {
                "role": "model" if turn.role == "assistant" else "user",
                "parts": [{"text": turn.content}],
            }
            for turn in turns
            if turn.role != "system"
        ]

    async def stream_answer(self, turns: Sequence[ChatTurn]) -> AsyncIterator[str]:
        from google.genai import types

        system_text = "\n\n".join(turn.content for turn in turns if turn.role == "system")
        config = types.GenerateContentConfig(
            system_instruction=system_text or None,
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
        )

        stream = await self._get_client().aio.models.generate_content_stream(
            model=self.model,
            contents=self._build_contents(turns),
            config=config,
        )
        return self._fragments(stream)

    async def _fragments(self, stream) -> AsyncIterator[str]:
        try:
            async for chunk in stream:
                if chunk.text:
                    yield chunk.text
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()


def create_answer_generator(provider: EmbeddingProvider) -> AnswerGenerator:
    """
    Factory function to create the generator for a provider.

    Args:
        provider: Normalized LLM provider.
    """
    if provider == EmbeddingProvider.GEMINI:
        return GeminiChatGenerator()
    if provider == EmbeddingProvider.HUGGINGFACE:
        return OpenAIChatGenerator(
            provider=EmbeddingProvider.HUGGINGFACE,
            base_url=settings.huggingface_base_url,
        )
    return OpenAIChatGenerator()


_answer_generator: Optional[AnswerGenerator] = None


def get_answer_generator() -> AnswerGenerator:
    """Get the global generator for the configured LLM provider."""
    global _answer_generator
    if _answer_generator is None:
        _answer_generator = create_answer_generator(normalize_llm_provider(settings.llm_provider))
    return _answer_generator
