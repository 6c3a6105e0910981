"""
Model Provider Normalization

Resolves free-form provider strings into one of the supported providers and
exposes per-provider model names and API keys.

Unrecognized or missing provider names never fail: they fall back to the
configured default so retrieval stays available when the caller sends no
(or bad) provider metadata.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from persona_rag.config import settings

logger = logging.getLogger(__name__)


class EmbeddingProvider(str, Enum):
    """Supported model providers."""

    OPENAI = "openai"
    GEMINI = "gemini"
    HUGGINGFACE = "huggingface"


# Alternate spellings accepted from callers
PROVIDER_ALIASES: Dict[str, EmbeddingProvider] = {
    "openai": EmbeddingProvider.OPENAI,
    "gemini": EmbeddingProvider.GEMINI,
    "google": EmbeddingProvider.GEMINI,
    "huggingface": EmbeddingProvider.HUGGINGFACE,
    "hugging_face": EmbeddingProvider.HUGGINGFACE,
    "hf": EmbeddingProvider.HUGGINGFACE,
}

DEFAULT_LLM_MODELS: Dict[EmbeddingProvider, str] = {
    EmbeddingProvider.OPENAI: "gpt-4o-mini",
    EmbeddingProvider.GEMINI: "gemini-1.5-flash-latest",
    EmbeddingProvider.HUGGINGFACE: "mistralai/Mixtral-8x7B-Instruct-v0.1",
}

DEFAULT_EMBEDDING_MODELS: Dict[EmbeddingProvider, str] = {
    EmbeddingProvider.OPENAI: "text-embedding-3-small",
    EmbeddingProvider.GEMINI: "text-embedding-004",
    EmbeddingProvider.HUGGINGFACE: "sentence-transformers/all-MiniLM-L6-v2",
}

MISSING_KEY_MESSAGES: Dict[EmbeddingProvider, str] = {
    EmbeddingProvider.OPENAI: (
        "Missing OpenAI API key. Set the OPENAI_API_KEY environment variable."
    ),
    EmbeddingProvider.GEMINI: (
        "Missing Gemini API key. Set GOOGLE_API_KEY or GEMINI_API_KEY environment variable."
    ),
    EmbeddingProvider.HUGGINGFACE: (
        "Missing Hugging Face API key. Set HUGGINGFACE_API_KEY or HUGGINGFACEHUB_API_TOKEN."
    ),
}


def normalize_model_provider(
    provider: Any,
    fallback: EmbeddingProvider = EmbeddingProvider.OPENAI,
) -> EmbeddingProvider:
    """
    Map an arbitrary value onto a supported provider.

    Args:
        provider: Raw provider value (may be None, empty or malformed).
        fallback: Provider returned when the value is not recognized.

    Returns:
        A canonical EmbeddingProvider.
    """
    if isinstance(provider, EmbeddingProvider):
        return provider
    if not isinstance(provider, str):
        return fallback

    key = provider.strip().lower()
    if not key:
        return fallback

    resolved = PROVIDER_ALIASES.get(key)
    if resolved is None:
        logger.debug(f"Unknown provider '{provider}', using {fallback.value}")
        return fallback
    return resolved


def get_default_llm_provider() -> EmbeddingProvider:
    """Default LLM provider (LLM_PROVIDER, else openai)."""
    return normalize_model_provider(settings.llm_provider, EmbeddingProvider.OPENAI)


def get_default_embedding_provider() -> EmbeddingProvider:
    """Default embedding provider (EMBEDDING_PROVIDER, else the LLM default)."""
    return normalize_model_provider(
        settings.embedding_provider or settings.llm_provider,
        get_default_llm_provider(),
    )


def normalize_llm_provider(provider: Any) -> EmbeddingProvider:
    return normalize_model_provider(provider, get_default_llm_provider())


def normalize_embedding_provider(provider: Any) -> EmbeddingProvider:
    return normalize_model_provider(provider, get_default_embedding_provider())


def get_provider_api_key(provider: EmbeddingProvider) -> Optional[str]:
    """Return the configured API key for a provider, or None if unset."""
    keys = {
        EmbeddingProvider.OPENAI: settings.openai_api_key,
        EmbeddingProvider.GEMINI: settings.gemini_api_key,
        EmbeddingProvider.HUGGINGFACE: settings.huggingface_api_key,
    }
    value = (keys.get(provider) or "").strip()
    return value or None


def require_provider_api_key(provider: EmbeddingProvider) -> str:
    """
    Return the API key for a provider.

    Raises:
        ValueError: If the key is not configured.
    """
    api_key = get_provider_api_key(provider)
    if not api_key:
        raise ValueError(MISSING_KEY_MESSAGES[provider])
    return api_key


def _first_set(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


def get_llm_model_name(provider: EmbeddingProvider, explicit: Optional[str] = None) -> str:
    """Resolve the chat model: explicit > provider override > LLM_MODEL > default."""
    overrides = {
        EmbeddingProvider.OPENAI: settings.openai_model,
        EmbeddingProvider.GEMINI: settings.google_llm_model,
        EmbeddingProvider.HUGGINGFACE: settings.huggingface_llm_model,
    }
    return (
        _first_set(explicit, overrides.get(provider), settings.llm_model)
        or DEFAULT_LLM_MODELS[provider]
    )


def get_embedding_model_name(provider: EmbeddingProvider, explicit: Optional[str] = None) -> str:
    """Resolve the embedding model: explicit > provider override > EMBEDDING_MODEL > default."""
    overrides = {
        EmbeddingProvider.OPENAI: settings.openai_embedding_model,
        EmbeddingProvider.GEMINI: settings.google_embedding_model,
        EmbeddingProvider.HUGGINGFACE: settings.huggingface_embedding_model,
    }
    return (
        _first_set(explicit, overrides.get(provider), settings.embedding_model)
        or DEFAULT_EMBEDDING_MODELS[provider]
    )


def get_provider_defaults() -> Dict[str, str]:
    """Default providers, for diagnostics endpoints."""
    return {
        "default_llm_provider": get_default_llm_provider().value,
        "default_embedding_provider": get_default_embedding_provider().value,
    }
