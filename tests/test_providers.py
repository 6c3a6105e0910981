"""
Tests for persona_rag/rag/providers.py
Provider normalization, model names and API keys.
"""

import pytest

from persona_rag.config import settings
from persona_rag.rag.providers import (
    EmbeddingProvider,
    get_default_embedding_provider,
    get_default_llm_provider,
    get_embedding_model_name,
    get_llm_model_name,
    get_provider_api_key,
    normalize_embedding_provider,
    normalize_model_provider,
    require_provider_api_key,
)


class TestNormalizeModelProvider:
    """Test provider string normalization."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("openai", EmbeddingProvider.OPENAI),
            ("Gemini", EmbeddingProvider.GEMINI),
            ("  google ", EmbeddingProvider.GEMINI),
            ("HF", EmbeddingProvider.HUGGINGFACE),
            ("hugging_face", EmbeddingProvider.HUGGINGFACE),
            (EmbeddingProvider.GEMINI, EmbeddingProvider.GEMINI),
        ],
    )
    def test_recognized_values(self, raw, expected):
        assert normalize_model_provider(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "cohere", 42, {"name": "gemini"}])
    def test_unrecognized_values_fall_back(self, raw):
        assert normalize_model_provider(raw) == EmbeddingProvider.OPENAI
        assert normalize_model_provider(raw, EmbeddingProvider.GEMINI) == EmbeddingProvider.GEMINI


class TestDefaults:
    """Test configured default providers."""

    def test_defaults_to_openai(self):
        assert get_default_llm_provider() == EmbeddingProvider.OPENAI
        assert get_default_embedding_provider() == EmbeddingProvider.OPENAI

    def test_embedding_default_follows_llm_provider(self, monkeypatch):
        monkeypatch.setattr(settings, "llm_provider", "gemini")
        assert get_default_embedding_provider() == EmbeddingProvider.GEMINI

    def test_embedding_provider_overrides_llm_provider(self, monkeypatch):
        monkeypatch.setattr(settings, "llm_provider", "gemini")
        monkeypatch.setattr(settings, "embedding_provider", "huggingface")
        assert get_default_embedding_provider() == EmbeddingProvider.HUGGINGFACE
        assert normalize_embedding_provider("nonsense") == EmbeddingProvider.HUGGINGFACE

    def test_invalid_configured_provider_falls_back_to_openai(self, monkeypatch):
        monkeypatch.setattr(settings, "llm_provider", "anthropic")
        assert get_default_llm_provider() == EmbeddingProvider.OPENAI


class TestModelNames:
    """Test model name resolution order."""

    def test_provider_defaults(self):
        assert get_llm_model_name(EmbeddingProvider.OPENAI) == "gpt-4o-mini"
        assert get_embedding_model_name(EmbeddingProvider.GEMINI) == "text-embedding-004"

    def test_generic_override(self, monkeypatch):
        monkeypatch.setattr(settings, "llm_model", "custom-chat")
        assert get_llm_model_name(EmbeddingProvider.GEMINI) == "custom-chat"

    def test_provider_override_beats_generic(self, monkeypatch):
        monkeypatch.setattr(settings, "embedding_model", "generic-embed")
        monkeypatch.setattr(settings, "openai_embedding_model", "text-embedding-3-large")
        assert get_embedding_model_name(EmbeddingProvider.OPENAI) == "text-embedding-3-large"

    def test_explicit_beats_everything(self, monkeypatch):
        monkeypatch.setattr(settings, "google_llm_model", "gemini-pro")
        assert get_llm_model_name(EmbeddingProvider.GEMINI, "gemini-2.0-flash") == "gemini-2.0-flash"

    def test_blank_override_is_ignored(self, monkeypatch):
        monkeypatch.setattr(settings, "openai_model", "   ")
        assert get_llm_model_name(EmbeddingProvider.OPENAI) == "gpt-4o-mini"


class TestApiKeys:
    """Test API key lookup."""

    def test_missing_key(self, monkeypatch):
        monkeypatch.setattr(settings, "huggingface_api_key", "")
        assert get_provider_api_key(EmbeddingProvider.HUGGINGFACE) is None
        with pytest.raises(ValueError, match="HUGGINGFACE_API_KEY"):
            require_provider_api_key(EmbeddingProvider.HUGGINGFACE)

    def test_key_is_trimmed(self, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_key", "  g-key ")
        assert require_provider_api_key(EmbeddingProvider.GEMINI) == "g-key"
