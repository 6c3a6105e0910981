"""
Application Configuration

Manages environment variables and application settings using Pydantic Settings.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    # Provider selection
    llm_provider: Optional[str] = None
    embedding_provider: Optional[str] = None

    # OpenAI
    openai_api_key: str = ""
    openai_model: Optional[str] = None
    openai_embedding_model: Optional[str] = None

    # Google Gemini
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("google_api_key", "gemini_api_key"),
    )
    google_llm_model: Optional[str] = None
    google_embedding_model: Optional[str] = None

    # Hugging Face
    huggingface_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("huggingface_api_key", "huggingfacehub_api_token"),
    )
    huggingface_llm_model: Optional[str] = None
    huggingface_embedding_model: Optional[str] = None
    huggingface_base_url: str = "https://router.huggingface.co/v1"
    huggingface_inference_url: str = "https://router.huggingface.co/hf-inference/models"

    # Provider-agnostic model overrides
    llm_model: Optional[str] = None
    embedding_model: Optional[str] = None

    # Generation
    max_response_tokens: int = 1024
    temperature: float = 0.3

    # Vector store
    vector_store_backend: str = "supabase"  # supabase or chroma
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    chroma_persist_directory: str = "./data/chroma"
    request_timeout_seconds: float = 30.0

    # Persona
    site_owner_name: str = "the site owner"
    assistant_name: str = "Personal AI Assistant"

    # Manual ingestion ("package.module:function"), unset disables the endpoint
    ingestion_procedure: Optional[str] = None

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
