"""
Configuration for character memory retrieval.

Each concern has its own settings class with a dedicated env prefix:

- ``CHARMEM_EMBEDDING_*``: embedding provider HTTP behaviour
- ``CHARMEM_VECTOR_*``: vector index persistence
- ``CHARMEM_SEARCH_*``: memory search defaults

The module-level ``settings`` object aggregates them and is read by the
factories; services accept explicit settings objects so tests can inject
their own.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "character-memory"


class EmbeddingSettings(BaseSettings):
    """HTTP behaviour of the embedding provider adapter."""

    model_config = SettingsConfigDict(env_prefix="CHARMEM_EMBEDDING_", extra="ignore")

    timeout_seconds: float = Field(default=30.0, gt=0.0)
    openai_base_url: str = "https://api.openai.com/v1"
    ollama_base_url: str = "http://localhost:11434"
    # Upstream error bodies are truncated to this many characters in messages
    max_error_chars: int = Field(default=500, ge=1)


class VectorIndexSettings(BaseSettings):
    """Persistence of per-owner vector indices."""

    model_config = SettingsConfigDict(env_prefix="CHARMEM_VECTOR_", extra="ignore")

    backend: Literal["sqlite", "memory"] = "sqlite"
    sqlite_path: Path = DEFAULT_DATA_DIR / "vector_indices.db"
    save_retry_attempts: int = Field(default=3, ge=1)
    snapshot_version: int = Field(default=1, ge=1)


class SearchSettings(BaseSettings):
    """Defaults for memory search."""

    model_config = SettingsConfigDict(env_prefix="CHARMEM_SEARCH_", extra="ignore")

    default_limit: int = Field(default=20, ge=1)
    # Vector search fetches limit * overfetch_factor hits before post-filtering
    overfetch_factor: int = Field(default=2, ge=1)
    default_min_score: float = Field(default=0.0, ge=0.0, le=1.0)
    duplicate_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    embed_batch_save_every: int = Field(default=10, ge=1)


class Settings(BaseSettings):
    """Aggregated settings."""

    model_config = SettingsConfigDict(env_prefix="CHARMEM_", extra="ignore")

    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    vector: VectorIndexSettings = Field(default_factory=VectorIndexSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)


settings = Settings()
