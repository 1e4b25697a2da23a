"""Embedding profile and result models."""

from enum import Enum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .validators import EntityId, PositiveInt


class EmbeddingProvider(str, Enum):
    """Supported embedding endpoints."""

    OPENAI = "OPENAI"
    OLLAMA = "OLLAMA"


class EmbeddingProfile(BaseModel):
    """User-configured embedding endpoint (owned by the profile collaborator)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: EntityId
    owner_id: EntityId
    provider: EmbeddingProvider
    # Opaque reference resolved to a decrypted key by the credential resolver
    api_key_ref: str | None = None
    base_url: str | None = None
    model_name: str = Field(min_length=1)
    dimensions: PositiveInt | None = None
    is_default: bool = False


class EmbeddingResult(BaseModel):
    """A single text embedding."""

    vector: list[float]
    model: str
    dimensions: int
    provider: EmbeddingProvider

    @model_validator(mode="after")
    def check_dimensions(self) -> Self:
        if len(self.vector) != self.dimensions:
            raise ValueError(f"vector length {len(self.vector)} does not match dimensions {self.dimensions}")
        return self
