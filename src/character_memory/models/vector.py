"""Vector index data models.

``VectorIndexSnapshot`` is the persisted shape of one owner entity's
index; ``VectorEntry`` rows are embedded inside it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .memory import utc_now
from .validators import EntityId, MemorySource, Vector


class VectorMetadata(BaseModel):
    """Metadata stored alongside a vector.

    ``memory_id`` and ``owner_entity_id`` are required. ``source`` and
    ``importance`` are denormalised from the memory so search predicates can
    filter without fetching it. ``payload`` is opaque to the index.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    memory_id: EntityId
    owner_entity_id: EntityId
    content: str | None = None
    source: MemorySource | None = None
    importance: float | None = None
    payload: str | None = None


class VectorEntry(BaseModel):
    """One stored vector. ``id`` conventionally equals the memory id."""

    id: EntityId
    vector: Vector
    metadata: VectorMetadata
    created_at: datetime = Field(default_factory=utc_now)


@dataclass(frozen=True, slots=True)
class VectorSearchResult:
    """A ranked hit from a vector index search."""

    id: str
    score: float
    metadata: VectorMetadata

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "score": self.score, "metadata": self.metadata.model_dump()}


class VectorIndexSnapshot(BaseModel):
    """Persisted form of a per-owner vector index."""

    owner_entity_id: EntityId
    version: int = 1
    dimensions: int | None = None
    entries: list[VectorEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("dimensions", mode="before")
    @classmethod
    def zero_means_unset(cls, v: Any) -> Any:
        # Older snapshots stored 0 for an empty index
        if v == 0:
            return None
        return v
