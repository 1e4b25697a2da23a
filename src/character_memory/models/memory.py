"""Memory-related data models.

``Memory`` mirrors the record owned by the external memory storage; this
package reads its text and writes ``last_accessed_at`` but never owns its
lifecycle.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .validators import EntityId, MemorySource, StrList, UnitFloat


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Memory(BaseModel):
    """A single free-text memory belonging to one owner entity."""

    model_config = ConfigDict(populate_by_name=True)

    id: EntityId
    owner_entity_id: EntityId
    content: str = Field(min_length=1)
    summary: str = ""
    keywords: StrList = []
    tags: StrList = []
    importance: UnitFloat = 0.5
    source: MemorySource = "MANUAL"
    embedding: list[float] | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_accessed_at: datetime | None = None

    @property
    def embedding_text(self) -> str:
        """Text used to embed this memory: summary followed by content."""
        if self.summary:
            return f"{self.summary}\n\n{self.content}"
        return self.content

    @property
    def searchable_text(self) -> str:
        """Text scored by the lexical fallback."""
        parts = [self.summary, self.content, " ".join(self.keywords)]
        return "\n".join(p for p in parts if p)


class RankedMemory(BaseModel):
    """A memory with its relevance score for one query."""

    memory: Memory
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.memory.id,
            "summary": self.memory.summary,
            "content": self.memory.content,
            "importance": self.memory.importance,
            "source": self.memory.source,
            "relevance_score": self.score,
            "created_at": self.memory.created_at.isoformat(),
        }


class MemorySearchResponse(BaseModel):
    """Ranked, capped memory search results with provenance."""

    results: list[RankedMemory] = Field(default_factory=list)
    used_embedding: bool = False

    def __len__(self) -> int:
        return len(self.results)


class MemorySearchOptions(BaseModel):
    """Filters and bounds for one memory search call."""

    limit: int | None = Field(default=None, ge=1)
    min_score: float | None = None
    min_importance: UnitFloat | None = None
    source_filter: MemorySource | None = None
    profile_id: str | None = None
    # User that owns the embedding profile; defaults to the owner entity id
    owner_id: str | None = None
