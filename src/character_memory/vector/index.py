"""
Per-owner in-memory vector index.

Exact nearest-neighbour search by cosine similarity over every stored
vector. Each index holds a single dimensionality, adopted from the first
vector inserted into it.
"""

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime

import numpy as np

from ..errors import DimensionMismatchError
from ..models.memory import utc_now
from ..models.vector import VectorEntry, VectorIndexSnapshot, VectorMetadata, VectorSearchResult
from ..utils.similarity import cosine_similarities

MetadataPredicate = Callable[[VectorMetadata], bool]


class VectorIndex:
    """Vectors for one owner entity.

    Mutations are serialised by a per-index ``asyncio.Lock`` which the
    manager also holds while saving. ``search`` is synchronous and read-only.
    """

    def __init__(self, owner_entity_id: str, version: int = 1):
        self.owner_entity_id = owner_entity_id
        self.version = version
        self.created_at: datetime = utc_now()
        self.updated_at: datetime = self.created_at
        self._entries: dict[str, VectorEntry] = {}
        self._dimensions: int | None = None
        self._dirty = False
        self._lock = asyncio.Lock()
        # Row-aligned copy of the stored vectors, rebuilt lazily after mutations
        self._matrix: np.ndarray | None = None
        self._matrix_ids: list[str] = []

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_dirty(self) -> bool:
        """Whether there are mutations not yet flushed to storage."""
        return self._dirty

    def get_dimensions(self) -> int | None:
        return self._dimensions

    def has_vector(self, vector_id: str) -> bool:
        return vector_id in self._entries

    def _check_dimensions(self, vector: Sequence[float], context: str = "Vector") -> None:
        if self._dimensions is not None and len(vector) != self._dimensions:
            raise DimensionMismatchError(self._dimensions, len(vector), context)

    def _touch(self) -> None:
        self._dirty = True
        self._matrix = None
        self.updated_at = utc_now()

    async def add_vector(self, vector_id: str, vector: Sequence[float], metadata: VectorMetadata) -> None:
        """Insert or overwrite the entry ``vector_id``.

        The first vector added to an empty index sets its dimensionality.

        Raises:
            ValueError: ``vector`` is empty
            DimensionMismatchError: ``vector`` does not match the index's dimensionality
        """
        if len(vector) == 0:
            raise ValueError("Cannot index an empty vector")

        async with self._lock:
            self._check_dimensions(vector)
            if self._dimensions is None:
                self._dimensions = len(vector)
            self._entries[vector_id] = VectorEntry(id=vector_id, vector=list(vector), metadata=metadata)
            self._touch()

    async def remove_vector(self, vector_id: str) -> bool:
        """Remove ``vector_id``. Returns whether it existed."""
        async with self._lock:
            if self._entries.pop(vector_id, None) is None:
                return False
            self._touch()
            return True

    async def update_vector(
        self,
        vector_id: str,
        vector: Sequence[float],
        metadata: VectorMetadata | None = None,
    ) -> bool:
        """Replace the vector of an existing entry (and optionally its metadata).

        Returns False (and changes nothing) when ``vector_id`` is unknown.

        Raises:
            DimensionMismatchError: ``vector`` does not match the index's dimensionality
        """
        async with self._lock:
            entry = self._entries.get(vector_id)
            if entry is None:
                return False
            self._check_dimensions(vector)
            update: dict = {"vector": list(vector)}
            if metadata is not None:
                update["metadata"] = metadata
            self._entries[vector_id] = entry.model_copy(update=update)
            self._touch()
            return True

    async def clear(self) -> None:
        """Drop every entry and forget the dimensionality."""
        async with self._lock:
            self._entries.clear()
            self._dimensions = None
            self._touch()

    def get_all_entries(self) -> list[VectorEntry]:
        return list(self._entries.values())

    def _vector_matrix(self) -> np.ndarray:
        if self._matrix is None:
            self._matrix_ids = list(self._entries)
            if self._matrix_ids:
                self._matrix = np.array([self._entries[i].vector for i in self._matrix_ids], dtype=np.float64)
            else:
                self._matrix = np.empty((0, 0), dtype=np.float64)
        return self._matrix

    def search(
        self,
        query_vector: Sequence[float],
        limit: int = 10,
        predicate: MetadataPredicate | None = None,
    ) -> list[VectorSearchResult]:
        """
        Rank stored vectors by cosine similarity to ``query_vector``.

        Args:
            query_vector: Query embedding
            limit: Maximum number of results
            predicate: Optional filter on entry metadata, applied before ranking

        Returns:
            At most ``limit`` results, highest score first

        Raises:
            DimensionMismatchError: Query length differs from the index's dimensionality
        """
        if not self._entries or limit <= 0:
            return []

        self._check_dimensions(query_vector, context="Query vector")

        matrix = self._vector_matrix()
        scores = cosine_similarities(query_vector, matrix)

        # Stable sort keeps insertion order among equal scores
        results: list[VectorSearchResult] = []
        for row in np.argsort(-scores, kind="stable"):
            entry = self._entries[self._matrix_ids[row]]
            if predicate is not None and not predicate(entry.metadata):
                continue
            results.append(VectorSearchResult(id=entry.id, score=float(scores[row]), metadata=entry.metadata))
            if len(results) >= limit:
                break
        return results

    def mark_clean(self) -> None:
        self._dirty = False

    def to_snapshot(self) -> VectorIndexSnapshot:
        return VectorIndexSnapshot(
            owner_entity_id=self.owner_entity_id,
            version=self.version,
            dimensions=self._dimensions,
            entries=[entry.model_copy(deep=True) for entry in self._entries.values()],
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_snapshot(cls, snapshot: VectorIndexSnapshot) -> "VectorIndex":
        """Rebuild a clean index from a persisted snapshot.

        Raises:
            DimensionMismatchError: An entry disagrees with the snapshot's dimensionality
        """
        index = cls(snapshot.owner_entity_id, version=snapshot.version)
        index.created_at = snapshot.created_at
        index.updated_at = snapshot.updated_at

        dimensions = snapshot.dimensions
        for entry in snapshot.entries:
            if dimensions is None:
                dimensions = len(entry.vector)
            if len(entry.vector) != dimensions:
                raise DimensionMismatchError(dimensions, len(entry.vector), context=f"Stored vector {entry.id}")
            index._entries[entry.id] = entry

        index._dimensions = dimensions if index._entries else None
        return index

    def get_stats(self) -> dict:
        return {
            "owner_entity_id": self.owner_entity_id,
            "size": self.size,
            "dimensions": self._dimensions,
            "dirty": self._dirty,
        }
