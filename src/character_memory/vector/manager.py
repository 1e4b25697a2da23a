"""
Vector index manager.

Owns the cache of loaded per-owner indices. An index enters memory only
through ``get_store``, which loads the persisted snapshot on first access;
``save_store``/``save_all`` flush dirty indices back to storage.

A process-wide manager is available through ``get_vector_index_manager``
so entity lifecycle hooks and the search service share one cache.
"""

import asyncio
import logging
from typing import Any

from ..config import VectorIndexSettings
from ..errors import DimensionMismatchError
from ..storage.base import IndexStorage
from .index import VectorIndex

logger = logging.getLogger(__name__)


class VectorIndexManager:
    """Caches, loads and persists per-owner vector indices."""

    def __init__(self, storage: IndexStorage, settings: VectorIndexSettings | None = None):
        """
        Args:
            storage: Persistent snapshot store
            settings: Vector index settings (defaults to env-derived settings)
        """
        self._storage = storage
        self._settings = settings or VectorIndexSettings()
        self._indices: dict[str, VectorIndex] = {}
        self._load_locks: dict[str, asyncio.Lock] = {}

    @property
    def storage(self) -> IndexStorage:
        return self._storage

    def is_loaded(self, owner_entity_id: str) -> bool:
        return owner_entity_id in self._indices

    async def get_store(self, owner_entity_id: str) -> VectorIndex:
        """Return the owner's index, loading it from storage on first access.

        A snapshot that cannot be read starts the owner with an empty index.

        Raises:
            DimensionMismatchError: The stored snapshot mixes vector lengths;
                nothing is cached so the record is never overwritten
        """
        if not owner_entity_id:
            raise ValueError("owner_entity_id is required")

        # Fast path - already loaded
        index = self._indices.get(owner_entity_id)
        if index is not None:
            return index

        lock = self._load_locks.setdefault(owner_entity_id, asyncio.Lock())
        async with lock:
            # Double-check after acquiring lock
            index = self._indices.get(owner_entity_id)
            if index is not None:
                return index

            index = await self._load(owner_entity_id)
            self._indices[owner_entity_id] = index
            return index

    async def _load(self, owner_entity_id: str) -> VectorIndex:
        logger.debug(f"Loading vector index for {owner_entity_id}")
        try:
            snapshot = await self._storage.load(owner_entity_id)
        except Exception as e:
            logger.error(f"Error loading vector index for {owner_entity_id}, starting empty: {e}")
            return VectorIndex(owner_entity_id, version=self._settings.snapshot_version)

        if snapshot is None:
            return VectorIndex(owner_entity_id, version=self._settings.snapshot_version)

        try:
            index = VectorIndex.from_snapshot(snapshot)
        except DimensionMismatchError as e:
            logger.error(f"Stored vector index for {owner_entity_id} is inconsistent: {e}")
            raise

        logger.debug(f"Vector index loaded for {owner_entity_id}: {index.size} entries")
        return index

    async def save_store(self, owner_entity_id: str) -> None:
        """Persist one cached index. No-op when the owner is not loaded.

        Raises:
            IndexStorageError: The write failed; the index stays dirty
        """
        index = self._indices.get(owner_entity_id)
        if index is not None:
            await self._save(index)

    async def _save(self, index: VectorIndex) -> None:
        async with index.lock:
            if not index.is_dirty and index.size == 0:
                return

            snapshot = index.to_snapshot()
            logger.debug(f"Saving vector index for {index.owner_entity_id}: {index.size} entries")
            try:
                await self._storage.save(index.owner_entity_id, snapshot)
            except Exception as e:
                logger.error(f"Error saving vector index for {index.owner_entity_id}: {e}")
                raise
            index.mark_clean()

    async def save_all(self) -> None:
        """Persist every cached index.

        All indices are attempted; the first failure is re-raised afterwards.
        """
        indices = list(self._indices.values())
        results = await asyncio.gather(*(self._save(index) for index in indices), return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.error(f"Failed to save {len(errors)} of {len(indices)} vector indices")
            raise errors[0]

    def unload_store(self, owner_entity_id: str) -> bool:
        """Evict an index from the cache without touching persisted data."""
        index = self._indices.pop(owner_entity_id, None)
        if index is None:
            return False
        if index.is_dirty:
            logger.warning(f"Unloaded vector index for {owner_entity_id} with unsaved changes")
        return True

    async def delete_store(self, owner_entity_id: str) -> bool:
        """Evict and delete the persisted index. Returns whether a stored record existed.

        Waits for any in-flight load of the same owner so it cannot re-cache
        the deleted snapshot.
        """
        lock = self._load_locks.setdefault(owner_entity_id, asyncio.Lock())
        async with lock:
            self._indices.pop(owner_entity_id, None)
            deleted = await self._storage.delete(owner_entity_id)
        logger.info(f"Deleted vector index for {owner_entity_id} (existed: {deleted})")
        return deleted

    def get_stats(self) -> dict[str, Any]:
        return {
            "loaded_stores": len(self._indices),
            "total_vectors": sum(index.size for index in self._indices.values()),
        }

    async def close(self) -> None:
        """Flush dirty indices and close the storage backend."""
        try:
            await self.save_all()
        finally:
            self._indices.clear()
            self._load_locks.clear()
            await self._storage.close()


# Module-level shared manager
_manager: VectorIndexManager | None = None
_manager_lock = asyncio.Lock()


async def get_vector_index_manager() -> VectorIndexManager:
    """Get or create the shared manager backed by the configured storage."""
    global _manager

    if _manager is not None:
        return _manager

    async with _manager_lock:
        if _manager is None:
            from ..config import settings
            from ..storage.factory import create_index_storage

            storage = await create_index_storage(settings.vector)
            _manager = VectorIndexManager(storage, settings.vector)
            logger.info(f"Created shared VectorIndexManager with {type(storage).__name__}")
    return _manager


async def get_owner_index(owner_entity_id: str) -> VectorIndex:
    """Convenience accessor for one owner's index via the shared manager."""
    manager = await get_vector_index_manager()
    return await manager.get_store(owner_entity_id)


async def close_vector_index_manager() -> None:
    """Flush and close the shared manager. Safe to call if it was never created."""
    global _manager

    if _manager is None:
        return
    manager, _manager = _manager, None
    await manager.close()
