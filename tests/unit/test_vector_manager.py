"""Tests for VectorIndexManager caching, persistence and lifecycle."""

import asyncio
from pathlib import Path

import pytest

from character_memory.errors import DimensionMismatchError, IndexStorageError
from character_memory.models.vector import VectorEntry, VectorIndexSnapshot, VectorMetadata
from character_memory.storage.memory_index_storage import InMemoryIndexStorage
from character_memory.storage.sqlite_index_storage import SQLiteIndexStorage
from character_memory.vector.index import VectorIndex
from character_memory.vector.manager import VectorIndexManager


def meta(memory_id, owner="char-1"):
    return VectorMetadata(memory_id=memory_id, owner_entity_id=owner, content=f"summary {memory_id}")


class FailingSaveStorage(InMemoryIndexStorage):
    def __init__(self):
        super().__init__()
        self.fail = True

    async def save(self, owner_entity_id, snapshot):
        if self.fail:
            raise IndexStorageError("disk full", owner_entity_id)
        await super().save(owner_entity_id, snapshot)


class CorruptLoadStorage(InMemoryIndexStorage):
    async def load(self, owner_entity_id):
        raise IndexStorageError("unreadable snapshot", owner_entity_id)


class GatedLoadStorage(InMemoryIndexStorage):
    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def load(self, owner_entity_id):
        await self.gate.wait()
        return await super().load(owner_entity_id)


@pytest.fixture
def storage():
    return InMemoryIndexStorage()


@pytest.fixture
def manager(storage):
    return VectorIndexManager(storage)


class TestGetStore:
    @pytest.mark.asyncio
    async def test_returns_cached_instance(self, manager):
        first = await manager.get_store("char-1")
        second = await manager.get_store("char-1")
        assert first is second
        assert manager.is_loaded("char-1")

    @pytest.mark.asyncio
    async def test_concurrent_first_access_loads_once(self, manager, storage):
        indices = await asyncio.gather(*(manager.get_store("char-1") for _ in range(5)))
        assert all(idx is indices[0] for idx in indices)
        assert storage.get_stats()["loads"] == 1

    @pytest.mark.asyncio
    async def test_owners_are_independent(self, manager):
        a = await manager.get_store("char-a")
        b = await manager.get_store("char-b")
        await a.add_vector("m1", [1.0, 0.0], meta("m1", "char-a"))
        await b.add_vector("m1", [1.0, 0.0, 0.0], meta("m1", "char-b"))
        assert a.get_dimensions() == 2
        assert b.get_dimensions() == 3

    @pytest.mark.asyncio
    async def test_unreadable_storage_starts_empty(self):
        manager = VectorIndexManager(CorruptLoadStorage())
        index = await manager.get_store("char-1")
        assert index.size == 0
        assert not index.is_dirty

    @pytest.mark.asyncio
    async def test_mixed_dimensions_in_snapshot_raise(self, manager, storage):
        snapshot = VectorIndexSnapshot(
            owner_entity_id="char-1",
            dimensions=3,
            entries=[
                VectorEntry(id="a", vector=[1.0, 0.0, 0.0], metadata=meta("a")),
                VectorEntry(id="b", vector=[1.0, 0.0], metadata=meta("b")),
            ],
        )
        await storage.save("char-1", snapshot)

        with pytest.raises(DimensionMismatchError):
            await manager.get_store("char-1")
        assert not manager.is_loaded("char-1")

        # Stored record is left intact for the operator
        await manager.save_all()
        stored = await storage.load("char-1")
        assert [e.id for e in stored.entries] == ["a", "b"]


class TestSave:
    @pytest.mark.asyncio
    async def test_clean_empty_index_not_written(self, manager, storage):
        await manager.get_store("char-1")
        await manager.save_store("char-1")
        assert storage.get_stats()["saves"] == 0
        assert await storage.list_owner_ids() == []

    @pytest.mark.asyncio
    async def test_save_marks_clean(self, manager, storage):
        index = await manager.get_store("char-1")
        await index.add_vector("m1", [1.0, 0.0], meta("m1"))
        await manager.save_store("char-1")
        assert not index.is_dirty
        snapshot = await storage.load("char-1")
        assert snapshot.dimensions == 2
        assert [e.id for e in snapshot.entries] == ["m1"]

    @pytest.mark.asyncio
    async def test_emptied_index_is_written(self, manager, storage):
        index = await manager.get_store("char-1")
        await index.add_vector("m1", [1.0, 0.0], meta("m1"))
        await manager.save_store("char-1")
        await index.remove_vector("m1")
        await manager.save_store("char-1")
        snapshot = await storage.load("char-1")
        assert snapshot.entries == []
        assert snapshot.dimensions == 2

    @pytest.mark.asyncio
    async def test_save_unloaded_owner_is_noop(self, manager, storage):
        await manager.save_store("never-loaded")
        assert storage.get_stats()["saves"] == 0

    @pytest.mark.asyncio
    async def test_failed_save_propagates_and_stays_dirty(self):
        storage = FailingSaveStorage()
        manager = VectorIndexManager(storage)
        index = await manager.get_store("char-1")
        await index.add_vector("m1", [1.0, 0.0], meta("m1"))

        with pytest.raises(IndexStorageError):
            await manager.save_store("char-1")
        assert index.is_dirty
        assert index.size == 1

        storage.fail = False
        await manager.save_store("char-1")
        assert not index.is_dirty

    @pytest.mark.asyncio
    async def test_save_all(self, manager, storage):
        for owner in ("char-a", "char-b"):
            index = await manager.get_store(owner)
            await index.add_vector("m1", [0.5, 0.5], meta("m1", owner))
        await manager.save_all()
        assert await storage.list_owner_ids() == ["char-a", "char-b"]

    @pytest.mark.asyncio
    async def test_save_all_raises_after_attempting_all(self):
        storage = FailingSaveStorage()
        manager = VectorIndexManager(storage)
        for owner in ("char-a", "char-b"):
            index = await manager.get_store(owner)
            await index.add_vector("m1", [0.5, 0.5], meta("m1", owner))
        with pytest.raises(IndexStorageError):
            await manager.save_all()
        assert storage.get_stats()["saves"] == 0


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_unload_keeps_persisted_data(self, manager):
        index = await manager.get_store("char-1")
        await index.add_vector("m1", [1.0, 0.0], meta("m1"))
        await manager.save_store("char-1")

        assert manager.unload_store("char-1") is True
        assert manager.unload_store("char-1") is False
        assert not manager.is_loaded("char-1")

        reloaded = await manager.get_store("char-1")
        assert reloaded is not index
        assert reloaded.has_vector("m1")

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, manager):
        index = await manager.get_store("char-1")
        await index.add_vector("m1", [1.0, 0.0], meta("m1"))
        await manager.save_store("char-1")

        assert await manager.delete_store("char-1") is True
        assert await manager.delete_store("char-1") is False

        fresh = await manager.get_store("char-1")
        assert fresh.size == 0
        assert fresh.get_dimensions() is None

    @pytest.mark.asyncio
    async def test_delete_waits_for_in_flight_load(self):
        storage = GatedLoadStorage()
        seeded = VectorIndex("char-1")
        await seeded.add_vector("m1", [1.0, 0.0], meta("m1"))
        await storage.save("char-1", seeded.to_snapshot())
        manager = VectorIndexManager(storage)

        loading = asyncio.create_task(manager.get_store("char-1"))
        await asyncio.sleep(0)
        deleting = asyncio.create_task(manager.delete_store("char-1"))
        await asyncio.sleep(0)
        assert storage.get_stats()["deletes"] == 0

        storage.gate.set()
        loaded = await loading
        assert await deleting is True
        assert loaded.has_vector("m1")
        assert not manager.is_loaded("char-1")

        fresh = await manager.get_store("char-1")
        assert fresh.size == 0

    @pytest.mark.asyncio
    async def test_get_stats(self, manager):
        a = await manager.get_store("char-a")
        await manager.get_store("char-b")
        await a.add_vector("m1", [1.0], meta("m1", "char-a"))
        await a.add_vector("m2", [2.0], meta("m2", "char-a"))
        assert manager.get_stats() == {"loaded_stores": 2, "total_vectors": 2}

    @pytest.mark.asyncio
    async def test_close_flushes_dirty_indices(self, manager, storage):
        index = await manager.get_store("char-1")
        await index.add_vector("m1", [1.0, 0.0], meta("m1"))
        await manager.close()
        assert await storage.list_owner_ids() == ["char-1"]
        assert manager.get_stats()["loaded_stores"] == 0


class TestPersistenceRoundTrip:
    @pytest.mark.asyncio
    async def test_fresh_manager_reconstructs_index(self, tmp_path: Path):
        db_path = tmp_path / "vectors.db"

        first = VectorIndexManager(SQLiteIndexStorage(str(db_path)))
        index = await first.get_store("char-1")
        await index.add_vector("m1", [0.1, 0.2, 0.3], meta("m1"))
        await index.add_vector("m2", [0.3, 0.2, 0.1], meta("m2"))
        await first.save_all()
        original = [e.model_dump() for e in index.get_all_entries()]

        # Simulates a process restart
        second = VectorIndexManager(SQLiteIndexStorage(str(db_path)))
        restored = await second.get_store("char-1")

        assert restored.size == 2
        assert restored.get_dimensions() == 3
        assert [e.model_dump() for e in restored.get_all_entries()] == original
        assert restored.search([0.1, 0.2, 0.3], limit=1)[0].id == "m1"


@pytest.mark.asyncio
async def test_empty_owner_id_rejected(manager):
    with pytest.raises(ValueError):
        await manager.get_store("")
