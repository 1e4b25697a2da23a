# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""In-process vector index storage.

Snapshots are deep-copied on the way in and out so callers can never
mutate stored state through a shared reference.
"""

from ..models.vector import VectorIndexSnapshot
from .base import IndexStorage


class InMemoryIndexStorage(IndexStorage):
    """Dict-backed snapshot store for tests and ephemeral deployments."""

    def __init__(self) -> None:
        self._snapshots: dict[str, VectorIndexSnapshot] = {}
        self._stats = {"loads": 0, "saves": 0, "deletes": 0}

    async def load(self, owner_entity_id: str) -> VectorIndexSnapshot | None:
        self._stats["loads"] += 1
        snapshot = self._snapshots.get(owner_entity_id)
        return snapshot.model_copy(deep=True) if snapshot is not None else None

    async def save(self, owner_entity_id: str, snapshot: VectorIndexSnapshot) -> None:
        self._stats["saves"] += 1
        self._snapshots[owner_entity_id] = snapshot.model_copy(deep=True)

    async def delete(self, owner_entity_id: str) -> bool:
        self._stats["deletes"] += 1
        return self._snapshots.pop(owner_entity_id, None) is not None

    async def list_owner_ids(self) -> list[str]:
        return sorted(self._snapshots)

    def get_stats(self) -> dict[str, int]:
        return {"stored": len(self._snapshots), **self._stats}
