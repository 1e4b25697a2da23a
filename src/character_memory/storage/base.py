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

"""
Interfaces of the external collaborators this package depends on.

- ``IndexStorage``: persists one vector index snapshot per owner entity
- ``MemoryStorage``: the memory records themselves
- ``EmbeddingProfileResolver``: embedding profiles and their credentials
"""

from abc import ABC, abstractmethod

from ..models.embedding import EmbeddingProfile
from ..models.memory import Memory
from ..models.vector import VectorIndexSnapshot


class IndexStorage(ABC):
    """Persistent store for per-owner vector index snapshots."""

    async def initialize(self) -> None:
        """Prepare the backend (create schema, open connections)."""

    @abstractmethod
    async def load(self, owner_entity_id: str) -> VectorIndexSnapshot | None:
        """Return the stored snapshot for ``owner_entity_id``, or None if there is none."""

    @abstractmethod
    async def save(self, owner_entity_id: str, snapshot: VectorIndexSnapshot) -> None:
        """Replace the stored snapshot for ``owner_entity_id`` wholesale."""

    @abstractmethod
    async def delete(self, owner_entity_id: str) -> bool:
        """Delete the stored snapshot. Returns whether one existed."""

    @abstractmethod
    async def list_owner_ids(self) -> list[str]:
        """Owner entity ids that currently have a stored snapshot."""

    async def close(self) -> None:
        """Release backend resources."""


class MemoryStorage(ABC):
    """Memory records (owned by the memory repository, not this package)."""

    @abstractmethod
    async def find_by_owner_entity(self, owner_entity_id: str) -> list[Memory]:
        """All memories belonging to ``owner_entity_id``."""

    @abstractmethod
    async def find_by_id(self, memory_id: str) -> Memory | None:
        """A single memory, or None if it does not exist."""

    @abstractmethod
    async def update_access_time(self, owner_entity_id: str, memory_id: str) -> None:
        """Set the memory's ``last_accessed_at`` to now."""


class CredentialResolver(ABC):
    """Turns a profile's credential reference into a usable API key."""

    @abstractmethod
    async def resolve_api_key(self, profile: EmbeddingProfile, owner_id: str | None = None) -> str | None:
        """Decrypted API key for ``profile``, or None when it has none."""


class EmbeddingProfileResolver(CredentialResolver):
    """Looks up embedding profiles for a user."""

    @abstractmethod
    async def find_by_id(self, profile_id: str) -> EmbeddingProfile | None:
        """Profile by id, or None."""

    @abstractmethod
    async def find_default(self, owner_id: str) -> EmbeddingProfile | None:
        """The user's default profile, or None when none is configured."""
