import os
import sys
import tempfile
from datetime import datetime, timezone

import pytest

# Keep the shared settings away from the user's data directory
os.environ.setdefault("CHARMEM_VECTOR_BACKEND", "memory")
os.environ.setdefault("CHARMEM_VECTOR_SQLITE_PATH", os.path.join(tempfile.gettempdir(), "charmem-test-vectors.db"))

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from character_memory.models.embedding import EmbeddingProfile, EmbeddingProvider  # noqa: E402
from character_memory.models.memory import Memory  # noqa: E402
from character_memory.storage.base import EmbeddingProfileResolver, MemoryStorage  # noqa: E402


class FakeMemoryStorage(MemoryStorage):
    """Dict-backed memory repository recording access-time writes."""

    def __init__(self, memories=None, fail_access_updates=False):
        self.memories: dict[str, Memory] = {m.id: m for m in memories or []}
        self.accessed: list[tuple[str, str]] = []
        self.fail_access_updates = fail_access_updates

    def add(self, memory: Memory) -> Memory:
        self.memories[memory.id] = memory
        return memory

    async def find_by_owner_entity(self, owner_entity_id):
        return [m for m in self.memories.values() if m.owner_entity_id == owner_entity_id]

    async def find_by_id(self, memory_id):
        return self.memories.get(memory_id)

    async def update_access_time(self, owner_entity_id, memory_id):
        if self.fail_access_updates:
            raise RuntimeError("memory store is read-only")
        self.accessed.append((owner_entity_id, memory_id))
        memory = self.memories[memory_id]
        self.memories[memory_id] = memory.model_copy(update={"last_accessed_at": datetime.now(timezone.utc)})


class FakeProfileResolver(EmbeddingProfileResolver):
    """In-memory profiles keyed by id, with a fixed key per profile."""

    def __init__(self, profiles=None, api_keys=None):
        self.profiles: dict[str, EmbeddingProfile] = {p.id: p for p in profiles or []}
        self.api_keys: dict[str, str] = api_keys or {}

    async def find_by_id(self, profile_id):
        return self.profiles.get(profile_id)

    async def find_default(self, owner_id):
        for profile in self.profiles.values():
            if profile.owner_id == owner_id and profile.is_default:
                return profile
        return None

    async def resolve_api_key(self, profile, owner_id=None):
        return self.api_keys.get(profile.id)


class UnavailableProfileResolver(FakeProfileResolver):
    """Resolver whose backing store is down for profile lookups or credential reads."""

    def __init__(self, profiles=None, api_keys=None, fail_lookup=True, fail_credentials=False):
        super().__init__(profiles, api_keys)
        self.fail_lookup = fail_lookup
        self.fail_credentials = fail_credentials

    async def find_by_id(self, profile_id):
        if self.fail_lookup:
            raise RuntimeError("profile database unavailable")
        return await super().find_by_id(profile_id)

    async def find_default(self, owner_id):
        if self.fail_lookup:
            raise RuntimeError("profile database unavailable")
        return await super().find_default(owner_id)

    async def resolve_api_key(self, profile, owner_id=None):
        if self.fail_credentials:
            raise RuntimeError("credential store unavailable")
        return await super().resolve_api_key(profile, owner_id)


def _make_memory(memory_id, content, owner="char-1", **kwargs) -> Memory:
    return Memory(id=memory_id, owner_entity_id=owner, content=content, **kwargs)


@pytest.fixture
def openai_profile():
    return EmbeddingProfile(
        id="profile-openai",
        owner_id="user-1",
        provider=EmbeddingProvider.OPENAI,
        api_key_ref="key-1",
        model_name="text-embedding-3-small",
        is_default=True,
    )


@pytest.fixture
def ollama_profile():
    return EmbeddingProfile(
        id="profile-ollama",
        owner_id="user-1",
        provider=EmbeddingProvider.OLLAMA,
        model_name="nomic-embed-text",
    )


@pytest.fixture
def profile_resolver(openai_profile, ollama_profile):
    return FakeProfileResolver([openai_profile, ollama_profile], api_keys={"profile-openai": "sk-test"})


@pytest.fixture
def memory_storage():
    return FakeMemoryStorage()


@pytest.fixture
def make_memory():
    return _make_memory


@pytest.fixture
def empty_profile_resolver():
    return FakeProfileResolver()


@pytest.fixture
def unavailable_profile_resolver():
    return UnavailableProfileResolver()


@pytest.fixture
def unavailable_credentials_resolver(openai_profile):
    return UnavailableProfileResolver(
        [openai_profile], api_keys={"profile-openai": "sk-test"}, fail_lookup=False, fail_credentials=True
    )
