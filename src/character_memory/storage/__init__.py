from .base import CredentialResolver, EmbeddingProfileResolver, IndexStorage, MemoryStorage
from .factory import create_index_storage
from .memory_index_storage import InMemoryIndexStorage
from .sqlite_index_storage import SQLiteIndexStorage

__all__ = [
    "CredentialResolver",
    "EmbeddingProfileResolver",
    "InMemoryIndexStorage",
    "IndexStorage",
    "MemoryStorage",
    "SQLiteIndexStorage",
    "create_index_storage",
]
