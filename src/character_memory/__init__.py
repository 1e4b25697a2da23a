"""Semantic memory retrieval for roleplay characters.

Embeds memories through a user-configured provider, keeps one vector index
per character, and retrieves the most relevant memories for a chat turn,
falling back to keyword scoring whenever no embedding can be produced.
"""

__version__ = "0.1.0"

from .errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingError,
    IndexStorageError,
    MemorySearchError,
    ProviderError,
)
from .services.memory_search_service import MemorySearchService
from .vector.manager import VectorIndexManager, get_owner_index, get_vector_index_manager

__all__ = [
    "ConfigurationError",
    "DimensionMismatchError",
    "EmbeddingError",
    "IndexStorageError",
    "MemorySearchError",
    "MemorySearchService",
    "ProviderError",
    "VectorIndexManager",
    "get_owner_index",
    "get_vector_index_manager",
]
