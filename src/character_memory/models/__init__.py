from .embedding import EmbeddingProfile, EmbeddingProvider, EmbeddingResult
from .memory import Memory, MemorySearchOptions, MemorySearchResponse, RankedMemory
from .vector import VectorEntry, VectorIndexSnapshot, VectorMetadata, VectorSearchResult

__all__ = [
    "EmbeddingProfile",
    "EmbeddingProvider",
    "EmbeddingResult",
    "Memory",
    "MemorySearchOptions",
    "MemorySearchResponse",
    "RankedMemory",
    "VectorEntry",
    "VectorIndexSnapshot",
    "VectorMetadata",
    "VectorSearchResult",
]
