from .index import MetadataPredicate, VectorIndex
from .manager import (
    VectorIndexManager,
    close_vector_index_manager,
    get_owner_index,
    get_vector_index_manager,
)

__all__ = [
    "MetadataPredicate",
    "VectorIndex",
    "VectorIndexManager",
    "close_vector_index_manager",
    "get_owner_index",
    "get_vector_index_manager",
]
