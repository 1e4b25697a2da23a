from .background import BackgroundTaskRegistry
from .search_terms import SearchTerms, extract_search_terms, text_similarity
from .similarity import cosine_similarities, cosine_similarity

__all__ = [
    "BackgroundTaskRegistry",
    "SearchTerms",
    "cosine_similarities",
    "cosine_similarity",
    "extract_search_terms",
    "text_similarity",
]
