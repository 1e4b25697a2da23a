from .adapter import EmbeddingAdapter, SearchPreparation
from .base import BaseEmbeddingProvider
from .ollama import OllamaEmbedding
from .openai import OpenAIEmbedding

__all__ = [
    "BaseEmbeddingProvider",
    "EmbeddingAdapter",
    "OllamaEmbedding",
    "OpenAIEmbedding",
    "SearchPreparation",
]
