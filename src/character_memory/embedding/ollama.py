"""Ollama embeddings endpoint (``POST {base_url}/api/embeddings``)."""

from __future__ import annotations

import httpx

from ..errors import ProviderError
from ..models.embedding import EmbeddingProfile, EmbeddingProvider, EmbeddingResult
from .base import BaseEmbeddingProvider


class OllamaEmbedding(BaseEmbeddingProvider):
    """Local Ollama server. No credential is sent."""

    provider = EmbeddingProvider.OLLAMA

    def __init__(self, default_base_url: str = "http://localhost:11434", max_error_chars: int = 500):
        super().__init__(default_base_url, max_error_chars)

    async def embed(
        self,
        client: httpx.AsyncClient,
        text: str,
        profile: EmbeddingProfile,
        api_key: str | None,
    ) -> EmbeddingResult:
        payload = {"model": profile.model_name, "prompt": text}
        headers = {"Content-Type": "application/json"}

        data = await self._post_json(client, f"{self.base_url_for(profile)}/api/embeddings", payload, headers)

        if "embedding" not in data:
            raise ProviderError("OLLAMA embedding response missing 'embedding'", provider=self.provider.value)

        return self.build_result(data["embedding"], profile)
