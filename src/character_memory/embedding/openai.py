"""OpenAI-compatible embeddings endpoint (``POST {base_url}/embeddings``)."""

from __future__ import annotations

from typing import Any

import httpx

from ..errors import ConfigurationError, ProviderError
from ..models.embedding import EmbeddingProfile, EmbeddingProvider, EmbeddingResult
from .base import BaseEmbeddingProvider


class OpenAIEmbedding(BaseEmbeddingProvider):
    """OpenAI embeddings API client.

    Works against any server speaking the OpenAI ``/embeddings`` protocol
    when the profile sets ``base_url``.
    """

    provider = EmbeddingProvider.OPENAI
    requires_api_key = True

    def __init__(self, default_base_url: str = "https://api.openai.com/v1", max_error_chars: int = 500):
        super().__init__(default_base_url, max_error_chars)

    async def embed(
        self,
        client: httpx.AsyncClient,
        text: str,
        profile: EmbeddingProfile,
        api_key: str | None,
    ) -> EmbeddingResult:
        if not api_key:
            raise ConfigurationError("No API key found for OpenAI embedding profile", provider=self.provider.value)

        payload: dict[str, Any] = {"model": profile.model_name, "input": text}
        if profile.dimensions:
            payload["dimensions"] = profile.dimensions

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

        data = await self._post_json(client, f"{self.base_url_for(profile)}/embeddings", payload, headers)

        try:
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError("OPENAI embedding response missing data[0].embedding", provider=self.provider.value) from e

        return self.build_result(vector, profile)

    def extract_error(self, body: dict[str, Any]) -> str | None:
        # {"error": {"message": "...", "type": "..."}}
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message")
        return super().extract_error(body)
