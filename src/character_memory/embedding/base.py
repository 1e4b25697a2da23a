"""Base class for HTTP embedding providers.

A provider knows one endpoint's request and response convention: one
request, one input string, one response vector. Transport, timeout and
credential lookup are supplied by ``EmbeddingAdapter``.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx

from ..errors import ProviderError
from ..models.embedding import EmbeddingProfile, EmbeddingProvider, EmbeddingResult


class BaseEmbeddingProvider(ABC):
    """Abstract base class for embedding endpoints."""

    provider: EmbeddingProvider
    requires_api_key: bool = False

    def __init__(self, default_base_url: str, max_error_chars: int = 500):
        self.default_base_url = default_base_url.rstrip("/")
        self.max_error_chars = max_error_chars

    @abstractmethod
    async def embed(
        self,
        client: httpx.AsyncClient,
        text: str,
        profile: EmbeddingProfile,
        api_key: str | None,
    ) -> EmbeddingResult:
        """Embed ``text`` using ``profile``.

        Raises:
            ProviderError: Non-2xx response, network failure, timeout, or a
                response without a usable vector.
        """

    def base_url_for(self, profile: EmbeddingProfile) -> str:
        return (profile.base_url or self.default_base_url).rstrip("/")

    async def _post_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> dict[str, Any]:
        """POST ``payload`` and return the decoded JSON body of a 2xx response."""
        name = self.provider.value
        try:
            response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise ProviderError(f"{name} embedding request timed out", provider=name) from e
        except httpx.RequestError as e:
            raise ProviderError(
                f"{name} embedding request failed: network error ({type(e).__name__})",
                provider=name,
            ) from e

        if response.is_error:
            message = self._error_message(response)
            raise ProviderError(
                f"{name} embedding failed: {message}",
                provider=name,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"{name} embedding returned a non-JSON response", provider=name) from e

        if not isinstance(data, dict):
            raise ProviderError(f"{name} embedding returned an unexpected response", provider=name)
        return data

    def _error_message(self, response: httpx.Response) -> str:
        """Best-effort upstream error message, falling back to the HTTP reason."""
        try:
            body = response.json()
        except ValueError:
            body = None

        message = self.extract_error(body) if isinstance(body, dict) else None
        if not message:
            message = response.reason_phrase or f"HTTP {response.status_code}"
        return str(message)[: self.max_error_chars]

    def extract_error(self, body: dict[str, Any]) -> str | None:
        """Pull the provider-specific error message out of an error body."""
        error = body.get("error")
        if isinstance(error, str):
            return error
        return None

    def build_result(self, vector: Any, profile: EmbeddingProfile) -> EmbeddingResult:
        """Validate a raw vector and wrap it in an ``EmbeddingResult``."""
        name = self.provider.value
        if not isinstance(vector, list) or not vector:
            raise ProviderError(f"{name} embedding response contained no vector", provider=name)
        try:
            values = [float(v) for v in vector]
        except (TypeError, ValueError) as e:
            raise ProviderError(f"{name} embedding response contained non-numeric values", provider=name) from e

        if profile.dimensions is not None and len(values) != profile.dimensions:
            raise ProviderError(
                f"{name} returned {len(values)} dimensions, profile expects {profile.dimensions}",
                provider=name,
            )

        return EmbeddingResult(
            vector=values,
            model=profile.model_name,
            dimensions=len(values),
            provider=self.provider,
        )
