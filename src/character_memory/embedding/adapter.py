"""Embedding provider adapter.

Dispatches a text to the HTTP endpoint named by an ``EmbeddingProfile``
and returns a fixed-length vector. No retries and no batching happen at
this layer: every failure is raised as ``ConfigurationError`` or
``ProviderError`` and the caller decides what to do with it.
"""

import asyncio
import logging
from dataclasses import dataclass, field

import httpx

from ..config import EmbeddingSettings
from ..errors import ConfigurationError, EmbeddingError, ProviderError
from ..models.embedding import EmbeddingProfile, EmbeddingProvider, EmbeddingResult
from ..storage.base import CredentialResolver, EmbeddingProfileResolver
from ..utils.search_terms import SearchTerms, extract_search_terms
from .base import BaseEmbeddingProvider
from .ollama import OllamaEmbedding
from .openai import OpenAIEmbedding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchPreparation:
    """Either a query embedding or the lexical terms to fall back on."""

    used_embedding: bool
    embedding: EmbeddingResult | None = None
    terms: SearchTerms = field(default_factory=SearchTerms)
    error: str | None = None


class EmbeddingAdapter:
    """Generates embeddings for text using a configured profile."""

    def __init__(
        self,
        profile_resolver: EmbeddingProfileResolver | None = None,
        settings: EmbeddingSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            profile_resolver: Looks up profiles and credentials for a user.
                Required by ``generate_for_owner``; ``generate`` accepts an
                explicit credential resolver instead.
            settings: HTTP settings (defaults to env-derived settings)
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self._profile_resolver = profile_resolver
        self._settings = settings or EmbeddingSettings()
        self._transport = transport
        self._openai = OpenAIEmbedding(self._settings.openai_base_url, self._settings.max_error_chars)
        self._ollama = OllamaEmbedding(self._settings.ollama_base_url, self._settings.max_error_chars)

    @property
    def profile_resolver(self) -> EmbeddingProfileResolver | None:
        return self._profile_resolver

    def provider_for(self, provider: EmbeddingProvider) -> BaseEmbeddingProvider:
        """Return the provider implementation for ``provider``."""
        match provider:
            case EmbeddingProvider.OPENAI:
                return self._openai
            case EmbeddingProvider.OLLAMA:
                return self._ollama
        raise ConfigurationError(f"Unsupported embedding provider: {provider}")

    async def generate(
        self,
        text: str,
        profile: EmbeddingProfile,
        credential_resolver: CredentialResolver | None = None,
        owner_id: str | None = None,
        timeout: float | None = None,
    ) -> EmbeddingResult:
        """
        Embed ``text`` with ``profile``.

        Args:
            text: Non-empty input text
            profile: Embedding profile selecting provider, model and endpoint
            credential_resolver: Resolves the profile's API key (defaults to
                the adapter's profile resolver)
            owner_id: User the credential belongs to
            timeout: Seconds before the call is abandoned (defaults to
                ``EmbeddingSettings.timeout_seconds``)

        Raises:
            ValueError: ``text`` is empty
            ConfigurationError: Missing credential or unsupported provider
            ProviderError: Upstream rejected the request, network failure or timeout
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        provider = self.provider_for(profile.provider)
        api_key = None
        if provider.requires_api_key:
            api_key = await self._resolve_api_key(profile, credential_resolver or self._profile_resolver, owner_id)

        timeout = timeout if timeout is not None else self._settings.timeout_seconds

        try:
            async with asyncio.timeout(timeout):
                async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                    result = await provider.embed(client, text, profile, api_key)
        except TimeoutError as e:
            raise ProviderError(
                f"{profile.provider.value} embedding timed out after {timeout}s",
                provider=profile.provider.value,
            ) from e

        logger.debug(f"Generated {result.dimensions}-d embedding with {profile.provider.value}/{profile.model_name}")
        return result

    async def _resolve_api_key(
        self,
        profile: EmbeddingProfile,
        resolver: CredentialResolver | None,
        owner_id: str | None,
    ) -> str:
        name = profile.provider.value
        if resolver is None or not profile.api_key_ref:
            raise ConfigurationError(f"No API key configured for {name} embedding profile {profile.id}", provider=name)

        try:
            api_key = await resolver.resolve_api_key(profile, owner_id)
        except EmbeddingError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Could not resolve API key for embedding profile {profile.id}: {e}",
                provider=name,
            ) from e

        if not api_key:
            raise ConfigurationError(f"No API key found for {name} embedding profile {profile.id}", provider=name)
        return api_key

    async def resolve_profile(self, owner_id: str, profile_id: str | None = None) -> EmbeddingProfile:
        """Explicit profile first, then the owner's default.

        Raises:
            ConfigurationError: No profile resolver, the lookup failed, or no profile found
        """
        if self._profile_resolver is None:
            raise ConfigurationError("No embedding profile resolver configured")

        profile = None
        try:
            if profile_id:
                profile = await self._profile_resolver.find_by_id(profile_id)
                if profile is None:
                    logger.info(f"Embedding profile {profile_id} not found, trying default for {owner_id}")

            if profile is None:
                profile = await self._profile_resolver.find_default(owner_id)
        except EmbeddingError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Could not look up embedding profile for {owner_id}: {e}") from e

        if profile is None:
            raise ConfigurationError("No embedding profile configured")
        return profile

    async def generate_for_owner(
        self,
        text: str,
        owner_id: str,
        profile_id: str | None = None,
        timeout: float | None = None,
    ) -> EmbeddingResult:
        """Embed ``text`` using ``profile_id`` or the owner's default profile."""
        profile = await self.resolve_profile(owner_id, profile_id)
        return await self.generate(text, profile, owner_id=owner_id, timeout=timeout)

    async def prepare_for_search(
        self,
        text: str,
        owner_id: str,
        profile_id: str | None = None,
        timeout: float | None = None,
    ) -> SearchPreparation:
        """Embed ``text`` for search, falling back to lexical terms on any embedding failure."""
        try:
            embedding = await self.generate_for_owner(text, owner_id, profile_id, timeout)
            return SearchPreparation(used_embedding=True, embedding=embedding)
        except ConfigurationError as e:
            logger.info(f"Embedding unavailable, using text search: {e}")
            return SearchPreparation(used_embedding=False, terms=extract_search_terms(text), error=str(e))
        except (ProviderError, ValueError) as e:
            logger.warning(f"Embedding failed, falling back to text search: {e}")
            return SearchPreparation(used_embedding=False, terms=extract_search_terms(text), error=str(e))
        except Exception as e:
            logger.warning(f"Unexpected embedding error, falling back to text search: {e}", exc_info=True)
            return SearchPreparation(used_embedding=False, terms=extract_search_terms(text), error=str(e))

    async def is_available(self, owner_id: str) -> bool:
        """Whether ``owner_id`` has a default embedding profile."""
        if self._profile_resolver is None:
            return False
        return await self._profile_resolver.find_default(owner_id) is not None
