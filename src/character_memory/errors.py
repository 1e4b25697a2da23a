"""Exception hierarchy for character memory retrieval.

Embedding failures (``ConfigurationError``, ``ProviderError``) are expected
at runtime and are converted into the lexical fallback by the search
service. ``DimensionMismatchError`` and ``IndexStorageError`` always
propagate to the caller.
"""


class MemorySearchError(Exception):
    """Base class for all errors raised by this package."""


class EmbeddingError(MemorySearchError):
    """Embedding generation failed."""

    def __init__(self, message: str, provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class ConfigurationError(EmbeddingError):
    """No usable embedding profile or credential."""


class ProviderError(EmbeddingError):
    """The upstream embedding service was unreachable or rejected the request."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, provider=provider)


class DimensionMismatchError(MemorySearchError, ValueError):
    """A vector does not match the dimensionality already established by an index."""

    def __init__(self, expected: int | None, actual: int, context: str = "Vector"):
        self.expected = expected
        self.actual = actual
        super().__init__(f"{context} dimension mismatch: expected {expected}, got {actual}")


class IndexStorageError(MemorySearchError):
    """Persisting or deleting a vector index snapshot failed."""

    def __init__(self, message: str, owner_entity_id: str | None = None):
        self.owner_entity_id = owner_entity_id
        super().__init__(message)
