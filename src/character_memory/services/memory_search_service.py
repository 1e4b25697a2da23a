"""
Memory Search Service - retrieval of character memories for chat context.

Semantic search over the owner's vector index when an embedding can be
generated, lexical keyword/phrase scoring over the owner's memories when it
cannot. Search never fails because of the embedding provider: configuration
and provider errors downgrade the call to the lexical path, reported through
``MemorySearchResponse.used_embedding``.

Also keeps the vector index in step with memory lifecycle events (create,
update, delete) and offers backfill and rebuild maintenance operations.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ..config import SearchSettings
from ..embedding.adapter import EmbeddingAdapter
from ..errors import DimensionMismatchError, EmbeddingError
from ..models.embedding import EmbeddingResult
from ..models.memory import Memory, MemorySearchOptions, MemorySearchResponse, RankedMemory
from ..models.vector import VectorMetadata
from ..storage.base import MemoryStorage
from ..utils.background import BackgroundTaskRegistry
from ..utils.search_terms import SearchTerms, extract_search_terms, text_similarity
from ..vector.index import MetadataPredicate
from ..vector.manager import VectorIndexManager

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class BackfillReport:
    """Outcome of ``generate_missing_embeddings``."""

    processed: int = 0
    failed: int = 0
    skipped: int = 0


@dataclass
class RebuildReport:
    """Outcome of ``rebuild_index``."""

    indexed: int = 0
    failed: int = 0


def importance_label(importance: float) -> str:
    if importance >= 0.7:
        return "High"
    if importance >= 0.4:
        return "Medium"
    return "Low"


class MemorySearchService:
    """
    Ranked memory retrieval with graceful degradation.

    Collaborators are injected so the service can run against any memory
    store, index storage backend and embedding profile source.
    """

    def __init__(
        self,
        memory_storage: MemoryStorage,
        index_manager: VectorIndexManager,
        embedding_adapter: EmbeddingAdapter,
        settings: SearchSettings | None = None,
    ):
        self._memories = memory_storage
        self._index_manager = index_manager
        self._embeddings = embedding_adapter
        self._settings = settings or SearchSettings()
        self._background = BackgroundTaskRegistry("memory-access")

    @property
    def background_tasks(self) -> BackgroundTaskRegistry:
        return self._background

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        owner_entity_id: str,
        query_text: str,
        options: MemorySearchOptions | None = None,
    ) -> MemorySearchResponse:
        """
        Retrieve the memories of ``owner_entity_id`` most relevant to ``query_text``.

        Args:
            owner_entity_id: Character (or other entity) whose memories are searched
            query_text: Free-text query
            options: Limit, score/importance thresholds, source filter and
                embedding profile selection

        Returns:
            At most ``limit`` ranked memories, highest score first

        Raises:
            ValueError: ``owner_entity_id`` is empty
            DimensionMismatchError: The query embedding does not match the
                owner's index (e.g. the profile's model changed)
        """
        if not owner_entity_id:
            raise ValueError("owner_entity_id is required")

        options = options or MemorySearchOptions()
        limit = options.limit or self._settings.default_limit
        min_score = options.min_score if options.min_score is not None else self._settings.default_min_score
        owner_id = options.owner_id or owner_entity_id

        logger.debug(f"Memory search for {owner_entity_id}: '{query_text[:100]}' (limit={limit})")

        preparation = await self._embeddings.prepare_for_search(query_text, owner_id, options.profile_id)

        results: list[RankedMemory] | None = None
        if preparation.used_embedding and preparation.embedding is not None:
            results = await self._search_vectors(owner_entity_id, preparation.embedding, options, limit, min_score)

        used_embedding = results is not None
        if results is None:
            terms = preparation.terms if not preparation.used_embedding else extract_search_terms(query_text)
            results = await self._search_text(owner_entity_id, terms, options, limit, min_score)

        self._fire_access_time_updates(owner_entity_id, results)

        logger.debug(f"Memory search for {owner_entity_id} returned {len(results)} results (embedding={used_embedding})")
        return MemorySearchResponse(results=results, used_embedding=used_embedding)

    async def _search_vectors(
        self,
        owner_entity_id: str,
        embedding: EmbeddingResult,
        options: MemorySearchOptions,
        limit: int,
        min_score: float,
    ) -> list[RankedMemory] | None:
        """Vector path. Returns None when the owner has no indexed vectors."""
        index = await self._index_manager.get_store(owner_entity_id)
        if index.size == 0:
            logger.info(f"No vectors indexed for {owner_entity_id}, using text search")
            return None

        hits = index.search(
            embedding.vector,
            limit * self._settings.overfetch_factor,
            self._metadata_predicate(options),
        )

        ranked: list[RankedMemory] = []
        for hit in hits:
            if hit.score < min_score:
                continue
            memory = await self._memories.find_by_id(hit.metadata.memory_id)
            if memory is None or memory.owner_entity_id != owner_entity_id:
                continue
            if not self._passes_filters(memory, options):
                continue
            ranked.append(RankedMemory(memory=memory, score=hit.score))
            if len(ranked) >= limit:
                break
        return ranked

    async def _search_text(
        self,
        owner_entity_id: str,
        terms: SearchTerms,
        options: MemorySearchOptions,
        limit: int,
        min_score: float,
    ) -> list[RankedMemory]:
        """Lexical path. Candidates that match no term are dropped."""
        if terms.is_empty:
            return []

        memories = await self._memories.find_by_owner_entity(owner_entity_id)

        ranked: list[RankedMemory] = []
        for memory in memories:
            if not self._passes_filters(memory, options):
                continue
            score = text_similarity(terms, memory.searchable_text)
            if score <= 0 or score < min_score:
                continue
            ranked.append(RankedMemory(memory=memory, score=score))

        ranked.sort(key=lambda r: r.score, reverse=True)
        return ranked[:limit]

    @staticmethod
    def _metadata_predicate(options: MemorySearchOptions) -> MetadataPredicate | None:
        # Entries indexed without a denormalised source pass and are post-filtered
        if options.source_filter is None:
            return None
        source = options.source_filter
        return lambda metadata: metadata.source is None or metadata.source == source

    @staticmethod
    def _passes_filters(memory: Memory, options: MemorySearchOptions) -> bool:
        if options.min_importance is not None and memory.importance < options.min_importance:
            return False
        if options.source_filter is not None and memory.source != options.source_filter:
            return False
        return True

    def _fire_access_time_updates(self, owner_entity_id: str, results: Sequence[RankedMemory]) -> None:
        """
        Schedule last-accessed updates as a background task (fire-and-forget).

        Non-blocking, non-fatal: bookkeeping failures never affect search results.
        """
        if not results:
            return

        memory_ids = [r.memory.id for r in results]

        async def _do_updates():
            for memory_id in memory_ids:
                try:
                    await self._memories.update_access_time(owner_entity_id, memory_id)
                except Exception as e:
                    logger.warning(f"Access time update failed for memory {memory_id}: {e}")

        self._background.spawn(_do_updates(), name=f"access-time:{owner_entity_id}")

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------

    @staticmethod
    def _metadata_for(memory: Memory) -> VectorMetadata:
        return VectorMetadata(
            memory_id=memory.id,
            owner_entity_id=memory.owner_entity_id,
            content=memory.summary,
            source=memory.source,
            importance=memory.importance,
        )

    async def index_memory(self, memory: Memory, owner_id: str | None = None, profile_id: str | None = None) -> bool:
        """
        Embed a newly created memory and add it to its owner's index.

        Returns:
            Whether a vector was stored. Embedding failures are logged and
            leave the memory unindexed.
        """
        owner_id = owner_id or memory.owner_entity_id
        try:
            embedding = await self._embeddings.generate_for_owner(memory.embedding_text, owner_id, profile_id)
        except (EmbeddingError, ValueError) as e:
            logger.warning(f"Embedding generation failed for memory {memory.id}: {e}")
            return False

        index = await self._index_manager.get_store(memory.owner_entity_id)
        await index.add_vector(memory.id, embedding.vector, self._metadata_for(memory))
        await self._index_manager.save_store(memory.owner_entity_id)
        return True

    async def reindex_memory(self, memory: Memory, owner_id: str | None = None, profile_id: str | None = None) -> bool:
        """Re-embed an edited memory, updating its vector in place or adding it if missing."""
        owner_id = owner_id or memory.owner_entity_id
        try:
            embedding = await self._embeddings.generate_for_owner(memory.embedding_text, owner_id, profile_id)
        except (EmbeddingError, ValueError) as e:
            logger.warning(f"Failed to regenerate embedding for memory {memory.id}: {e}")
            return False

        index = await self._index_manager.get_store(memory.owner_entity_id)
        metadata = self._metadata_for(memory)
        if not await index.update_vector(memory.id, embedding.vector, metadata):
            await index.add_vector(memory.id, embedding.vector, metadata)
        await self._index_manager.save_store(memory.owner_entity_id)
        return True

    async def remove_memory(self, owner_entity_id: str, memory_id: str) -> bool:
        """Drop a deleted memory's vector. Returns whether a vector was removed."""
        try:
            index = await self._index_manager.get_store(owner_entity_id)
            removed = await index.remove_vector(memory_id)
            if removed:
                await self._index_manager.save_store(owner_entity_id)
            return removed
        except Exception as e:
            logger.warning(f"Failed to remove vector for memory {memory_id}: {e}")
            return False

    async def find_similar_memories(
        self,
        owner_entity_id: str,
        text: str,
        owner_id: str | None = None,
        threshold: float | None = None,
        profile_id: str | None = None,
        limit: int = 10,
    ) -> list[RankedMemory]:
        """
        Find near-duplicates of ``text`` among the owner's indexed memories.

        Returns:
            Memories scoring at least ``threshold`` (default
            ``SearchSettings.duplicate_threshold``); empty when no embedding
            can be generated.
        """
        threshold = threshold if threshold is not None else self._settings.duplicate_threshold
        try:
            embedding = await self._embeddings.generate_for_owner(text, owner_id or owner_entity_id, profile_id)
        except (EmbeddingError, ValueError) as e:
            logger.warning(f"Semantic similarity check failed for {owner_entity_id}: {e}")
            return []

        index = await self._index_manager.get_store(owner_entity_id)
        similar: list[RankedMemory] = []
        for hit in index.search(embedding.vector, limit):
            if hit.score < threshold:
                break
            memory = await self._memories.find_by_id(hit.metadata.memory_id)
            if memory is not None:
                similar.append(RankedMemory(memory=memory, score=hit.score))
        return similar

    async def generate_missing_embeddings(
        self,
        owner_entity_id: str,
        owner_id: str | None = None,
        profile_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BackfillReport:
        """
        Index every memory of ``owner_entity_id`` that has no vector yet.

        Memories that already carry a stored embedding are indexed without a
        provider call. The index is saved every ``embed_batch_save_every``
        additions and once at the end.
        """
        owner_id = owner_id or owner_entity_id
        report = BackfillReport()

        memories = await self._memories.find_by_owner_entity(owner_entity_id)
        index = await self._index_manager.get_store(owner_entity_id)
        total = len(memories)

        for position, memory in enumerate(memories):
            if on_progress is not None:
                on_progress(position, total)

            if index.has_vector(memory.id):
                report.skipped += 1
                continue

            try:
                vector = memory.embedding
                if not vector:
                    result = await self._embeddings.generate_for_owner(memory.embedding_text, owner_id, profile_id)
                    vector = result.vector
                await index.add_vector(memory.id, vector, self._metadata_for(memory))
            except (EmbeddingError, DimensionMismatchError, ValueError) as e:
                logger.warning(f"Failed to generate embedding for memory {memory.id}: {e}")
                report.failed += 1
                continue

            report.processed += 1
            if report.processed % self._settings.embed_batch_save_every == 0:
                await self._index_manager.save_store(owner_entity_id)

        await self._index_manager.save_store(owner_entity_id)
        logger.info(
            f"Embedding backfill for {owner_entity_id}: {report.processed} processed, "
            f"{report.failed} failed, {report.skipped} skipped"
        )
        return report

    async def rebuild_index(self, owner_entity_id: str, on_progress: ProgressCallback | None = None) -> RebuildReport:
        """
        Delete the owner's index and rebuild it from the embeddings stored on
        its memories. Memories without a stored embedding are not indexed.
        """
        report = RebuildReport()

        await self._index_manager.delete_store(owner_entity_id)
        index = await self._index_manager.get_store(owner_entity_id)

        memories = [m for m in await self._memories.find_by_owner_entity(owner_entity_id) if m.embedding]
        for position, memory in enumerate(memories):
            if on_progress is not None:
                on_progress(position, len(memories))
            try:
                await index.add_vector(memory.id, memory.embedding, self._metadata_for(memory))
                report.indexed += 1
            except (DimensionMismatchError, ValueError) as e:
                logger.warning(f"Failed to index memory {memory.id}: {e}")
                report.failed += 1

        await self._index_manager.save_store(owner_entity_id)
        logger.info(f"Rebuilt vector index for {owner_entity_id}: {report.indexed} indexed, {report.failed} failed")
        return report

    # ------------------------------------------------------------------
    # Presentation and shutdown
    # ------------------------------------------------------------------

    @staticmethod
    def format_results_for_context(results: Sequence[RankedMemory]) -> str:
        """Render ranked memories as a text block for an LLM prompt."""
        if not results:
            return "No relevant memories found."

        blocks = []
        for position, ranked in enumerate(results, start=1):
            memory = ranked.memory
            blocks.append(
                f"[Memory {position}] (Importance: {importance_label(memory.importance)}, "
                f"Relevance: {ranked.score * 100:.0f}%)\n"
                f"Summary: {memory.summary}\n"
                f"Details: {memory.content}"
            )
        return f"Found {len(results)} relevant memories:\n\n" + "\n\n".join(blocks)

    async def drain_background_tasks(self, timeout: float | None = None) -> None:
        """Wait for pending access-time updates."""
        await self._background.drain(timeout)

    async def close(self) -> None:
        await self._background.drain()
