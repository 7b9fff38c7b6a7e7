"""
Embedding indexing service.

Drains the queue of proposals without embeddings: prepares the proposal
text, chunks it, embeds each chunk and stores the chunk set atomically.
A provider failure on one proposal is recorded and the run moves on.

Responsibility: Keep the embedding index in step with cached proposals
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Sequence

from ..config import EmbeddingConfig, settings
from ..db.store import ChunkRecord, LocalCacheStore
from ..errors import ConfigurationError, EmbeddingProviderError, VectorEncodingError
from ..models.proposal import Proposal
from ..models.results import IndexResult
from ..utils.text_chunker import TextChunk, chunk_text, prepare_proposal_text
from .embedding_service import EmbeddingProvider

logger = logging.getLogger(__name__)

# on_progress(done, total, proposal)
ProgressCallback = Callable[[int, int, Proposal], None]


class EmbeddingIndexer:
    """
    Builds and refreshes proposal embeddings.

    Example:
        indexer = EmbeddingIndexer(store, build_embedding_provider())
        result = await indexer.index_missing()
        print(result.proposals_indexed, result.failed)
    """

    def __init__(
        self,
        store: LocalCacheStore,
        provider: EmbeddingProvider,
        config: Optional[EmbeddingConfig] = None
    ) -> None:
        self.store = store
        self.provider = provider
        self.config = config or settings.embedding

    def chunks_for(self, proposal: Proposal) -> List[TextChunk]:
        """Deterministic chunking of a proposal's searchable text."""
        text = prepare_proposal_text(proposal.title, proposal.description)
        return chunk_text(
            text,
            max_chunk_size=self.config.chunk_size,
            overlap=self.config.chunk_overlap,
        )

    async def _embed(self, text: str) -> List[float]:
        try:
            return await self.provider.embed(text)
        except (EmbeddingProviderError, ConfigurationError):
            raise
        except Exception as exc:
            raise EmbeddingProviderError(f"Embedding provider failed: {exc}") from exc

    async def _embed_chunks(self, proposal: Proposal, chunks: Sequence[TextChunk]) -> List[ChunkRecord]:
        """
        Embed every chunk of a proposal.

        Raises:
            EmbeddingProviderError: a call failed or a vector has the wrong size
        """
        expected = self.config.dimension
        records: List[ChunkRecord] = []
        for chunk in chunks:
            vector = await self._embed(chunk.text)
            if expected is None:
                expected = len(vector)
            if len(vector) != expected:
                raise EmbeddingProviderError(
                    f"Proposal #{proposal.proposal_number} chunk {chunk.index}: "
                    f"expected {expected} dimensions, got {len(vector)}"
                )
            records.append((chunk.index, chunk.text, vector))
        return records

    async def _index_proposals(
        self,
        proposals: Sequence[Proposal],
        on_progress: Optional[ProgressCallback] = None
    ) -> IndexResult:
        result = IndexResult()
        total = len(proposals)

        for done, proposal in enumerate(proposals, start=1):
            chunks = self.chunks_for(proposal)
            if not chunks:
                logger.info(f"Skipping proposal #{proposal.proposal_number}: no text")
                result.skipped += 1
            else:
                try:
                    records = await self._embed_chunks(proposal, chunks)
                    written = await self.store.replace_embeddings(proposal.id, records)
                except (EmbeddingProviderError, VectorEncodingError) as e:
                    message = f"Proposal #{proposal.proposal_number}: {e}"
                    logger.error(f"Failed to index {message}")
                    result.failed += 1
                    result.errors.append(message)
                else:
                    result.proposals_indexed += 1
                    result.chunks_written += written
                    logger.debug(
                        f"Indexed proposal #{proposal.proposal_number} ({written} chunks)"
                    )

            if on_progress:
                on_progress(done, total, proposal)

        return result

    async def index_missing(self, on_progress: Optional[ProgressCallback] = None) -> IndexResult:
        """
        Embed every cached proposal that has no chunks yet.

        Args:
            on_progress: Called after each proposal with (done, total, proposal)
        """
        queue = await self.store.get_proposals_without_embeddings()
        logger.info(f"Indexing {len(queue)} proposals without embeddings")
        result = await self._index_proposals(queue, on_progress)
        logger.info(
            f"Indexing complete: {result.proposals_indexed} indexed, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result

    async def reindex(
        self,
        proposal_numbers: Iterable[int],
        on_progress: Optional[ProgressCallback] = None
    ) -> IndexResult:
        """
        Rebuild the chunks of specific proposals.

        Numbers not in the cache are reported in ``errors``. A proposal whose
        text is now empty loses its chunks and counts as skipped.
        """
        numbers = list(dict.fromkeys(proposal_numbers))
        proposals = await self.store.get_proposals_by_numbers(numbers)
        found = {proposal.proposal_number for proposal in proposals}

        result = IndexResult()
        for number in numbers:
            if number not in found:
                result.failed += 1
                result.errors.append(f"Proposal #{number}: not in cache")

        for proposal in proposals:
            if not self.chunks_for(proposal):
                await self.store.delete_embeddings(proposal.id)

        return result.merge(await self._index_proposals(proposals, on_progress))

    async def reindex_stale(self, on_progress: Optional[ProgressCallback] = None) -> IndexResult:
        """
        Re-embed indexed proposals whose stored chunk texts no longer match
        a fresh chunking (edited text or changed chunk settings).
        """
        stale: List[Proposal] = []
        for proposal in await self.store.get_proposals_with_embeddings():
            stored = await self.store.get_embedding_chunks(proposal.id)
            fresh = [chunk.text for chunk in self.chunks_for(proposal)]
            if stored != fresh:
                stale.append(proposal)

        logger.info(f"Found {len(stale)} proposals with stale embeddings")
        if not stale:
            return IndexResult()
        return await self.reindex([proposal.proposal_number for proposal in stale], on_progress)
