"""
Semantic search over proposal embeddings.

Brute-force: every stored chunk vector is scored against the query with
cosine similarity, and each proposal is ranked by its best chunk.

Responsibility: Rank cached proposals by semantic similarity to a query
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..db.store import LocalCacheStore
from ..errors import ConfigurationError
from ..models.proposal import ProposalStatus
from ..models.results import SearchHit, StoredEmbedding
from .embedding_service import EmbeddingProvider

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3
MAX_LIMIT = 20
EXCERPT_LENGTH = 200


def cosine_similarity_batch(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of ``query`` against every row of ``matrix``.

    Rows (or a query) with zero magnitude score 0.
    """
    query_norm = np.linalg.norm(query)
    if query_norm == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)
    row_norms = np.linalg.norm(matrix, axis=1)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(row_norms > 0, dots / (row_norms * query_norm), 0.0)
    return scores.astype(np.float64)


def truncate_excerpt(text: str, max_length: int = EXCERPT_LENGTH) -> str:
    """Cut at a word boundary when one is near the limit, then add ``...``."""
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.7:
        return truncated[:last_space] + "..."
    return truncated + "..."


def validate_search_params(query: str, limit: int, threshold: float) -> str:
    """
    Check search arguments; returns the stripped query.

    Raises:
        ValueError: on a too-short query or an out-of-range limit/threshold
    """
    cleaned = (query or "").strip()
    if len(cleaned) < MIN_QUERY_LENGTH:
        raise ValueError(f"Query must be at least {MIN_QUERY_LENGTH} characters")
    if not 1 <= limit <= MAX_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")
    if not 0 <= threshold <= 1:
        raise ValueError("threshold must be between 0 and 1")
    return cleaned


class SemanticSearchEngine:
    """
    Query-time ranking of cached proposals.

    Example:
        engine = SemanticSearchEngine(store, provider)
        hits = await engine.search("skate park funding", limit=5)
    """

    def __init__(self, store: LocalCacheStore, provider: EmbeddingProvider) -> None:
        self.store = store
        self.provider = provider

    async def search(
        self,
        query: str,
        status: Optional[ProposalStatus] = None,
        limit: int = 5,
        threshold: float = 0.3,
    ) -> List[SearchHit]:
        """
        Rank proposals by the best cosine similarity of any of their chunks.

        Args:
            query: Natural language query
            status: Only return proposals with this status
            limit: Maximum number of hits
            threshold: Minimum similarity to be returned

        Raises:
            ValueError: invalid arguments
            ConfigurationError: stored vectors and the query differ in size
            EmbeddingProviderError: the query could not be embedded
        """
        cleaned = validate_search_params(query, limit, threshold)
        wanted_status = ProposalStatus.parse(status).value if status is not None else None

        embeddings = await self.store.get_all_embeddings()
        if not embeddings:
            logger.info("Search on an empty index")
            return []

        if wanted_status is not None:
            embeddings = [e for e in embeddings if e.status == wanted_status]
            if not embeddings:
                return []

        query_vector = np.asarray(await self.provider.embed(cleaned), dtype=np.float32)
        matrix = self._stack(embeddings, query_vector.shape[0])
        scores = cosine_similarity_batch(query_vector, matrix)

        best = self._best_per_proposal(embeddings, scores)
        ranked = sorted(
            (item for item in best.values() if item[0] >= threshold),
            key=lambda item: (-item[0], -item[1].proposal_number),
        )[:limit]
        if not ranked:
            return []

        proposals = await self.store.get_proposals_by_numbers(
            [chunk.proposal_number for _, chunk in ranked]
        )
        by_number = {proposal.proposal_number: proposal for proposal in proposals}

        hits = []
        for score, chunk in ranked:
            proposal = by_number.get(chunk.proposal_number)
            if proposal is None:
                continue
            hits.append(
                SearchHit(
                    proposal=proposal,
                    score=float(score),
                    chunk_index=chunk.chunk_index,
                    excerpt=truncate_excerpt(chunk.chunk_text),
                )
            )
        logger.debug(f"Search {cleaned!r}: {len(hits)} hits over {len(embeddings)} chunks")
        return hits

    @staticmethod
    def _stack(embeddings: List[StoredEmbedding], dimension: int) -> np.ndarray:
        mismatched = {len(e.embedding) for e in embeddings if len(e.embedding) != dimension}
        if mismatched:
            raise ConfigurationError(
                f"Query embedding has {dimension} dimensions but stored embeddings have "
                f"{sorted(mismatched)}; re-index with the current provider"
            )
        return np.asarray([e.embedding for e in embeddings], dtype=np.float32)

    @staticmethod
    def _best_per_proposal(
        embeddings: List[StoredEmbedding], scores: np.ndarray
    ) -> Dict[int, Tuple[float, StoredEmbedding]]:
        best: Dict[int, Tuple[float, StoredEmbedding]] = {}
        for chunk, score in zip(embeddings, scores):
            current = best.get(chunk.proposal_number)
            if current is None or score > current[0]:
                best[chunk.proposal_number] = (float(score), chunk)
        return best
