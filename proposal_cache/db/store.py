"""
Local cache store.

Facade over the repositories: every public operation runs in its own
session, which is one SQLite transaction. Batch writes are all-or-nothing;
a constraint violation rolls the batch back and surfaces as
``StoreIntegrityError``.

Responsibility: Durable storage and query contracts for proposals, votes,
embeddings and sync bookkeeping
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List, Literal, Optional, Sequence, Tuple
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .repositories import (
    EmbeddingRepository,
    ProposalRepository,
    SyncMetadataRepository,
    VoteRepository,
)
from .session import Database
from ..config import DatabaseConfig
from ..errors import StoreIntegrityError
from ..models.proposal import Proposal, ProposalStatus, Vote, VoteSupport
from ..models.results import EmbeddingStats, Page, StoredEmbedding, VoteSummary

logger = logging.getLogger(__name__)

# (chunk_index, chunk_text, vector)
ChunkRecord = Tuple[int, str, Sequence[float]]


class LocalCacheStore:
    """
    Durable local cache of proposals, votes and embeddings.

    Example:
        async with LocalCacheStore(DatabaseConfig(path="cache.db")) as store:
            await store.upsert_proposals(proposals)
            page = await store.list_proposals(status="ACTIVE", limit=10)
    """

    def __init__(
        self,
        config: Optional[DatabaseConfig] = None,
        database: Optional[Database] = None
    ):
        self.database = database or Database(config)

    async def initialize(self) -> None:
        """Open the engine and create missing tables."""
        if not self.database.initialized:
            await self.database.initialize()
        await self.database.create_tables()

    async def close(self) -> None:
        await self.database.close()

    async def __aenter__(self) -> "LocalCacheStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @asynccontextmanager
    async def _transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """One session, committed on success; integrity failures are wrapped."""
        try:
            async with self.database.session() as session:
                yield session
        except IntegrityError as e:
            raise StoreIntegrityError(f"Constraint violation, batch rolled back: {e.orig}") from e

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    async def upsert_proposal(self, proposal: Proposal) -> int:
        return await self.upsert_proposals([proposal])

    async def upsert_proposals(self, proposals: List[Proposal]) -> int:
        """
        Insert or update a batch of proposals in one transaction.

        Returns:
            Number of proposals written

        Raises:
            StoreIntegrityError: if any row violates a constraint (nothing
                from the batch is persisted)
        """
        if not proposals:
            return 0
        async with self._transaction() as session:
            return await ProposalRepository(session).upsert_many(proposals)

    async def get_proposal_by_id(self, proposal_id: str) -> Optional[Proposal]:
        async with self._transaction() as session:
            return await ProposalRepository(session).get_by_id(proposal_id)

    async def get_proposal_by_number(self, proposal_number: int) -> Optional[Proposal]:
        async with self._transaction() as session:
            return await ProposalRepository(session).get_by_number(proposal_number)

    async def get_proposals_by_numbers(self, proposal_numbers: Sequence[int]) -> List[Proposal]:
        async with self._transaction() as session:
            return await ProposalRepository(session).get_by_numbers(proposal_numbers)

    async def list_proposals(
        self,
        status: Optional[ProposalStatus] = None,
        limit: int = 20,
        offset: int = 0,
        order: Literal["asc", "desc"] = "desc"
    ) -> Page[Proposal]:
        """Filtered page of proposals ordered by creation time."""
        async with self._transaction() as session:
            items, total = await ProposalRepository(session).list_proposals(
                status=status, limit=limit, offset=offset, order=order
            )
        return Page[Proposal](items=items, total=total, limit=limit, offset=offset)

    async def count_proposals(self) -> int:
        async with self._transaction() as session:
            return await ProposalRepository(session).count()

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    async def upsert_vote(self, vote: Vote, proposal_id: str) -> int:
        return await self.upsert_votes([vote], proposal_id)

    async def upsert_votes(self, votes: List[Vote], proposal_id: str) -> int:
        """
        Insert or update a batch of votes of one proposal in one transaction.

        Raises:
            StoreIntegrityError: e.g. when ``proposal_id`` is not cached
        """
        if not votes:
            return 0
        async with self._transaction() as session:
            return await VoteRepository(session).upsert_many(votes, proposal_id)

    async def get_votes(
        self,
        proposal_number: int,
        support: Optional[VoteSupport] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Page[Vote]:
        async with self._transaction() as session:
            items, total = await VoteRepository(session).get_by_proposal(
                proposal_number, support=support, limit=limit, offset=offset
            )
        return Page[Vote](items=items, total=total, limit=limit, offset=offset)

    async def get_vote_summary(self, proposal_number: int) -> VoteSummary:
        async with self._transaction() as session:
            return await VoteRepository(session).get_summary(proposal_number)

    async def write_sync_page(
        self,
        proposals: List[Proposal],
        votes_by_proposal: Dict[str, List[Vote]]
    ) -> Tuple[int, int]:
        """
        Persist one sync page: proposals first, then their votes, in a
        single transaction.

        Args:
            proposals: Proposals of the page
            votes_by_proposal: Votes keyed by proposal id

        Returns:
            (proposals written, votes written)
        """
        votes_written = 0
        async with self._transaction() as session:
            proposals_written = await ProposalRepository(session).upsert_many(proposals)
            vote_repo = VoteRepository(session)
            for proposal_id, votes in votes_by_proposal.items():
                votes_written += await vote_repo.upsert_many(votes, proposal_id)
        return proposals_written, votes_written

    # ------------------------------------------------------------------
    # Sync bookkeeping
    # ------------------------------------------------------------------

    async def get_last_sync_time(self) -> Optional[int]:
        async with self._transaction() as session:
            return await SyncMetadataRepository(session).get_last_sync_time()

    async def set_last_sync_time(self, timestamp: int) -> None:
        async with self._transaction() as session:
            await SyncMetadataRepository(session).set_last_sync_time(timestamp)

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    async def upsert_embedding(
        self,
        proposal_id: str,
        chunk_index: int,
        chunk_text: str,
        vector: Sequence[float]
    ) -> None:
        async with self._transaction() as session:
            await EmbeddingRepository(session).upsert(proposal_id, chunk_index, chunk_text, vector)

    async def replace_embeddings(self, proposal_id: str, chunks: Sequence[ChunkRecord]) -> int:
        """
        Swap a proposal's whole chunk set in one transaction.

        Readers see either the old chunks or the new ones, never a mix.

        Returns:
            Number of chunks written
        """
        async with self._transaction() as session:
            repo = EmbeddingRepository(session)
            removed = await repo.delete_for_proposal(proposal_id)
            written = await repo.upsert_many(proposal_id, chunks)
        logger.debug(f"Replaced {removed} chunks with {written} for {proposal_id}")
        return written

    async def delete_embeddings(self, proposal_id: str) -> int:
        async with self._transaction() as session:
            return await EmbeddingRepository(session).delete_for_proposal(proposal_id)

    async def has_embeddings(self, proposal_id: str) -> bool:
        async with self._transaction() as session:
            return await EmbeddingRepository(session).exists_for_proposal(proposal_id)

    async def get_embedding_chunks(self, proposal_id: str) -> List[str]:
        async with self._transaction() as session:
            return await EmbeddingRepository(session).chunk_texts(proposal_id)

    async def get_proposals_without_embeddings(self) -> List[Proposal]:
        async with self._transaction() as session:
            return await EmbeddingRepository(session).proposals_without_embeddings()

    async def get_proposals_with_embeddings(self) -> List[Proposal]:
        async with self._transaction() as session:
            return await EmbeddingRepository(session).proposals_with_embeddings()

    async def get_all_embeddings(self) -> List[StoredEmbedding]:
        async with self._transaction() as session:
            return await EmbeddingRepository(session).all_with_metadata()

    async def get_embedding_stats(self) -> EmbeddingStats:
        async with self._transaction() as session:
            return await EmbeddingRepository(session).stats()
