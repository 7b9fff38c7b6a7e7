"""
Repository for vector embedding persistence.

Responsibility: Data access layer for ``EmbeddingModel`` records.
"""

from __future__ import annotations

import logging
import time
from typing import List, Sequence, Tuple

from sqlalchemy import delete, desc, distinct, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import EmbeddingModel, ProposalModel
from ...models.proposal import Proposal
from ...models.results import EmbeddingStats, StoredEmbedding
from ...utils.vector_codec import pack_vector, unpack_vector

logger = logging.getLogger(__name__)


class EmbeddingRepository:
    """Repository encapsulating embedding persistence operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(
        self,
        proposal_id: str,
        chunk_index: int,
        chunk_text: str,
        vector: Sequence[float],
    ) -> None:
        """Insert or overwrite one chunk keyed by (proposal_id, chunk_index)."""
        await self.upsert_many(proposal_id, [(chunk_index, chunk_text, vector)])

    async def upsert_many(
        self,
        proposal_id: str,
        chunks: Sequence[Tuple[int, str, Sequence[float]]],
    ) -> int:
        """
        Batch upsert chunks of one proposal.

        Each chunk is ``(chunk_index, chunk_text, vector)``; the vector is
        packed to a little-endian float32 blob.
        """
        if not chunks:
            return 0

        created_at = int(time.time())
        rows = [
            {
                "proposal_id": proposal_id.lower(),
                "chunk_index": chunk_index,
                "chunk_text": chunk_text,
                "embedding": pack_vector(vector),
                "created_at": created_at,
            }
            for chunk_index, chunk_text, vector in chunks
        ]

        stmt = sqlite_insert(EmbeddingModel.__table__)
        stmt = stmt.on_conflict_do_update(
            index_elements=["proposal_id", "chunk_index"],
            set_={
                "chunk_text": stmt.excluded.chunk_text,
                "embedding": stmt.excluded.embedding,
                "created_at": stmt.excluded.created_at,
            },
        )
        await self.session.execute(stmt, rows)
        logger.debug("Upserted %s embedding chunks for %s", len(rows), proposal_id)
        return len(rows)

    async def delete_for_proposal(self, proposal_id: str) -> int:
        """Remove every chunk of a proposal. Returns the number removed."""
        result = await self.session.execute(
            delete(EmbeddingModel).where(EmbeddingModel.proposal_id == proposal_id.lower())
        )
        return result.rowcount or 0

    async def exists_for_proposal(self, proposal_id: str) -> bool:
        result = await self.session.execute(
            select(EmbeddingModel.chunk_index)
            .where(EmbeddingModel.proposal_id == proposal_id.lower())
            .limit(1)
        )
        return result.first() is not None

    async def chunk_texts(self, proposal_id: str) -> List[str]:
        """Stored chunk texts of a proposal in chunk order."""
        result = await self.session.execute(
            select(EmbeddingModel.chunk_text)
            .where(EmbeddingModel.proposal_id == proposal_id.lower())
            .order_by(EmbeddingModel.chunk_index)
        )
        return list(result.scalars().all())

    async def proposals_without_embeddings(self) -> List[Proposal]:
        """Left anti-join of proposals against embeddings: the indexing queue."""
        result = await self.session.execute(
            select(ProposalModel)
            .outerjoin(EmbeddingModel, EmbeddingModel.proposal_id == ProposalModel.id)
            .where(EmbeddingModel.proposal_id.is_(None))
            .order_by(ProposalModel.proposal_number)
        )
        return [Proposal.model_validate(model) for model in result.scalars().all()]

    async def proposals_with_embeddings(self) -> List[Proposal]:
        indexed = select(distinct(EmbeddingModel.proposal_id))
        result = await self.session.execute(
            select(ProposalModel)
            .where(ProposalModel.id.in_(indexed))
            .order_by(ProposalModel.proposal_number)
        )
        return [Proposal.model_validate(model) for model in result.scalars().all()]

    async def all_with_metadata(self) -> List[StoredEmbedding]:
        """
        Full scan of chunks joined with proposal metadata.

        Ordered by proposal number descending, then chunk index ascending.
        """
        result = await self.session.execute(
            select(
                EmbeddingModel.proposal_id,
                EmbeddingModel.chunk_index,
                EmbeddingModel.chunk_text,
                EmbeddingModel.embedding,
                ProposalModel.proposal_number,
                ProposalModel.title,
                ProposalModel.status,
            )
            .join(ProposalModel, EmbeddingModel.proposal_id == ProposalModel.id)
            .order_by(desc(ProposalModel.proposal_number), EmbeddingModel.chunk_index)
        )
        return [
            StoredEmbedding(
                proposal_id=row.proposal_id,
                proposal_number=row.proposal_number,
                title=row.title,
                status=row.status,
                chunk_index=row.chunk_index,
                chunk_text=row.chunk_text,
                embedding=unpack_vector(row.embedding),
            )
            for row in result.all()
        ]

    async def stats(self) -> EmbeddingStats:
        proposals = await self.session.execute(
            select(func.count()).select_from(ProposalModel)
        )
        embedded = await self.session.execute(
            select(func.count(distinct(EmbeddingModel.proposal_id)))
        )
        chunks = await self.session.execute(
            select(func.count()).select_from(EmbeddingModel)
        )
        return EmbeddingStats(
            total_proposals=proposals.scalar() or 0,
            embedded_proposals=embedded.scalar() or 0,
            total_chunks=chunks.scalar() or 0,
        )
