"""
Repository for vote database operations.

Handles batch upserts, paginated listings and voter summaries for votes
cast on proposals.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import case, desc, distinct, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import VoteModel
from ...models.proposal import Vote, VoteSupport
from ...models.results import VoteSummary

logger = logging.getLogger(__name__)


class VoteRepository:
    """Repository for vote database operations."""

    def __init__(self, session: AsyncSession):
        """
        Initialize repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def get_by_proposal(
        self,
        proposal_number: int,
        support: Optional[VoteSupport] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[Vote], int]:
        """
        Get a page of votes for a proposal, most recent first.

        Args:
            proposal_number: DAO-local proposal number
            support: Optional support filter
            limit: Page size
            offset: Page offset

        Returns:
            (page of votes, total matching votes)
        """
        predicates = [VoteModel.proposal_number == proposal_number]
        if support is not None:
            predicates.append(VoteModel.support == int(VoteSupport.parse(support)))

        count_result = await self.session.execute(
            select(func.count()).select_from(VoteModel).where(*predicates)
        )
        total = count_result.scalar() or 0

        result = await self.session.execute(
            select(VoteModel)
            .where(*predicates)
            .order_by(desc(VoteModel.timestamp), VoteModel.id)
            .limit(limit)
            .offset(offset)
        )
        votes = [Vote.model_validate(model) for model in result.scalars().all()]
        return votes, total

    async def upsert_many(self, votes: List[Vote], proposal_id: str) -> int:
        """
        Batch insert or update votes of one proposal.

        On conflict only ``weight`` and ``reason`` are overwritten; voter,
        support, proposal and timestamp stay as first written.

        Args:
            votes: Votes to write
            proposal_id: Hex id of the proposal they belong to

        Returns:
            Number of votes written
        """
        if not votes:
            return 0

        rows = []
        for vote in votes:
            row = vote.model_dump()
            row["proposal_id"] = proposal_id.lower()
            row["support"] = int(vote.support)
            rows.append(row)

        stmt = sqlite_insert(VoteModel.__table__)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                "weight": stmt.excluded.weight,
                "reason": stmt.excluded.reason,
            }
        )
        await self.session.execute(stmt, rows)

        logger.debug(f"Upserted {len(rows)} votes for proposal {proposal_id}")
        return len(rows)

    async def get_summary(self, proposal_number: int) -> VoteSummary:
        """
        Count distinct voters per support value.

        Counts voters, not rows, so a double-reported vote from the source
        does not inflate the figures.
        """
        def voters_with(support: VoteSupport):
            return func.count(
                distinct(case((VoteModel.support == int(support), VoteModel.voter)))
            )

        result = await self.session.execute(
            select(
                func.count(distinct(VoteModel.voter)),
                voters_with(VoteSupport.FOR),
                voters_with(VoteSupport.AGAINST),
                voters_with(VoteSupport.ABSTAIN),
            ).where(VoteModel.proposal_number == proposal_number)
        )
        total, for_voters, against_voters, abstain_voters = result.one()

        return VoteSummary(
            total_voters=total or 0,
            for_voters=for_voters or 0,
            against_voters=against_voters or 0,
            abstain_voters=abstain_voters or 0,
        )
