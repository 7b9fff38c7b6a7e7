"""
Repository for proposal data operations.

Implements repository pattern for proposal upserts, point lookups and
filtered listings.

Responsibility: Abstract database operations for proposals
"""

from typing import Iterable, List, Literal, Optional, Tuple
import logging

from sqlalchemy import asc, desc, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import ProposalModel
from ...models.proposal import Proposal, ProposalStatus

logger = logging.getLogger(__name__)


# Columns a re-sync is allowed to overwrite. id, proposal_number, proposer
# and time_created are fixed at first insert.
MUTABLE_PROPOSAL_COLUMNS = (
    "status",
    "for_votes",
    "against_votes",
    "abstain_votes",
    "quorum_votes",
    "executed",
    "canceled",
    "vetoed",
    "queued",
    "expires_at",
    "executable_from",
    "updated_at",
)


def proposal_to_row(proposal: Proposal) -> dict:
    """Flatten a ``Proposal`` into column values."""
    row = proposal.model_dump()
    row["status"] = proposal.status.value
    return row


class ProposalRepository:
    """
    Repository for proposal persistence.

    Example:
        repo = ProposalRepository(session)

        # Bulk upsert (caller's session is the transaction)
        written = await repo.upsert_many(proposals)

        # Lookups
        proposal = await repo.get_by_number(42)
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: Active database session
        """
        self.session = session

    async def get_by_id(self, proposal_id: str) -> Optional[Proposal]:
        """Get proposal by hex id (case-insensitive)"""
        result = await self.session.execute(
            select(ProposalModel).where(ProposalModel.id == proposal_id.lower())
        )
        model = result.scalar_one_or_none()
        return Proposal.model_validate(model) if model else None

    async def get_by_number(self, proposal_number: int) -> Optional[Proposal]:
        """Get proposal by DAO-local number"""
        result = await self.session.execute(
            select(ProposalModel).where(ProposalModel.proposal_number == proposal_number)
        )
        model = result.scalar_one_or_none()
        return Proposal.model_validate(model) if model else None

    async def get_by_numbers(self, proposal_numbers: Iterable[int]) -> List[Proposal]:
        """Get several proposals by number, ordered by number descending"""
        numbers = list(proposal_numbers)
        if not numbers:
            return []
        result = await self.session.execute(
            select(ProposalModel)
            .where(ProposalModel.proposal_number.in_(numbers))
            .order_by(desc(ProposalModel.proposal_number))
        )
        return [Proposal.model_validate(model) for model in result.scalars().all()]

    async def list_proposals(
        self,
        status: Optional[ProposalStatus] = None,
        limit: int = 20,
        offset: int = 0,
        order: Literal["asc", "desc"] = "desc"
    ) -> Tuple[List[Proposal], int]:
        """
        List proposals ordered by creation time.

        The count and the page are built from the same predicate, so
        ``total`` always describes the set being paged through.

        Returns:
            (page of proposals, total matching proposals)
        """
        predicates = []
        if status is not None:
            predicates.append(ProposalModel.status == ProposalStatus.parse(status).value)

        direction = asc if order == "asc" else desc

        count_result = await self.session.execute(
            select(func.count()).select_from(ProposalModel).where(*predicates)
        )
        total = count_result.scalar() or 0

        result = await self.session.execute(
            select(ProposalModel)
            .where(*predicates)
            .order_by(
                direction(ProposalModel.time_created),
                direction(ProposalModel.proposal_number),
            )
            .limit(limit)
            .offset(offset)
        )
        proposals = [Proposal.model_validate(model) for model in result.scalars().all()]
        return proposals, total

    async def count(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(ProposalModel)
        )
        return result.scalar() or 0

    async def upsert_many(self, proposals: List[Proposal]) -> int:
        """
        Insert or update proposals keyed by ``id``.

        On conflict only the mutable columns are overwritten. A unique
        violation on ``proposal_number`` raises ``IntegrityError``; the
        caller's transaction decides what gets rolled back.

        Returns:
            Number of proposals written
        """
        if not proposals:
            return 0

        rows = [proposal_to_row(proposal) for proposal in proposals]

        # Core insert on the table: executemany with per-row upsert
        stmt = sqlite_insert(ProposalModel.__table__)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={column: stmt.excluded[column] for column in MUTABLE_PROPOSAL_COLUMNS}
        )
        await self.session.execute(stmt, rows)

        logger.debug(f"Upserted {len(rows)} proposals")
        return len(rows)
