"""
Read facade over the local cache.

Resolves proposal references given as numbers, numeric strings or hex
ids, validates paging arguments and adds derived vote figures.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional, Union

from ..db.store import LocalCacheStore
from ..models.proposal import Proposal, ProposalStatus, VoteSupport
from ..models.results import Page, ProposalDetail, ProposalVotes

logger = logging.getLogger(__name__)

ProposalRef = Union[int, str]

MAX_PROPOSAL_PAGE = 100
MAX_VOTE_PAGE = 200

# No tally verdict before voting or after a veto/cancel
_NO_RESULT_STATUSES = {ProposalStatus.PENDING, ProposalStatus.CANCELLED, ProposalStatus.VETOED}


def compute_participation(proposal: Proposal) -> str:
    if proposal.quorum_votes == 0:
        return "N/A"
    percentage = proposal.total_votes / proposal.quorum_votes * 100
    return f"{percentage:.1f}% of quorum"


def compute_result(proposal: Proposal) -> Optional[str]:
    if proposal.status in _NO_RESULT_STATUSES:
        return None
    if proposal.for_votes > proposal.against_votes:
        return "PASSING"
    if proposal.against_votes > proposal.for_votes:
        return "FAILING"
    if proposal.for_votes > 0:
        return "TIE"
    return None


def _check_range(name: str, value: int, low: int, high: Optional[int] = None) -> None:
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f"at least {low}"
        raise ValueError(f"{name} must be {bound}")


class ProposalService:
    """Query interface used by the CLI."""

    def __init__(self, store: LocalCacheStore):
        self.store = store

    async def resolve(self, ref: ProposalRef) -> Optional[Proposal]:
        """
        Look up a proposal by number, numeric string or ``0x`` hex id.

        Returns None for unknown proposals and unparseable references.
        """
        if isinstance(ref, bool):
            return None
        if isinstance(ref, int):
            return await self.store.get_proposal_by_number(ref)

        text = str(ref).strip()
        if text.lower().startswith("0x"):
            return await self.store.get_proposal_by_id(text)
        if text.lstrip("#").isdigit():
            return await self.store.get_proposal_by_number(int(text.lstrip("#")))

        logger.debug(f"Unrecognised proposal reference {ref!r}")
        return None

    async def list_proposals(
        self,
        status: Optional[Union[ProposalStatus, str]] = None,
        limit: int = 20,
        offset: int = 0,
        order: Literal["asc", "desc"] = "desc"
    ) -> Page[Proposal]:
        _check_range("limit", limit, 1, MAX_PROPOSAL_PAGE)
        _check_range("offset", offset, 0)
        if order not in ("asc", "desc"):
            raise ValueError("order must be 'asc' or 'desc'")
        parsed = ProposalStatus.parse(status) if status is not None else None
        return await self.store.list_proposals(parsed, limit=limit, offset=offset, order=order)

    async def get_proposal(self, ref: ProposalRef) -> Optional[ProposalDetail]:
        proposal = await self.resolve(ref)
        if proposal is None:
            return None
        return ProposalDetail(
            **proposal.model_dump(),
            participation_rate=compute_participation(proposal),
            result=compute_result(proposal),
        )

    async def get_votes(
        self,
        ref: ProposalRef,
        support: Optional[Union[VoteSupport, str, int]] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Optional[ProposalVotes]:
        """Page of votes plus the distinct-voter summary; None if not cached."""
        _check_range("limit", limit, 1, MAX_VOTE_PAGE)
        _check_range("offset", offset, 0)
        parsed = VoteSupport.parse(support) if support is not None else None

        proposal = await self.resolve(ref)
        if proposal is None:
            return None

        votes = await self.store.get_votes(
            proposal.proposal_number, support=parsed, limit=limit, offset=offset
        )
        summary = await self.store.get_vote_summary(proposal.proposal_number)
        return ProposalVotes(
            proposal_number=proposal.proposal_number,
            votes=votes,
            summary=summary,
        )
