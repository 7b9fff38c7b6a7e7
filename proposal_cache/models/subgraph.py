"""
Raw subgraph payload models.

The subgraph serializes BigInt fields as decimal strings and uses
camelCase keys. These models accept that shape and convert it to the
cached domain records.
"""

from __future__ import annotations

import time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .proposal import Proposal, ProposalStatus, Vote, VoteSupport


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Expected integer, got {value!r}")
    return int(value)


class SubgraphProposal(BaseModel):
    """A proposal entity as returned by the GraphQL subgraph"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    proposal_id: str = Field(alias="proposalId")
    proposal_number: int = Field(alias="proposalNumber")
    title: Optional[str] = None
    description: Optional[str] = None
    proposer: str
    time_created: int = Field(alias="timeCreated")
    vote_start: int = Field(alias="voteStart")
    vote_end: int = Field(alias="voteEnd")
    snapshot_block_number: Optional[int] = Field(default=None, alias="snapshotBlockNumber")
    for_votes: int = Field(default=0, alias="forVotes")
    against_votes: int = Field(default=0, alias="againstVotes")
    abstain_votes: int = Field(default=0, alias="abstainVotes")
    quorum_votes: int = Field(default=0, alias="quorumVotes")
    executed: bool = False
    canceled: bool = False
    vetoed: bool = False
    queued: bool = False
    transaction_hash: Optional[str] = Field(default=None, alias="transactionHash")
    executable_from: Optional[int] = Field(default=None, alias="executableFrom")
    expires_at: Optional[int] = Field(default=None, alias="expiresAt")

    @field_validator(
        "time_created", "vote_start", "vote_end", "snapshot_block_number",
        "for_votes", "against_votes", "abstain_votes", "quorum_votes",
        "executable_from", "expires_at",
        mode="before",
    )
    @classmethod
    def parse_bigint(cls, v: Any) -> Optional[int]:
        return _to_int(v)

    @field_validator("proposal_id", "proposer", mode="before")
    @classmethod
    def lowercase_hex(cls, v: Any) -> str:
        return str(v).lower()

    def to_domain(self, now: Optional[int] = None) -> Proposal:
        """
        Convert to a cached ``Proposal``.

        Args:
            now: Unix time used for status derivation and ``updated_at``
                (defaults to the current time)
        """
        now = int(time.time()) if now is None else now
        return Proposal(
            id=self.proposal_id,
            proposal_number=self.proposal_number,
            title=self.title or "",
            description=self.description or "",
            proposer=self.proposer,
            status=calculate_proposal_status(self, now=now),
            time_created=self.time_created,
            vote_start=self.vote_start,
            vote_end=self.vote_end,
            snapshot_block=self.snapshot_block_number,
            expires_at=self.expires_at,
            executable_from=self.executable_from,
            for_votes=self.for_votes,
            against_votes=self.against_votes,
            abstain_votes=self.abstain_votes,
            quorum_votes=self.quorum_votes,
            executed=self.executed,
            canceled=self.canceled,
            vetoed=self.vetoed,
            queued=self.queued,
            transaction_hash=self.transaction_hash,
            updated_at=now,
        )


class SubgraphVoteProposalRef(BaseModel):
    """Nested proposal reference on a vote"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    proposal_number: int = Field(alias="proposalNumber")
    proposal_id: Optional[str] = Field(default=None, alias="proposalId")
    title: Optional[str] = None


class SubgraphVote(BaseModel):
    """A proposal vote entity as returned by the GraphQL subgraph"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    voter: str
    support: VoteSupport
    weight: int = 0
    reason: Optional[str] = None
    timestamp: int
    transaction_hash: Optional[str] = Field(default=None, alias="transactionHash")
    proposal: SubgraphVoteProposalRef

    @field_validator("support", mode="before")
    @classmethod
    def parse_support(cls, v: Any) -> VoteSupport:
        return VoteSupport.parse(v)

    @field_validator("weight", "timestamp", mode="before")
    @classmethod
    def parse_bigint(cls, v: Any) -> int:
        return _to_int(v) or 0

    @field_validator("voter", mode="before")
    @classmethod
    def lowercase_voter(cls, v: Any) -> str:
        return str(v).lower()

    def to_domain(self, proposal_id: Optional[str] = None) -> Vote:
        """Convert to a cached ``Vote`` attached to ``proposal_id``."""
        resolved = proposal_id or self.proposal.proposal_id
        if not resolved:
            raise ValueError(f"Vote {self.id} has no proposal id")
        return Vote(
            id=self.id,
            proposal_id=resolved.lower(),
            proposal_number=self.proposal.proposal_number,
            voter=self.voter,
            support=self.support,
            weight=self.weight,
            reason=self.reason,
            timestamp=self.timestamp,
            transaction_hash=self.transaction_hash,
        )


def calculate_proposal_status(proposal: SubgraphProposal, now: Optional[int] = None) -> ProposalStatus:
    """
    Derive the governance status of a proposal from raw chain fields.

    Terminal flags win over timing; once voting has ended the tally decides
    between DEFEATED, EXPIRED and SUCCEEDED.

    Args:
        proposal: Raw subgraph proposal
        now: Unix time to evaluate against (defaults to the current time)
    """
    now = int(time.time()) if now is None else now

    if proposal.vetoed:
        return ProposalStatus.VETOED
    if proposal.canceled:
        return ProposalStatus.CANCELLED
    if proposal.executed:
        return ProposalStatus.EXECUTED
    if proposal.queued:
        return ProposalStatus.QUEUED

    if now < proposal.vote_start:
        return ProposalStatus.PENDING
    if now <= proposal.vote_end:
        return ProposalStatus.ACTIVE

    if proposal.for_votes <= proposal.against_votes:
        return ProposalStatus.DEFEATED
    if proposal.for_votes < proposal.quorum_votes:
        return ProposalStatus.DEFEATED

    if proposal.expires_at is not None and now > proposal.expires_at:
        return ProposalStatus.EXPIRED

    return ProposalStatus.SUCCEEDED
