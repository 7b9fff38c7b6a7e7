"""
Proposal and vote domain models.

Typed records for the cached entities. ORM rows are validated into these
models at the store boundary (``from_attributes``), so callers never see
raw driver rows.
"""

from enum import Enum, IntEnum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProposalStatus(str, Enum):
    """Lifecycle status of a proposal, derived from chain fields at sync time"""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    DEFEATED = "DEFEATED"
    SUCCEEDED = "SUCCEEDED"
    QUEUED = "QUEUED"
    EXPIRED = "EXPIRED"
    EXECUTED = "EXECUTED"
    VETOED = "VETOED"

    @classmethod
    def parse(cls, value: Union[str, "ProposalStatus"]) -> "ProposalStatus":
        """Case-insensitive lookup"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown proposal status {value!r} (expected one of {allowed})")


class VoteSupport(IntEnum):
    """On-chain vote direction (Governor encoding)"""
    AGAINST = 0
    FOR = 1
    ABSTAIN = 2

    @classmethod
    def parse(cls, value: Union[int, str, "VoteSupport"]) -> "VoteSupport":
        """
        Accept the numeric encoding (0/1/2, also as strings) or the names.

        Raises:
            ValueError: for anything else
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid vote support {value!r}")
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(f"Invalid vote support {value!r} (expected FOR, AGAINST or ABSTAIN)")


class Proposal(BaseModel):
    """A cached on-chain proposal."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Chain-native hex proposal id")
    proposal_number: int = Field(ge=0, description="DAO-local sequential number")
    title: str = Field(default="")
    description: str = Field(default="")
    proposer: str
    status: ProposalStatus

    # Timing (unix seconds / block numbers)
    time_created: int
    vote_start: int
    vote_end: int
    snapshot_block: Optional[int] = None
    expires_at: Optional[int] = None
    executable_from: Optional[int] = None

    # Tallies
    for_votes: int = Field(default=0, ge=0)
    against_votes: int = Field(default=0, ge=0)
    abstain_votes: int = Field(default=0, ge=0)
    quorum_votes: int = Field(default=0, ge=0)

    # Flags
    executed: bool = False
    canceled: bool = False
    vetoed: bool = False
    queued: bool = False

    # Provenance
    transaction_hash: Optional[str] = None
    updated_at: int = Field(default=0, description="Local write time (unix seconds)")

    @field_validator("id", mode="before")
    @classmethod
    def lowercase_id(cls, v: Any) -> Any:
        # Hex ids are stored and compared lower-case
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> ProposalStatus:
        return ProposalStatus.parse(v)

    @field_validator("title", "description", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return v or ""

    @property
    def total_votes(self) -> int:
        return self.for_votes + self.against_votes + self.abstain_votes

    def __repr__(self) -> str:
        return f"<Proposal(number={self.proposal_number}, status={self.status.value})>"


class Vote(BaseModel):
    """A single cast vote."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    proposal_id: str
    proposal_number: int
    voter: str
    support: VoteSupport
    weight: int = Field(default=0, ge=0)
    reason: Optional[str] = None
    timestamp: int
    transaction_hash: Optional[str] = None

    @field_validator("proposal_id", mode="before")
    @classmethod
    def lowercase_proposal_id(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("support", mode="before")
    @classmethod
    def parse_support(cls, v: Any) -> VoteSupport:
        return VoteSupport.parse(v)

    @field_validator("reason", mode="before")
    @classmethod
    def blank_reason_to_none(cls, v: Any) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v
