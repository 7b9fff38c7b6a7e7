"""
Result records returned by the store and the services.

Responsibility: Data transfer objects for pagination, summaries and
batch job outcomes
"""

from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, Field, computed_field

from .proposal import Proposal, Vote


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a filtered listing plus the size of the whole filtered set"""
    items: List[T] = Field(default_factory=list)
    total: int = Field(ge=0)
    limit: int = Field(ge=0)
    offset: int = Field(ge=0)

    @computed_field
    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


class VoteSummary(BaseModel):
    """Distinct-voter counts for a proposal, partitioned by support"""
    total_voters: int = 0
    for_voters: int = 0
    against_voters: int = 0
    abstain_voters: int = 0


class EmbeddingStats(BaseModel):
    """Indexing progress counters"""
    total_proposals: int = 0
    embedded_proposals: int = 0
    total_chunks: int = 0

    @computed_field
    @property
    def pending_proposals(self) -> int:
        return max(self.total_proposals - self.embedded_proposals, 0)


class StoredEmbedding(BaseModel):
    """A chunk vector joined with the metadata of its proposal"""
    proposal_id: str
    proposal_number: int
    title: str
    status: str
    chunk_index: int
    chunk_text: str
    embedding: List[float]


class SyncResult(BaseModel):
    """Outcome of a sync run"""
    full: bool
    proposals_written: int = 0
    votes_written: int = 0
    pages: int = 0
    duration_ms: int = 0
    last_sync_time: Optional[int] = None


class IndexResult(BaseModel):
    """Outcome of an indexing run"""
    proposals_indexed: int = 0
    chunks_written: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)

    def merge(self, other: "IndexResult") -> "IndexResult":
        return IndexResult(
            proposals_indexed=self.proposals_indexed + other.proposals_indexed,
            chunks_written=self.chunks_written + other.chunks_written,
            skipped=self.skipped + other.skipped,
            failed=self.failed + other.failed,
            errors=self.errors + other.errors,
        )


class SearchHit(BaseModel):
    """A ranked search result"""
    proposal: Proposal
    score: float
    chunk_index: int
    excerpt: str


class ProposalDetail(Proposal):
    """A proposal with derived vote figures"""
    participation_rate: str
    result: Optional[Literal["PASSING", "FAILING", "TIE"]] = None

    @computed_field
    @property
    def total_votes(self) -> int:
        return self.for_votes + self.against_votes + self.abstain_votes


class ProposalVotes(BaseModel):
    """A page of votes plus the voter summary of the proposal"""
    proposal_number: int
    votes: Page[Vote]
    summary: VoteSummary
