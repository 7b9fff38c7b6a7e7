"""
Models package for the proposal cache.

This package contains all Pydantic models for:
- Domain entities (proposals, votes)
- Raw subgraph payloads
- Adapter responses and job results
"""

from .adapter_models import (
    AdapterStatus,
    AdapterError,
    AdapterMetrics,
    AdapterResponse,
)
from .proposal import Proposal, ProposalStatus, Vote, VoteSupport
from .results import (
    EmbeddingStats,
    IndexResult,
    Page,
    ProposalDetail,
    ProposalVotes,
    SearchHit,
    StoredEmbedding,
    SyncResult,
    VoteSummary,
)
from .subgraph import SubgraphProposal, SubgraphVote, calculate_proposal_status

__all__ = [
    "AdapterStatus",
    "AdapterError",
    "AdapterMetrics",
    "AdapterResponse",
    "Proposal",
    "ProposalStatus",
    "Vote",
    "VoteSupport",
    "EmbeddingStats",
    "IndexResult",
    "Page",
    "ProposalDetail",
    "ProposalVotes",
    "SearchHit",
    "StoredEmbedding",
    "SyncResult",
    "VoteSummary",
    "SubgraphProposal",
    "SubgraphVote",
    "calculate_proposal_status",
]
