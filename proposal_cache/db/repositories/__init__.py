"""
Repository package for data access operations.

Implements repository pattern for abstracting database operations.
"""

from .proposal_repository import ProposalRepository
from .vote_repository import VoteRepository
from .embedding_repository import EmbeddingRepository
from .sync_metadata_repository import SyncMetadataRepository

__all__ = [
    "ProposalRepository",
    "VoteRepository",
    "EmbeddingRepository",
    "SyncMetadataRepository",
]
