"""
Database package for the proposal cache.

Provides ORM models, session management, repositories and the
``LocalCacheStore`` facade.
"""

from .models import Base, ProposalModel, VoteModel, EmbeddingModel, SyncMetadataModel
from .session import Database
from .store import LocalCacheStore

__all__ = [
    "Base",
    "ProposalModel",
    "VoteModel",
    "EmbeddingModel",
    "SyncMetadataModel",
    "Database",
    "LocalCacheStore",
]
