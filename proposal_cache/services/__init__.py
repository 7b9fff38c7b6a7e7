"""
Services package: sync, indexing, search and read facades.
"""

from .embedding_service import (
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
    SentenceTransformerProvider,
    build_embedding_provider,
)
from .indexing_service import EmbeddingIndexer
from .proposal_service import ProposalService
from .search_service import SemanticSearchEngine
from .sync_service import SyncEngine

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "SentenceTransformerProvider",
    "build_embedding_provider",
    "EmbeddingIndexer",
    "ProposalService",
    "SemanticSearchEngine",
    "SyncEngine",
]
