"""
Exception hierarchy for the proposal cache.

"Not found" is not an error here: point lookups return ``None``.

Responsibility: Typed errors raised across store, sync, indexing and search
"""

from typing import Any, Dict, Optional


class ProposalCacheError(Exception):
    """Base class for all proposal cache errors"""


class ConfigurationError(ProposalCacheError):
    """Invalid configuration, e.g. query/stored embedding dimension mismatch"""


class StoreIntegrityError(ProposalCacheError):
    """A write violated a uniqueness or foreign-key constraint; batch rolled back"""


class VectorEncodingError(ProposalCacheError, ValueError):
    """A stored embedding blob could not be decoded"""


class EmbeddingProviderError(ProposalCacheError):
    """The embedding provider failed to return a usable vector"""


class UpstreamFetchError(ProposalCacheError):
    """
    A subgraph request failed (transport, non-2xx, GraphQL errors array).

    Carries enough context to resume: the page offset and the query
    variables that were sent.
    """

    def __init__(
        self,
        message: str,
        offset: Optional[int] = None,
        query: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
        retryable: bool = False
    ):
        super().__init__(message)
        self.offset = offset
        self.query = query
        self.variables = variables or {}
        self.retryable = retryable


class SyncError(ProposalCacheError):
    """
    A sync run stopped on a failed page.

    Pages committed before the failure stay in the store; the failed
    page left nothing behind.
    """

    def __init__(
        self,
        message: str,
        pages_completed: int,
        offset: int,
        proposals_written: int = 0,
        votes_written: int = 0
    ):
        super().__init__(message)
        self.pages_completed = pages_completed
        self.offset = offset
        self.proposals_written = proposals_written
        self.votes_written = votes_written
