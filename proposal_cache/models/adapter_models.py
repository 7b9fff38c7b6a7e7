"""
Adapter response models.

Defines the response structure returned by the subgraph adapter. Adapters
do not raise on fetch failures; they report status, errors and metrics in
an ``AdapterResponse`` and let the caller decide whether to abort.

Responsibility: Data transfer objects for adapter operations
"""

from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar, Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


class AdapterStatus(str, Enum):
    """
    Status of an adapter operation.

    Used to quickly determine if retry logic or error handling is needed.
    """
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"  # Some records failed normalization
    FAILURE = "failure"
    SOURCE_UNAVAILABLE = "source_unavailable"


class AdapterError(BaseModel):
    """
    Structured error information from adapter operations.

    Captures context needed for debugging and resuming a sync.
    """
    timestamp: datetime = Field(description="When the error occurred (UTC)")
    error_type: str = Field(description="Exception class name or error category")
    message: str = Field(description="Human-readable error message")
    context: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context (offset, query variables, record id)"
    )
    retryable: bool = Field(
        default=False,
        description="Whether this error can be retried"
    )


class AdapterMetrics(BaseModel):
    """Operational metrics for one adapter call."""
    records_attempted: int = Field(ge=0)
    records_succeeded: int = Field(ge=0)
    records_failed: int = Field(ge=0)
    duration_seconds: float = Field(ge=0.0)
    retry_count: int = Field(ge=0, default=0)


T = TypeVar('T')


class AdapterResponse(BaseModel, Generic[T]):
    """
    Unified response wrapper for adapter operations.

    Generic type T is the normalized record type (``Proposal``, ``Vote``).
    ``has_more`` is True when the page came back full, i.e. the caller
    should request the next offset.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: AdapterStatus = Field(description="Operation status")
    data: Optional[List[T]] = Field(
        default=None,
        description="List of successfully normalized records"
    )
    errors: List[AdapterError] = Field(
        default_factory=list,
        description="List of errors encountered during operation"
    )
    metrics: AdapterMetrics = Field(description="Operation performance metrics")
    source: str = Field(description="Adapter/source identifier")
    fetch_timestamp: datetime = Field(description="When data was fetched (UTC)")
    offset: int = Field(default=0, ge=0, description="Offset of the requested page")
    has_more: bool = Field(default=False, description="A further page may exist")

    @property
    def ok(self) -> bool:
        return self.status in (AdapterStatus.SUCCESS, AdapterStatus.PARTIAL_SUCCESS)

    def error_summary(self) -> str:
        """One-line description of the errors, for logs and exceptions."""
        if not self.errors:
            return self.status.value
        return "; ".join(f"[{e.error_type}] {e.message}" for e in self.errors)
