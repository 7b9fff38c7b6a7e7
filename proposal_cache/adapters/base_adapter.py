"""
Base adapter interface for remote data sources.

Defines the contract the subgraph client implements. Ensures consistent
error handling and response format: fetch methods report failures in an
``AdapterResponse`` instead of raising.

Responsibility: Abstract base class defining adapter contract
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Generic, TypeVar, Any, Dict, Optional
import logging

from ..models.adapter_models import (
    AdapterResponse,
    AdapterStatus,
    AdapterError,
    AdapterMetrics,
)


# Normalized record type
T = TypeVar('T')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseAdapter(ABC, Generic[T]):
    """
    Common plumbing for clients of remote sources.

    Subclasses provide ``fetch`` and ``normalize``. Network and decoding
    failures never escape a fetch method: they come back as a failed
    ``AdapterResponse`` whose errors say whether retrying makes sense.
    Per-record normalization failures are collected next to the records
    that did normalize (``PARTIAL_SUCCESS``).
    """

    def __init__(
        self,
        source_name: str,
        max_retries: int = 3,
        timeout_seconds: float = 30
    ):
        """
        Args:
            source_name: Identifier for this adapter (e.g., "subgraph")
            max_retries: Maximum attempts for retryable errors
            timeout_seconds: Request timeout in seconds
        """
        self.source_name = source_name
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds

        self.logger = logging.getLogger(f"adapter.{source_name}")

    @abstractmethod
    async def fetch(self, **kwargs: Any) -> AdapterResponse[T]:
        """
        Fetch one page of records from the source.

        Args:
            **kwargs: Source-specific parameters (offset, limit, ...)

        Returns:
            AdapterResponse with the normalized page, per-record errors and timing
        """
        pass

    @abstractmethod
    def normalize(self, raw_data: Any) -> T:
        """
        Normalize raw source data into a domain model.

        Raises:
            ValueError: If raw_data cannot be normalized (caught by fetch())
        """
        pass

    def _record_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> AdapterError:
        """Wrap a per-record normalization failure."""
        return AdapterError(
            timestamp=utcnow(),
            error_type=type(error).__name__,
            message=str(error),
            context={"adapter": self.source_name, **(context or {})},
            retryable=False
        )

    def _build_success_response(
        self,
        data: list[T],
        errors: list[AdapterError],
        start_time: datetime,
        offset: int = 0,
        has_more: bool = False,
        retry_count: int = 0
    ) -> AdapterResponse[T]:
        """
        Response for a fetch that reached the source.

        PARTIAL_SUCCESS when some records failed to normalize.
        """
        end_time = utcnow()
        duration = (end_time - start_time).total_seconds()

        if not errors:
            status = AdapterStatus.SUCCESS
        else:
            status = AdapterStatus.PARTIAL_SUCCESS

        return AdapterResponse(
            status=status,
            data=data,
            errors=errors,
            metrics=AdapterMetrics(
                records_attempted=len(data) + len(errors),
                records_succeeded=len(data),
                records_failed=len(errors),
                duration_seconds=max(duration, 0.0),
                retry_count=retry_count
            ),
            source=self.source_name,
            fetch_timestamp=end_time,
            offset=offset,
            has_more=has_more
        )

    def _build_failure_response(
        self,
        error: Exception,
        start_time: datetime,
        retryable: bool = False,
        offset: int = 0,
        context: Optional[Dict[str, Any]] = None,
        retry_count: int = 0
    ) -> AdapterResponse[T]:
        """
        Response for a fetch that produced no page.

        Used when the whole fetch fails (source unavailable, query error).
        """
        end_time = utcnow()
        duration = (end_time - start_time).total_seconds()

        return AdapterResponse(
            status=AdapterStatus.SOURCE_UNAVAILABLE if retryable else AdapterStatus.FAILURE,
            data=None,
            errors=[AdapterError(
                timestamp=end_time,
                error_type=type(error).__name__,
                message=str(error),
                context={"adapter": self.source_name, "offset": offset, **(context or {})},
                retryable=retryable
            )],
            metrics=AdapterMetrics(
                records_attempted=0,
                records_succeeded=0,
                records_failed=0,
                duration_seconds=max(duration, 0.0),
                retry_count=retry_count
            ),
            source=self.source_name,
            fetch_timestamp=end_time,
            offset=offset
        )
