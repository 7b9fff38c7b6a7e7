"""
Synchronization service between the subgraph and the local cache.

Fetches proposal pages newest-first, pulls every vote of each proposal on
the page, and writes the page with its votes in one transaction. Upserts
are idempotent, so re-reading a window that overlaps the cache converges
instead of duplicating. A page with a record that cannot be parsed is
not written at all.

Responsibility: Reconcile the local cache against the remote subgraph
"""

from typing import Callable, Dict, List, Optional
import logging
import time

from ..adapters.subgraph_client import SubgraphClient
from ..config import SubgraphConfig, settings
from ..db.store import LocalCacheStore
from ..errors import StoreIntegrityError, SyncError, UpstreamFetchError
from ..models.adapter_models import AdapterResponse
from ..models.proposal import Proposal, Vote
from ..models.results import SyncResult

logger = logging.getLogger(__name__)


def _upstream_error(response: AdapterResponse, offset: int) -> UpstreamFetchError:
    """Turn a failed adapter response back into an exception."""
    variables = {}
    retryable = False
    if response.errors:
        variables = response.errors[0].context.get("variables", {})
        retryable = response.errors[0].retryable
    return UpstreamFetchError(
        response.error_summary(), offset=offset, variables=variables, retryable=retryable
    )


def _complete(response: AdapterResponse) -> bool:
    """A page can be written only if every record on it normalized."""
    return response.ok and not response.errors


class SyncEngine:
    """
    Incremental proposal/vote synchronization.

    Example:
        async with LocalCacheStore() as store, SubgraphClient() as client:
            engine = SyncEngine(store, client)
            result = await engine.sync(full=False)
    """

    def __init__(
        self,
        store: LocalCacheStore,
        client: SubgraphClient,
        config: Optional[SubgraphConfig] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize sync engine.

        Args:
            store: Local cache to write into
            client: Subgraph adapter to read from
            config: Paging settings (defaults to the client's config)
            clock: Source of "now" in unix seconds
        """
        self.store = store
        self.client = client
        self.config = config or getattr(client, "config", None) or settings.subgraph
        self.clock = clock

    async def sync(self, full: bool = False) -> SyncResult:
        """
        Run one sync.

        A windowed sync reads the ``sync_window_pages`` newest pages; a full
        sync pages until the subgraph returns a short page.

        Raises:
            SyncError: a page could not be fetched, parsed or stored; pages
                committed before it are kept
        """
        started = time.monotonic()
        page_size = self.config.page_size
        max_pages = None if full else self.config.sync_window_pages

        pages = 0
        offset = 0
        proposals_written = 0
        votes_written = 0

        logger.info(f"Starting {'full' if full else 'windowed'} sync (page size {page_size})")

        while max_pages is None or pages < max_pages:
            response = await self.client.fetch_proposals_page(offset=offset, limit=page_size)
            if not _complete(response):
                cause = _upstream_error(response, offset)
                logger.error(f"Sync stopped at offset {offset}: {cause}")
                raise SyncError(
                    f"Failed to read proposals at offset {offset}: {cause}",
                    pages_completed=pages,
                    offset=offset,
                    proposals_written=proposals_written,
                    votes_written=votes_written,
                ) from cause

            proposals = response.data or []
            if proposals:
                votes_by_proposal = await self._fetch_votes(
                    proposals, offset, pages, proposals_written, votes_written
                )
                try:
                    written, votes = await self.store.write_sync_page(proposals, votes_by_proposal)
                except StoreIntegrityError as e:
                    logger.error(f"Sync stopped at offset {offset}: {e}")
                    raise SyncError(
                        f"Failed to store page at offset {offset}: {e}",
                        pages_completed=pages,
                        offset=offset,
                        proposals_written=proposals_written,
                        votes_written=votes_written,
                    ) from e
                proposals_written += written
                votes_written += votes

            pages += 1
            logger.info(
                f"Page {pages} (offset {offset}): {len(proposals)} proposals, "
                f"{proposals_written} proposals / {votes_written} votes so far"
            )

            if not response.has_more:
                break
            offset += page_size

        now = int(self.clock())
        await self.store.set_last_sync_time(now)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Sync complete: {proposals_written} proposals, {votes_written} votes, "
            f"{pages} pages in {duration_ms}ms"
        )
        return SyncResult(
            full=full,
            proposals_written=proposals_written,
            votes_written=votes_written,
            pages=pages,
            duration_ms=duration_ms,
            last_sync_time=now,
        )

    async def _fetch_votes(
        self,
        proposals: List[Proposal],
        offset: int,
        pages: int,
        proposals_written: int,
        votes_written: int
    ) -> Dict[str, List[Vote]]:
        votes_by_proposal: Dict[str, List[Vote]] = {}
        for proposal in proposals:
            response = await self.client.fetch_all_votes(
                proposal.proposal_number,
                page_size=self.config.vote_page_size,
                proposal_id=proposal.id,
            )
            if not _complete(response):
                cause = _upstream_error(response, response.offset)
                logger.error(f"Votes for #{proposal.proposal_number} failed: {cause}")
                raise SyncError(
                    f"Failed to read votes for proposal #{proposal.proposal_number}: {cause}",
                    pages_completed=pages,
                    offset=offset,
                    proposals_written=proposals_written,
                    votes_written=votes_written,
                ) from cause
            votes_by_proposal[proposal.id] = response.data or []
        return votes_by_proposal

    async def sync_proposal(self, proposal_number: int) -> Optional[Proposal]:
        """
        Refresh one proposal and all its votes.

        Returns:
            The cached proposal after the write, or None if the subgraph
            does not know it

        Raises:
            UpstreamFetchError: the proposal or its votes could not be fetched
            StoreIntegrityError: the write violated a constraint
        """
        response = await self.client.fetch_proposal_by_number(proposal_number)
        if not _complete(response):
            raise _upstream_error(response, 0)
        if not response.data:
            logger.info(f"Proposal #{proposal_number} not found upstream")
            return None

        proposal = response.data[0]
        votes = await self.client.fetch_all_votes(
            proposal.proposal_number,
            page_size=self.config.vote_page_size,
            proposal_id=proposal.id,
        )
        if not _complete(votes):
            raise _upstream_error(votes, votes.offset)

        await self.store.write_sync_page([proposal], {proposal.id: votes.data or []})
        return await self.store.get_proposal_by_number(proposal.proposal_number)

    async def is_stale(self, max_age_seconds: Optional[int] = None) -> bool:
        """
        True when the cache was never synced or the last sync is older
        than ``max_age_seconds`` (default: the configured sync interval).
        """
        last_sync = await self.store.get_last_sync_time()
        if last_sync is None:
            return True
        if max_age_seconds is None:
            max_age_seconds = self.config.sync_interval_minutes * 60
        if max_age_seconds <= 0:
            return False
        return int(self.clock()) - last_sync > max_age_seconds
