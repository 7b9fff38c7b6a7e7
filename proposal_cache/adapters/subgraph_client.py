"""
Subgraph adapter for DAO proposals and votes.

Posts GraphQL queries to the Goldsky-hosted Nouns Builder subgraph and
normalizes the stringly-typed payloads into ``Proposal`` and ``Vote``
records.

Responsibility: Fetch proposal and vote pages from the remote subgraph
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
import time

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .base_adapter import BaseAdapter, utcnow
from .queries import (
    PROPOSALS_QUERY,
    PROPOSAL_BY_ID_QUERY,
    PROPOSAL_BY_NUMBER_QUERY,
    VOTES_QUERY,
)
from ..config import SubgraphConfig, settings
from ..errors import UpstreamFetchError
from ..models.adapter_models import AdapterError, AdapterResponse
from ..models.proposal import Proposal, Vote
from ..models.subgraph import SubgraphProposal, SubgraphVote


RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, UpstreamFetchError) and exc.retryable


class SubgraphClient(BaseAdapter[Proposal]):
    """
    Adapter for the DAO subgraph.

    Example:
        client = SubgraphClient()
        response = await client.fetch_proposals_page(offset=0, limit=200)
        if response.ok:
            for proposal in response.data:
                ...
        await client.close()
    """

    def __init__(
        self,
        config: Optional[SubgraphConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait_min: float = 1,
        retry_wait_max: float = 10,
    ) -> None:
        self.config = config or settings.subgraph
        super().__init__(
            source_name="subgraph",
            max_retries=self.config.max_retries,
            timeout_seconds=self.config.timeout_seconds,
        )
        self.endpoint = self.config.endpoint
        self.dao_address = self.config.dao_address
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max
        self.client = httpx.AsyncClient(
            timeout=self.timeout_seconds,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": "proposal-cache/0.1",
            },
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "SubgraphClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """
        Single POST round-trip.

        Raises:
            UpstreamFetchError: transport failure, non-2xx status, non-JSON
                body or a non-empty GraphQL ``errors`` array
        """
        try:
            response = await self.client.post(
                self.endpoint, json={"query": query, "variables": variables}
            )
        except httpx.TimeoutException as e:
            raise UpstreamFetchError(
                f"Subgraph request timed out: {e}", query=query, variables=variables, retryable=True
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamFetchError(
                f"Subgraph request failed: {e}", query=query, variables=variables, retryable=True
            ) from e

        if response.status_code >= 400:
            raise UpstreamFetchError(
                f"Subgraph request failed: {response.status_code} {response.reason_phrase}",
                query=query,
                variables=variables,
                retryable=response.status_code in RETRYABLE_STATUS_CODES,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamFetchError(
                "Subgraph returned a non-JSON body", query=query, variables=variables
            ) from e

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            messages = ", ".join(str(err.get("message", err)) for err in errors)
            raise UpstreamFetchError(
                f"Subgraph query error: {messages}", query=query, variables=variables
            )

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise UpstreamFetchError(
                "Subgraph response has no data", query=query, variables=variables
            )
        return data

    async def _query(self, query: str, variables: Dict[str, Any]) -> Tuple[Dict[str, Any], int]:
        """
        Execute with exponential backoff on transient failures.

        Returns:
            (data, number of retries spent)
        """
        attempts = 0
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(min=self.retry_wait_min, max=self.retry_wait_max),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                attempts = attempt.retry_state.attempt_number
                if attempts > 1:
                    self.logger.warning(f"Retrying subgraph query (attempt {attempts})")
                data = await self._execute(query, variables)
        return data, attempts - 1

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize(self, raw_data: Dict[str, Any], now: Optional[int] = None) -> Proposal:
        """Convert a raw subgraph proposal into a ``Proposal`` with derived status."""
        return SubgraphProposal.model_validate(raw_data).to_domain(now=now)

    def normalize_vote(self, raw_data: Dict[str, Any], proposal_id: Optional[str] = None) -> Vote:
        return SubgraphVote.model_validate(raw_data).to_domain(proposal_id=proposal_id)

    def _normalize_proposals(
        self, raw_items: List[Dict[str, Any]]
    ) -> Tuple[List[Proposal], List[AdapterError]]:
        now = int(time.time())
        records: List[Proposal] = []
        errors: List[AdapterError] = []
        for raw in raw_items:
            try:
                records.append(self.normalize(raw, now=now))
            except ValueError as exc:
                self.logger.warning(f"Skipping malformed proposal {raw.get('proposalNumber')}: {exc}")
                errors.append(self._record_error(exc, {"proposal_number": raw.get("proposalNumber")}))
        return records, errors

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    async def fetch(self, offset: int = 0, limit: Optional[int] = None, **_: Any) -> AdapterResponse[Proposal]:
        return await self.fetch_proposals_page(offset=offset, limit=limit)

    async def fetch_proposals_page(
        self,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> AdapterResponse[Proposal]:
        """
        Fetch one page of the DAO's proposals, newest first.

        Args:
            offset: Number of proposals to skip
            limit: Page size (defaults to the configured page size)

        Returns:
            AdapterResponse with ``has_more`` set when the page came back full
        """
        start_time = utcnow()
        limit = limit or self.config.page_size
        variables = {"daoAddress": self.dao_address, "first": limit, "skip": offset}

        try:
            data, retries = await self._query(PROPOSALS_QUERY, variables)
        except UpstreamFetchError as exc:
            self.logger.error(f"Proposal page at offset {offset} failed: {exc}")
            return self._build_failure_response(
                exc, start_time, retryable=exc.retryable, offset=offset,
                context={"variables": variables}
            )

        raw_items = data.get("proposals") or []
        records, errors = self._normalize_proposals(raw_items)
        self.logger.info(f"Fetched {len(records)} proposals at offset {offset}")
        return self._build_success_response(
            records, errors, start_time,
            offset=offset,
            has_more=len(raw_items) >= limit,
            retry_count=retries
        )

    async def fetch_proposal_by_number(self, proposal_number: int) -> AdapterResponse[Proposal]:
        """Fetch a single proposal; ``data`` is empty when it does not exist."""
        variables = {"daoAddress": self.dao_address, "proposalNumber": int(proposal_number)}
        return await self._fetch_single(PROPOSAL_BY_NUMBER_QUERY, variables)

    async def fetch_proposal_by_id(self, proposal_id: str) -> AdapterResponse[Proposal]:
        variables = {"daoAddress": self.dao_address, "proposalId": proposal_id.lower()}
        return await self._fetch_single(PROPOSAL_BY_ID_QUERY, variables)

    async def _fetch_single(self, query: str, variables: Dict[str, Any]) -> AdapterResponse[Proposal]:
        start_time = utcnow()
        try:
            data, retries = await self._query(query, variables)
        except UpstreamFetchError as exc:
            self.logger.error(f"Proposal lookup {variables} failed: {exc}")
            return self._build_failure_response(
                exc, start_time, retryable=exc.retryable, context={"variables": variables}
            )

        records, errors = self._normalize_proposals((data.get("proposals") or [])[:1])
        return self._build_success_response(records, errors, start_time, retry_count=retries)

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    async def fetch_votes_page(
        self,
        proposal_number: int,
        offset: int = 0,
        limit: Optional[int] = None,
        proposal_id: Optional[str] = None
    ) -> AdapterResponse[Vote]:
        """
        Fetch one page of votes for a proposal, most recent first.

        Args:
            proposal_number: DAO-local proposal number
            offset: Number of votes to skip
            limit: Page size (defaults to the configured vote page size)
            proposal_id: Hex id to attach when the payload lacks one
        """
        start_time = utcnow()
        limit = limit or self.config.vote_page_size
        variables = {
            "daoAddress": self.dao_address,
            "proposalNumber": int(proposal_number),
            "first": limit,
            "skip": offset,
        }

        try:
            data, retries = await self._query(VOTES_QUERY, variables)
        except UpstreamFetchError as exc:
            self.logger.error(f"Votes page for #{proposal_number} at offset {offset} failed: {exc}")
            return self._build_failure_response(
                exc, start_time, retryable=exc.retryable, offset=offset,
                context={"variables": variables}
            )

        raw_items = data.get("proposalVotes") or []
        records: List[Vote] = []
        errors: List[AdapterError] = []
        for raw in raw_items:
            try:
                records.append(self.normalize_vote(raw, proposal_id=proposal_id))
            except ValueError as exc:
                errors.append(self._record_error(exc, {"vote_id": raw.get("id")}))

        return self._build_success_response(
            records, errors, start_time,
            offset=offset,
            has_more=len(raw_items) >= limit,
            retry_count=retries
        )

    async def fetch_all_votes(
        self,
        proposal_number: int,
        page_size: Optional[int] = None,
        proposal_id: Optional[str] = None
    ) -> AdapterResponse[Vote]:
        """
        Fetch every vote of a proposal, paging until a short page.

        A failed page fails the whole call; the response offset says where.
        """
        start_time = utcnow()
        page_size = page_size or self.config.vote_page_size
        votes: List[Vote] = []
        errors: List[AdapterError] = []
        retries = 0
        offset = 0

        while True:
            page = await self.fetch_votes_page(
                proposal_number, offset=offset, limit=page_size, proposal_id=proposal_id
            )
            if not page.ok:
                return page
            votes.extend(page.data or [])
            errors.extend(page.errors)
            retries += page.metrics.retry_count
            if not page.has_more:
                break
            offset += page_size

        self.logger.debug(f"Fetched {len(votes)} votes for proposal #{proposal_number}")
        return self._build_success_response(votes, errors, start_time, retry_count=retries)
