import hashlib
import json
import math
import re
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from proposal_cache.adapters.subgraph_client import SubgraphClient
from proposal_cache.config import DatabaseConfig, EmbeddingConfig, SubgraphConfig
from proposal_cache.db.store import LocalCacheStore
from proposal_cache.errors import EmbeddingProviderError
from proposal_cache.models.proposal import Proposal, ProposalStatus, Vote, VoteSupport

DAO_ADDRESS = "0x880fb3cf5c6cc2d7dfc13a993e839a9411200c17"
NOW = 1_700_000_000


class HashingEmbedder:
    """
    Deterministic bag-of-trigrams embedder.

    Texts sharing character trigrams get a positive cosine similarity, so
    ranking is predictable without a real model.
    """

    def __init__(self, dimension: int = 512, fail_on: Optional[str] = None) -> None:
        self.dimension = dimension
        self.fail_on = fail_on
        self.calls: List[str] = []
        self.closed = False

    def _bucket(self, trigram: str) -> int:
        return int(hashlib.md5(trigram.encode("utf-8")).hexdigest(), 16) % self.dimension

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise EmbeddingProviderError(f"refusing to embed text containing {self.fail_on!r}")
        vector = [0.0] * self.dimension
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            padded = f"#{word}#"
            for i in range(len(padded) - 2):
                vector[self._bucket(padded[i:i + 3])] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector] if norm else vector

    async def close(self) -> None:
        self.closed = True


class FakeSubgraph:
    """``httpx.MockTransport`` handler serving proposals and votes from memory."""

    def __init__(self, proposals: List[dict], votes: Optional[Dict[int, List[dict]]] = None) -> None:
        self.proposals = proposals
        self.votes = votes or {}
        self.requests: List[dict] = []
        self.fail: Optional[Callable[[dict], Optional[httpx.Response]]] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        if self.fail:
            response = self.fail(body)
            if response is not None:
                return response

        query = body["query"]
        variables = body["variables"]
        if "GetVotes" in query:
            rows = self.votes.get(variables["proposalNumber"], [])
            page = rows[variables["skip"]:variables["skip"] + variables["first"]]
            return httpx.Response(200, json={"data": {"proposalVotes": page}})
        if "GetProposalByNumber" in query:
            rows = [p for p in self.proposals if int(p["proposalNumber"]) == variables["proposalNumber"]]
            return httpx.Response(200, json={"data": {"proposals": rows[:1]}})
        if "GetProposalById" in query:
            rows = [p for p in self.proposals if p["proposalId"].lower() == variables["proposalId"]]
            return httpx.Response(200, json={"data": {"proposals": rows[:1]}})
        page = self.proposals[variables["skip"]:variables["skip"] + variables["first"]]
        return httpx.Response(200, json={"data": {"proposals": page}})

    def count(self, operation: str) -> int:
        return sum(1 for body in self.requests if operation in body["query"])


def proposal_hex_id(number: int) -> str:
    return "0x" + format(number, "064x")


def _make_proposal(number: int, title: str = "", description: str = "", **overrides) -> Proposal:
    fields = dict(
        id=proposal_hex_id(number),
        proposal_number=number,
        title=title or f"Proposal {number}",
        description=description,
        proposer="0x1111111111111111111111111111111111111111",
        status=ProposalStatus.ACTIVE,
        time_created=NOW + number * 100,
        vote_start=NOW + number * 100 + 10,
        vote_end=NOW + number * 100 + 1000,
        for_votes=0,
        against_votes=0,
        abstain_votes=0,
        quorum_votes=10,
        updated_at=NOW,
    )
    fields.update(overrides)
    return Proposal(**fields)


def _make_vote(number: int, voter: str, support: VoteSupport = VoteSupport.FOR, **overrides) -> Vote:
    fields = dict(
        id=f"{proposal_hex_id(number)}:{voter}",
        proposal_id=proposal_hex_id(number),
        proposal_number=number,
        voter=voter,
        support=support,
        weight=1,
        reason=None,
        timestamp=NOW + number * 100 + 50,
        transaction_hash=None,
    )
    fields.update(overrides)
    return Vote(**fields)


def _raw_proposal(number: int, title: str = "", description: str = "", **overrides) -> dict:
    raw = {
        "id": proposal_hex_id(number),
        "proposalId": proposal_hex_id(number).upper().replace("0X", "0x"),
        "proposalNumber": number,
        "title": title or f"Proposal {number}",
        "description": description,
        "proposer": "0xAbCdEf0000000000000000000000000000000001",
        "timeCreated": str(NOW - 100_000 + number * 100),
        "voteStart": str(NOW - 90_000 + number * 100),
        "voteEnd": str(NOW - 80_000 + number * 100),
        "snapshotBlockNumber": "123456",
        "forVotes": "5",
        "againstVotes": "1",
        "abstainVotes": "0",
        "quorumVotes": "3",
        "executed": False,
        "canceled": False,
        "vetoed": False,
        "queued": False,
        "transactionHash": "0x" + "ab" * 32,
        "executableFrom": None,
        "expiresAt": None,
    }
    raw.update(overrides)
    return raw


def _raw_vote(number: int, voter: str, support: int = 1, weight: str = "1", reason: Optional[str] = "") -> dict:
    return {
        "id": f"{proposal_hex_id(number)}:{voter.lower()}",
        "voter": voter,
        "support": support,
        "weight": weight,
        "reason": reason,
        "timestamp": str(NOW - 85_000 + number * 100),
        "transactionHash": "0x" + "cd" * 32,
        "proposal": {"proposalNumber": number, "proposalId": proposal_hex_id(number), "title": "x"},
    }


@pytest.fixture
def make_proposal():
    return _make_proposal


@pytest.fixture
def make_vote():
    return _make_vote


@pytest.fixture
def raw_proposal():
    return _raw_proposal


@pytest.fixture
def raw_vote():
    return _raw_vote


@pytest.fixture
def db_config(tmp_path) -> DatabaseConfig:
    return DatabaseConfig(path=str(tmp_path / "cache.db"), database_url=None)


@pytest.fixture
async def store(db_config):
    cache = LocalCacheStore(db_config)
    await cache.initialize()
    yield cache
    await cache.close()


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def embedding_config() -> EmbeddingConfig:
    return EmbeddingConfig(chunk_size=500, chunk_overlap=50, dimension=None)


@pytest.fixture
def subgraph_config() -> SubgraphConfig:
    return SubgraphConfig(
        url="https://subgraph.test/gn",
        dao_address=DAO_ADDRESS.upper().replace("0X", "0x"),
        page_size=2,
        vote_page_size=2,
        sync_window_pages=1,
        max_retries=3,
    )


@pytest.fixture
async def make_client(subgraph_config):
    clients = []

    def factory(handler, config: Optional[SubgraphConfig] = None) -> SubgraphClient:
        client = SubgraphClient(
            config or subgraph_config,
            transport=httpx.MockTransport(handler),
            retry_wait_min=0,
            retry_wait_max=0,
        )
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.close()


@pytest.fixture
def now() -> int:
    return NOW


@pytest.fixture
def hex_id():
    return proposal_hex_id


@pytest.fixture
def make_embedder():
    return HashingEmbedder


@pytest.fixture
def fake_subgraph():
    return FakeSubgraph
