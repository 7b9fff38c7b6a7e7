import asyncio
import json

import pytest

from proposal_cache.cli.main import build_parser, main
from proposal_cache.config import DatabaseConfig
from proposal_cache.db.store import LocalCacheStore
from proposal_cache.models.proposal import VoteSupport


@pytest.fixture
def seeded_db(tmp_path, make_proposal, make_vote, hex_id) -> str:
    path = str(tmp_path / "cli.db")

    async def seed() -> None:
        store = LocalCacheStore(DatabaseConfig(path=path, database_url=None))
        await store.initialize()
        try:
            await store.upsert_proposals([
                make_proposal(1, "Skateboarding event funding"),
                make_proposal(42, "Fund a new ramp", for_votes=4, against_votes=1),
            ])
            await store.upsert_votes(
                [
                    make_vote(42, "0xaaa", VoteSupport.FOR, weight=4),
                    make_vote(42, "0xbbb", VoteSupport.AGAINST),
                ],
                hex_id(42),
            )
            await store.set_last_sync_time(1_700_000_000)
        finally:
            await store.close()

    asyncio.run(seed())
    return path


def test_proposals_prints_json_page(seeded_db, capsys) -> None:
    exit_code = main(["--database", seeded_db, "proposals", "--limit", "1"])

    out = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert out["total"] == 2
    assert out["has_more"] is True
    assert [p["proposal_number"] for p in out["items"]] == [42]


def test_proposal_detail(seeded_db, capsys) -> None:
    exit_code = main(["--database", seeded_db, "--pretty", "proposal", "42"])

    out = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert out["title"] == "Fund a new ramp"
    assert out["result"] == "PASSING"
    assert out["participation_rate"] == "50.0% of quorum"
    assert out["total_votes"] == 5


def test_missing_proposal_exits_with_error(seeded_db, capsys) -> None:
    exit_code = main(["--database", seeded_db, "proposal", "999"])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert captured.out == ""
    assert "Error: Proposal 999 not found" in captured.err


def test_votes_with_support_filter(seeded_db, capsys) -> None:
    exit_code = main(["--database", seeded_db, "votes", "42", "--support", "against"])

    out = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert [v["voter"] for v in out["votes"]["items"]] == ["0xbbb"]
    assert out["summary"]["total_voters"] == 2


def test_invalid_limit_reports_error(seeded_db, capsys) -> None:
    exit_code = main(["--database", seeded_db, "proposals", "--limit", "500"])

    assert exit_code == 1
    assert "Error:" in capsys.readouterr().err


def test_stats(seeded_db, capsys) -> None:
    exit_code = main(["--database", seeded_db, "stats"])

    out = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert out["last_sync_time"] == 1_700_000_000
    assert out["embeddings"]["total_proposals"] == 2
    assert out["embeddings"]["total_chunks"] == 0


def test_parser_normalises_choices() -> None:
    args = build_parser().parse_args(["proposals", "--status", "active"])

    assert args.status == "ACTIVE"
    assert args.order == "desc"


def test_index_modes_are_exclusive() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["index", "--stale", "--force", "1"])
