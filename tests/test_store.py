import pytest

from proposal_cache.errors import StoreIntegrityError
from proposal_cache.models.proposal import ProposalStatus, VoteSupport


async def test_upsert_is_idempotent(store, make_proposal) -> None:
    proposal = make_proposal(1, "Skate video")

    assert await store.upsert_proposals([proposal]) == 1
    assert await store.upsert_proposals([proposal]) == 1

    assert await store.count_proposals() == 1
    assert await store.get_proposal_by_number(1) == proposal


async def test_resync_overwrites_only_mutable_fields(store, make_proposal) -> None:
    original = make_proposal(1, "Original title", "Original body")
    await store.upsert_proposal(original)

    updated = original.model_copy(update={
        "title": "Edited title",
        "description": "Edited body",
        "proposer": "0x2222222222222222222222222222222222222222",
        "time_created": original.time_created + 5,
        "status": ProposalStatus.EXECUTED,
        "for_votes": 42,
        "against_votes": 3,
        "executed": True,
        "expires_at": 1_800_000_000,
        "updated_at": original.updated_at + 60,
    })
    await store.upsert_proposal(updated)

    stored = await store.get_proposal_by_id(original.id)
    assert stored.status == ProposalStatus.EXECUTED
    assert stored.for_votes == 42
    assert stored.against_votes == 3
    assert stored.executed is True
    assert stored.expires_at == 1_800_000_000
    assert stored.updated_at == original.updated_at + 60
    # Fixed at first insert
    assert stored.title == "Original title"
    assert stored.description == "Original body"
    assert stored.proposer == original.proposer
    assert stored.time_created == original.time_created


async def test_batch_with_unique_violation_persists_nothing(store, make_proposal) -> None:
    clash = make_proposal(1).model_copy(update={"id": "0xdeadbeef"})
    batch = [make_proposal(1), clash, make_proposal(3)]

    with pytest.raises(StoreIntegrityError) as excinfo:
        await store.upsert_proposals(batch)

    assert excinfo.value.__cause__ is not None
    assert await store.count_proposals() == 0


async def test_lookups_return_none_when_missing(store, make_proposal, hex_id) -> None:
    await store.upsert_proposal(make_proposal(1))

    assert await store.get_proposal_by_number(99) is None
    assert await store.get_proposal_by_id("0x1234") is None
    assert (await store.get_proposal_by_id(hex_id(1).upper().replace("0X", "0x"))).proposal_number == 1


async def test_mixed_case_ids_are_stored_lower_case(store, make_proposal, make_vote) -> None:
    proposal = make_proposal(7, "Mixed case", id="0xABCDEF")
    vote = make_vote(7, "0xaaa", id="0xABCDEF:0xaaa", proposal_id="0xABCDEF")

    await store.upsert_proposal(proposal)
    assert await store.upsert_votes([vote], "0xABCDEF") == 1
    await store.upsert_embedding("0xABCDEF", 0, "Mixed case", [1.0, 0.0])

    assert proposal.id == "0xabcdef"
    assert vote.proposal_id == "0xabcdef"
    assert (await store.get_proposal_by_id("0xABCDEF")).proposal_number == 7
    assert (await store.get_proposal_by_id("0xabcdef")).proposal_number == 7
    assert (await store.get_votes(7)).items[0].proposal_id == "0xabcdef"
    assert await store.has_embeddings("0xabcdef")
    assert await store.get_embedding_chunks("0xAbCdEf") == ["Mixed case"]
    assert await store.get_proposals_without_embeddings() == []


async def test_list_total_matches_filtered_set(store, make_proposal) -> None:
    statuses = [
        ProposalStatus.ACTIVE,
        ProposalStatus.DEFEATED,
        ProposalStatus.DEFEATED,
        ProposalStatus.ACTIVE,
        ProposalStatus.DEFEATED,
    ]
    await store.upsert_proposals([
        make_proposal(number, status=status) for number, status in enumerate(statuses, start=1)
    ])

    page = await store.list_proposals(status=ProposalStatus.DEFEATED, limit=2, offset=0)
    assert page.total == 3
    assert [p.proposal_number for p in page.items] == [5, 3]
    assert page.has_more is True

    last = await store.list_proposals(status="defeated", limit=2, offset=2)
    assert last.total == 3
    assert [p.proposal_number for p in last.items] == [2]
    assert last.has_more is False

    everything = await store.list_proposals(limit=20)
    assert everything.total == 5


async def test_list_order_ties_broken_by_number(store, make_proposal) -> None:
    await store.upsert_proposals([
        make_proposal(1, time_created=100),
        make_proposal(2, time_created=100),
        make_proposal(3, time_created=50),
    ])

    ascending = await store.list_proposals(order="asc")
    descending = await store.list_proposals(order="desc")

    assert [p.proposal_number for p in ascending.items] == [3, 1, 2]
    assert [p.proposal_number for p in descending.items] == [2, 1, 3]


async def test_votes_page_and_support_filter(store, make_proposal, make_vote, hex_id) -> None:
    await store.upsert_proposal(make_proposal(1))
    votes = [
        make_vote(1, "0xa", VoteSupport.FOR, timestamp=10),
        make_vote(1, "0xb", VoteSupport.AGAINST, timestamp=30),
        make_vote(1, "0xc", VoteSupport.FOR, timestamp=20),
    ]
    assert await store.upsert_votes(votes, hex_id(1)) == 3

    page = await store.get_votes(1)
    assert [v.voter for v in page.items] == ["0xb", "0xc", "0xa"]
    assert page.total == 3

    fors = await store.get_votes(1, support=VoteSupport.FOR, limit=1)
    assert fors.total == 2
    assert [v.voter for v in fors.items] == ["0xc"]
    assert fors.has_more is True


async def test_vote_resync_updates_only_weight_and_reason(store, make_proposal, make_vote, hex_id) -> None:
    await store.upsert_proposal(make_proposal(1))
    vote = make_vote(1, "0xa", VoteSupport.FOR, weight=1)
    await store.upsert_vote(vote, hex_id(1))

    changed = vote.model_copy(update={
        "support": VoteSupport.AGAINST,
        "weight": 7,
        "reason": "changed my mind",
        "timestamp": vote.timestamp + 99,
    })
    await store.upsert_vote(changed, hex_id(1))

    page = await store.get_votes(1)
    assert page.total == 1
    stored = page.items[0]
    assert stored.weight == 7
    assert stored.reason == "changed my mind"
    assert stored.support == VoteSupport.FOR
    assert stored.timestamp == vote.timestamp


async def test_vote_summary_counts_distinct_voters(store, make_proposal, make_vote, hex_id) -> None:
    await store.upsert_proposal(make_proposal(1))
    await store.upsert_votes([
        make_vote(1, "0xa", VoteSupport.FOR),
        # Same voter reported twice under different ids
        make_vote(1, "0xa", VoteSupport.FOR, id="duplicate-row"),
        make_vote(1, "0xb", VoteSupport.AGAINST),
        make_vote(1, "0xc", VoteSupport.ABSTAIN),
    ], hex_id(1))

    summary = await store.get_vote_summary(1)

    assert summary.total_voters == 3
    assert summary.for_voters == 1
    assert summary.against_voters == 1
    assert summary.abstain_voters == 1
    assert (await store.get_votes(1)).total == 4


async def test_vote_for_unknown_proposal_rejected(store, make_vote, hex_id) -> None:
    with pytest.raises(StoreIntegrityError):
        await store.upsert_votes([make_vote(5, "0xa")], hex_id(5))


async def test_sync_page_is_all_or_nothing(store, make_proposal, make_vote, hex_id) -> None:
    proposals = [make_proposal(1), make_proposal(2)]
    votes = {
        hex_id(1): [make_vote(1, "0xa")],
        # Not part of the page and not cached
        hex_id(9): [make_vote(9, "0xb")],
    }

    with pytest.raises(StoreIntegrityError):
        await store.write_sync_page(proposals, votes)

    assert await store.count_proposals() == 0
    assert (await store.get_votes(1)).total == 0


async def test_sync_page_writes_proposals_and_votes(store, make_proposal, make_vote, hex_id) -> None:
    written = await store.write_sync_page(
        [make_proposal(1), make_proposal(2)],
        {hex_id(1): [make_vote(1, "0xa"), make_vote(1, "0xb")], hex_id(2): []},
    )

    assert written == (2, 2)


async def test_last_sync_time_round_trip(store) -> None:
    assert await store.get_last_sync_time() is None

    await store.set_last_sync_time(1_700_000_000)
    await store.set_last_sync_time(1_700_000_500)

    assert await store.get_last_sync_time() == 1_700_000_500


async def test_embedding_round_trip(store, make_proposal, hex_id) -> None:
    await store.upsert_proposal(make_proposal(1, "Fund a new ramp"))

    await store.upsert_embedding(hex_id(1), 0, "Fund a new ramp", [1.0, -2.5, 0.0])

    assert await store.has_embeddings(hex_id(1)) is True
    [stored] = await store.get_all_embeddings()
    assert stored.embedding == [1.0, -2.5, 0.0]
    assert stored.proposal_number == 1
    assert stored.title == "Fund a new ramp"
    assert stored.status == "ACTIVE"


async def test_embedding_upsert_overwrites_chunk(store, make_proposal, hex_id) -> None:
    await store.upsert_proposal(make_proposal(1))

    await store.upsert_embedding(hex_id(1), 0, "old", [1.0, 0.0])
    await store.upsert_embedding(hex_id(1), 0, "new", [0.0, 1.0])

    [stored] = await store.get_all_embeddings()
    assert stored.chunk_text == "new"
    assert stored.embedding == [0.0, 1.0]


async def test_all_embeddings_ordering(store, make_proposal, hex_id) -> None:
    await store.upsert_proposals([make_proposal(1), make_proposal(2)])
    await store.upsert_embedding(hex_id(1), 1, "1b", [1.0])
    await store.upsert_embedding(hex_id(1), 0, "1a", [1.0])
    await store.upsert_embedding(hex_id(2), 0, "2a", [1.0])

    rows = await store.get_all_embeddings()

    assert [(r.proposal_number, r.chunk_index) for r in rows] == [(2, 0), (1, 0), (1, 1)]


async def test_replace_embeddings_swaps_whole_chunk_set(store, make_proposal, hex_id) -> None:
    await store.upsert_proposal(make_proposal(1))
    for index in range(3):
        await store.upsert_embedding(hex_id(1), index, f"old {index}", [1.0, 0.0])

    written = await store.replace_embeddings(hex_id(1), [(0, "new", [0.0, 1.0])])

    assert written == 1
    assert await store.get_embedding_chunks(hex_id(1)) == ["new"]


async def test_embedding_queue_and_stats(store, make_proposal, hex_id) -> None:
    await store.upsert_proposals([make_proposal(n) for n in (3, 1, 2)])
    await store.upsert_embedding(hex_id(2), 0, "two", [1.0])
    await store.upsert_embedding(hex_id(2), 1, "two more", [1.0])

    missing = await store.get_proposals_without_embeddings()
    assert [p.proposal_number for p in missing] == [1, 3]

    stats = await store.get_embedding_stats()
    assert stats.total_proposals == 3
    assert stats.embedded_proposals == 1
    assert stats.total_chunks == 2
    assert stats.pending_proposals == 2

    assert await store.delete_embeddings(hex_id(2)) == 2
    assert await store.has_embeddings(hex_id(2)) is False


async def test_embedding_for_unknown_proposal_rejected(store, hex_id) -> None:
    with pytest.raises(StoreIntegrityError):
        await store.upsert_embedding(hex_id(8), 0, "orphan", [1.0])
