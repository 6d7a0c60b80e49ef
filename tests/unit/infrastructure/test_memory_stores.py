"""In-memory event store and ApplicationDetails store."""

import asyncio

import pytest

from filplus.application.exceptions import ConcurrencyConflictError
from filplus.domain.models.events import DomainEvent


def _events(aggregate_id: str, *seqs: int):
    return [DomainEvent(aggregate_id, s, "KYCApproved") for s in seqs]


@pytest.mark.asyncio
async def test_append_and_load(event_store):
    await event_store.append("app-1", _events("app-1", 1, 2), expected_version=0)
    loaded = await event_store.load("app-1")
    assert [e.sequence_number for e in loaded] == [1, 2]
    assert await event_store.current_version("app-1") == 2
    assert await event_store.load("other") == []


@pytest.mark.asyncio
async def test_version_mismatch_rejected(event_store):
    await event_store.append("app-1", _events("app-1", 1), expected_version=0)
    with pytest.raises(ConcurrencyConflictError):
        await event_store.append("app-1", _events("app-1", 2), expected_version=0)
    assert await event_store.current_version("app-1") == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("seqs", [(3,), (2, 4), (1,)])
async def test_non_contiguous_sequence_rejected(event_store, seqs):
    await event_store.append("app-1", _events("app-1", 1), expected_version=None)
    with pytest.raises(ConcurrencyConflictError):
        await event_store.append("app-1", _events("app-1", *seqs), expected_version=None)
    assert await event_store.current_version("app-1") == 1


@pytest.mark.asyncio
async def test_event_for_other_aggregate_rejected(event_store):
    with pytest.raises(ConcurrencyConflictError):
        await event_store.append("app-1", _events("app-2", 1), expected_version=0)


@pytest.mark.asyncio
async def test_only_one_concurrent_append_wins(event_store):
    results = await asyncio.gather(
        *(event_store.append("app-1", _events("app-1", 1), expected_version=0) for _ in range(5)),
        return_exceptions=True,
    )
    assert sum(r is None for r in results) == 1
    assert all(isinstance(r, ConcurrencyConflictError) for r in results if r is not None)


@pytest.mark.asyncio
async def test_aggregate_ids(event_store):
    await event_store.append("app-1", _events("app-1", 1), expected_version=0)
    await event_store.append("app-2", _events("app-2", 1), expected_version=0)
    assert sorted(await event_store.aggregate_ids()) == ["app-1", "app-2"]


@pytest.mark.asyncio
async def test_details_upsert_merges_fields(details_store):
    assert await details_store.upsert("app-1", {"name": "Alice", "status": "KYC_PHASE"}, 1)
    assert await details_store.upsert("app-1", {"status": "GOVERNANCE_REVIEW_PHASE"}, 2)
    details = await details_store.get("app-1")
    assert details.id == "app-1"
    assert details.name == "Alice"
    assert details.status.value == "GOVERNANCE_REVIEW_PHASE"
    assert details.last_sequence_number == 2


@pytest.mark.asyncio
async def test_details_sequence_guard(details_store):
    await details_store.upsert("app-1", {"name": "Alice"}, 3)
    assert await details_store.upsert("app-1", {"name": "Old"}, 3) is False
    assert await details_store.upsert("app-1", {"name": "Older"}, 2) is False
    assert (await details_store.get("app-1")).name == "Alice"


@pytest.mark.asyncio
async def test_details_upsert_copies_input(details_store):
    fields = {"other_github_handles": ["bob"]}
    await details_store.upsert("app-1", fields, 1)
    fields["other_github_handles"].append("mallory")
    assert (await details_store.get("app-1")).other_github_handles == ["bob"]


@pytest.mark.asyncio
async def test_details_delete(details_store):
    await details_store.upsert("app-1", {"name": "Alice"}, 1)
    await details_store.delete("app-1")
    await details_store.delete("app-1")
    assert await details_store.get("app-1") is None
    assert await details_store.upsert("app-1", {"name": "Again"}, 1)


@pytest.mark.asyncio
async def test_details_search_matches_address_case_insensitively(details_store):
    await details_store.upsert("app-1", {"number": 1, "address": "f2ABCdef"}, 1)
    await details_store.upsert("app-2", {"number": 2, "github": "someone"}, 1)
    items, total = await details_store.search(search="abcd")
    assert total == 1
    assert items[0].id == "app-1"
