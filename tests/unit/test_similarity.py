"""Tests for the similarity engine and candidate cache."""

import asyncio
from datetime import datetime, timezone

import pytest

from wildwatch.core import CandidateStoreException
from wildwatch.triage.application import CandidateCache, SimilarityService
from wildwatch.triage.domain import StatusUpdate

from tests.conftest import FakeCandidateStore, FakeClock, make_candidate

QUERY = ["broken-lightbulb", "stairwell", "safety-hazard"]


def make_service(store, clock=None, ttl_seconds=600, max_candidates=30, enabled=True):
    cache = CandidateCache(
        store,
        ttl_seconds=ttl_seconds,
        max_candidates=max_candidates,
        enabled=enabled,
        clock=clock or FakeClock(),
    )
    return SimilarityService(store, cache, threshold=0.60)


# ==========================================
#  SCORING AND FILTERING
# ==========================================


@pytest.mark.asyncio
async def test_boundary_candidate_is_included():
    store = FakeCandidateStore([
        make_candidate(
            ["broken-lightbulb", "stairwell", "electrical", "safety-hazard", "maintenance"],
            id="boundary"
        ),
    ])

    results = await make_service(store).find_similar(QUERY, 3)

    assert [r.id for r in results] == ["boundary"]
    assert results[0].similarity_score == pytest.approx(0.6)


@pytest.mark.asyncio
async def test_low_overlap_candidate_is_excluded():
    store = FakeCandidateStore([
        make_candidate(["stairwell", "graffiti", "vandalism", "paint"], id="low"),
    ])

    assert await make_service(store).find_similar(QUERY, 3) == []


@pytest.mark.asyncio
async def test_empty_query_short_circuits_without_store_calls():
    store = FakeCandidateStore([make_candidate(QUERY)])

    assert await make_service(store).find_similar([], 3) == []
    assert await make_service(store).find_similar(["  ", ""], 3) == []
    assert store.fetch_count == 0
    assert store.update_lookups == 0


@pytest.mark.asyncio
async def test_no_result_below_threshold():
    store = FakeCandidateStore([
        make_candidate(QUERY, id="exact"),
        make_candidate(QUERY + ["extra"], id="three-of-four"),
        make_candidate(QUERY[:2], id="two-of-three"),
        make_candidate(["stairwell", "wifi"], id="one-of-four"),
        make_candidate(["Broken-Lightbulb ", " STAIRWELL", "safety-hazard"], id="case-variant"),
    ])

    results = await make_service(store).find_similar(QUERY, 10)

    assert all(r.similarity_score >= 0.60 for r in results)
    assert {r.id for r in results} == {"exact", "three-of-four", "two-of-three", "case-variant"}


@pytest.mark.asyncio
async def test_results_sorted_descending_and_truncated():
    store = FakeCandidateStore([
        make_candidate(QUERY[:2], id="two-thirds"),
        make_candidate(QUERY, id="exact"),
        make_candidate(QUERY + ["extra"], id="three-quarters"),
    ])

    results = await make_service(store).find_similar(QUERY, 2)

    assert [r.id for r in results] == ["exact", "three-quarters"]


@pytest.mark.asyncio
async def test_ties_keep_scan_order():
    store = FakeCandidateStore([
        make_candidate(QUERY, id="first"),
        make_candidate(QUERY, id="second"),
        make_candidate(QUERY, id="third"),
    ])

    results = await make_service(store).find_similar(QUERY, 3)

    assert [r.id for r in results] == ["first", "second", "third"]


@pytest.mark.asyncio
async def test_candidates_without_tags_are_skipped():
    store = FakeCandidateStore([
        make_candidate([], id="untagged"),
        make_candidate(["", "  "], id="blank-tags"),
        make_candidate(QUERY, id="tagged"),
    ])

    results = await make_service(store).find_similar(QUERY, 3)

    assert [r.id for r in results] == ["tagged"]


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [0, -1])
async def test_non_positive_limit_uses_default(limit):
    store = FakeCandidateStore([make_candidate(QUERY, id=f"c{i}") for i in range(5)])

    results = await make_service(store).find_similar(QUERY, limit)

    assert len(results) == 3


# ==========================================
#  STATUS DETAILS
# ==========================================


@pytest.mark.asyncio
async def test_finished_date_attached_for_resolved_candidate():
    resolved_at = datetime(2025, 3, 2, 9, 30, tzinfo=timezone.utc)
    store = FakeCandidateStore([make_candidate(QUERY, id="resolved", status="Resolved")])
    store.updates["resolved"] = [
        StatusUpdate("In Progress", "Technician assigned", datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)),
        StatusUpdate("Resolved", "Bulb replaced", resolved_at),
    ]

    results = await make_service(store).find_similar(QUERY, 3)

    assert results[0].finished_date == resolved_at
    assert results[0].latest_update_message is None


@pytest.mark.asyncio
async def test_latest_update_attached_for_open_candidate():
    updated_at = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    store = FakeCandidateStore([make_candidate(QUERY, id="open", status="In Progress")])
    store.updates["open"] = [StatusUpdate("In Progress", "Technician assigned", updated_at)]

    results = await make_service(store).find_similar(QUERY, 3)

    assert results[0].finished_date is None
    assert results[0].latest_update_message == "Technician assigned"
    assert results[0].latest_update_at == updated_at


@pytest.mark.asyncio
async def test_status_lookup_failure_does_not_fail_query():
    store = FakeCandidateStore([make_candidate(QUERY, id="resolved", status="Resolved")])
    store.fail_updates = RuntimeError("updates table locked")

    results = await make_service(store).find_similar(QUERY, 3)

    assert [r.id for r in results] == ["resolved"]
    assert results[0].finished_date is None


# ==========================================
#  CANDIDATE CACHE
# ==========================================


@pytest.mark.asyncio
async def test_cache_reused_within_ttl():
    clock = FakeClock()
    store = FakeCandidateStore([make_candidate(QUERY)])
    service = make_service(store, clock=clock, ttl_seconds=600)

    await service.find_similar(QUERY)
    clock.advance(599)
    await service.find_similar(QUERY)

    assert store.fetch_count == 1


@pytest.mark.asyncio
async def test_cache_refreshed_after_ttl_replaces_whole_list():
    clock = FakeClock()
    store = FakeCandidateStore([make_candidate(QUERY, id="old")])
    service = make_service(store, clock=clock, ttl_seconds=600)

    assert [r.id for r in await service.find_similar(QUERY)] == ["old"]

    store.candidates = [make_candidate(QUERY, id="new")]
    clock.advance(601)

    assert [r.id for r in await service.find_similar(QUERY)] == ["new"]
    assert store.fetch_count == 2


@pytest.mark.asyncio
async def test_cache_caps_candidate_count():
    store = FakeCandidateStore([make_candidate(QUERY, id=f"c{i}") for i in range(50)])
    cache = CandidateCache(store, ttl_seconds=600, max_candidates=30, clock=FakeClock())

    candidates = await cache.get_candidates()

    assert len(candidates) == 30
    assert cache.size == 30


@pytest.mark.asyncio
async def test_refresh_failure_is_surfaced_not_masked():
    clock = FakeClock()
    store = FakeCandidateStore([make_candidate(QUERY, id="old")])
    service = make_service(store, clock=clock, ttl_seconds=600)
    await service.find_similar(QUERY)

    store.fail_fetch = RuntimeError("database unreachable")
    clock.advance(601)

    with pytest.raises(CandidateStoreException):
        await service.find_similar(QUERY)


@pytest.mark.asyncio
async def test_first_refresh_failure_is_surfaced():
    store = FakeCandidateStore()
    store.fail_fetch = RuntimeError("database unreachable")

    with pytest.raises(CandidateStoreException) as exc_info:
        await make_service(store).find_similar(QUERY)

    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh():
    store = FakeCandidateStore([make_candidate(QUERY)])
    service = make_service(store)

    results = await asyncio.gather(*(service.find_similar(QUERY) for _ in range(10)))

    assert store.fetch_count == 1
    assert all(len(r) == 1 for r in results)


@pytest.mark.asyncio
async def test_invalidate_forces_refresh():
    store = FakeCandidateStore([make_candidate(QUERY)])
    service = make_service(store)

    await service.find_similar(QUERY)
    service.invalidate()
    await service.find_similar(QUERY)

    assert store.fetch_count == 2


@pytest.mark.asyncio
async def test_disabled_cache_fetches_every_time():
    store = FakeCandidateStore([make_candidate(QUERY)])
    service = make_service(store, enabled=False)

    await service.find_similar(QUERY)
    await service.find_similar(QUERY)

    assert store.fetch_count == 2
