import pytest

from radar.domain.exceptions import QueryFailed, Unauthenticated
from radar.domain.location.models import Coordinate
from radar.domain.proximity.geo import bucket
from radar.domain.proximity.matcher import ProximityMatcher

HERE = Coordinate(12.9716, 77.5946)


@pytest.mark.asyncio
async def test_co_bucketed_user_is_returned_at_zero_distance(store):
    store.add("me", "Me", bucket(HERE).key)
    store.add("neighbour", "Asha", bucket(Coordinate(12.97161, 77.59459)).key)
    store.add("far", "Ravi", bucket(Coordinate(13.05, 77.6)).key)

    users = await ProximityMatcher(store).find_nearby("me", HERE, 10)

    assert [u.user_id for u in users] == ["neighbour"]
    (neighbour,) = users
    assert neighbour.distance_km == 0
    assert neighbour.has_real_location is True
    assert store.bucket_queries == [bucket(HERE)]


@pytest.mark.asyncio
async def test_results_sorted_by_display_name_and_truncated(store):
    key = bucket(HERE).key
    store.add("u3", "charlie", key)
    store.add("u1", "Bravo", key)
    store.add("u2", "alpha", key)

    matcher = ProximityMatcher(store)
    users = await matcher.find_nearby("me", HERE, 10)
    assert [u.display_name for u in users] == ["alpha", "Bravo", "charlie"]

    store.records.pop("u2")
    limited = await matcher.find_nearby("me", HERE, 1)
    assert [u.display_name for u in limited] == ["Bravo"]


@pytest.mark.asyncio
async def test_missing_identity_is_unauthenticated(store):
    with pytest.raises(Unauthenticated):
        await ProximityMatcher(store).find_nearby(None, HERE, 10)


@pytest.mark.asyncio
async def test_store_failure_becomes_query_failed(store):
    store.fail_bucket_queries = True
    with pytest.raises(QueryFailed):
        await ProximityMatcher(store).find_nearby("me", HERE, 10)


@pytest.mark.asyncio
async def test_list_all_has_no_location(store):
    store.add("me", "Me")
    store.add("u1", "Zed", bucket(HERE).key)
    store.add("u2", "Amy")

    users = await ProximityMatcher(store).list_all("me", 10)

    assert [u.user_id for u in users] == ["u1", "u2"]
    assert all(not u.has_real_location and u.distance_km is None and u.coordinate is None for u in users)


@pytest.mark.asyncio
async def test_list_all_failure_becomes_query_failed(store):
    store.fail_all_queries = True
    with pytest.raises(QueryFailed):
        await ProximityMatcher(store).list_all("me", 10)


def test_distance_primitive_exposed_on_matcher():
    assert ProximityMatcher.distance_km(HERE, HERE) == 0
