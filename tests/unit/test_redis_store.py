import pytest

from radar.domain.exceptions import StoreError
from radar.domain.proximity.geo import MatchingBucket
from radar.domain.proximity.schemas import UserRecord
from radar.infra.redis_store import RedisRecordStore

HERE = MatchingBucket(12.972, 77.595)
THERE = MatchingBucket(12.973, 77.595)


@pytest.mark.asyncio
async def test_update_moves_user_between_buckets(fake_redis):
    store = RedisRecordStore()
    await store.register_profile(UserRecord(user_id="u1", display_name="Asha"))

    await store.update_user_location("u1", HERE)
    assert await fake_redis.smembers(f"bucket:users:{HERE.key}") == {"u1"}

    await store.update_user_location("u1", THERE)
    assert await fake_redis.smembers(f"bucket:users:{HERE.key}") == set()
    assert await fake_redis.smembers(f"bucket:users:{THERE.key}") == {"u1"}
    assert await store.get_user_bucket("u1") == THERE


@pytest.mark.asyncio
async def test_query_by_bucket_excludes_caller_and_sorts(fake_redis):
    store = RedisRecordStore()
    for user_id, name in (("me", "Me"), ("u2", "zoe"), ("u3", "Bea")):
        await store.register_profile(UserRecord(user_id=user_id, display_name=name, bucket_key=HERE.key))
    await store.register_profile(UserRecord(user_id="u4", display_name="Far", bucket_key=THERE.key))

    records = await store.query_users_by_bucket(HERE, "me", 10)

    assert [r.user_id for r in records] == ["u3", "u2"]
    assert records[0].bucket == HERE
    assert records[0].updated_at is not None


@pytest.mark.asyncio
async def test_query_all_returns_everyone_but_caller(fake_redis):
    store = RedisRecordStore()
    for user_id in ("a", "b", "me"):
        await store.register_profile(UserRecord(user_id=user_id, display_name=user_id.upper()))

    records = await store.query_all_users("me", 5)

    assert sorted(r.user_id for r in records) == ["a", "b"]
    assert all(r.bucket is None for r in records)


@pytest.mark.asyncio
async def test_query_all_respects_limit(fake_redis):
    store = RedisRecordStore()
    for user_id in ("a", "b", "c", "d"):
        await store.register_profile(UserRecord(user_id=user_id, display_name=user_id))

    assert len(await store.query_all_users("me", 2)) == 2


@pytest.mark.asyncio
async def test_unknown_user_has_no_bucket(fake_redis):
    assert await RedisRecordStore().get_user_bucket("ghost") is None


@pytest.mark.asyncio
async def test_redis_failure_becomes_store_error(fake_redis):
    from redis.exceptions import ConnectionError as RedisConnectionError

    class BrokenClient:
        async def hget(self, *args, **kwargs):
            raise RedisConnectionError("down")

    with pytest.raises(StoreError):
        await RedisRecordStore(BrokenClient()).update_user_location("u1", HERE)
    with pytest.raises(StoreError):
        await RedisRecordStore(BrokenClient()).get_user_bucket("u1")
