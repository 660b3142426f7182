import pytest

from radar.infra import build_record_store, postgres
from radar.infra.postgres_store import PostgresRecordStore
from radar.infra.redis_store import RedisRecordStore


def test_backend_selection():
    assert isinstance(build_record_store("redis"), RedisRecordStore)
    assert isinstance(build_record_store("Postgres"), PostgresRecordStore)
    with pytest.raises(ValueError):
        build_record_store("sqlite")


class ClosingPool:
    closed = False

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_pool_can_be_swapped_and_closed():
    pool = ClosingPool()
    postgres.set_pool(pool)
    try:
        assert await postgres.get_pool() is pool
        assert await PostgresRecordStore()._get_pool() is pool
        await postgres.close_pool()
        assert pool.closed is True
    finally:
        postgres.set_pool(None)
