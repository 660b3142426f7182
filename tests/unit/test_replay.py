import asyncio

import pytest

from radar.domain.location import errors
from radar.domain.location.platform import POSITION_UNAVAILABLE
from radar.domain.location.provider import LocationProvider
from radar.domain.location.replay import ReplayPlatform, TrackStep, displaced
from radar.domain.proximity.geo import distance_km
from radar.domain.location.models import Coordinate


def test_displaced_moves_by_requested_distance():
    start = (12.9716, 77.5946)
    moved = displaced(*start, east_m=300.0, north_m=400.0)
    assert distance_km(Coordinate(*start), Coordinate(*moved)) == pytest.approx(0.5, abs=0.002)


@pytest.mark.asyncio
async def test_watch_delivers_steps_in_order_and_errors():
    platform = ReplayPlatform(
        [
            TrackStep(20, 12.98, 77.6),
            TrackStep(0, 12.97, 77.59),
            TrackStep(40, error_code=POSITION_UNAVAILABLE),
        ]
    )
    provider = LocationProvider(platform)
    seen: list = []
    failures: list = []

    provider.watch(seen.append, failures.append)
    await asyncio.sleep(0.1)

    assert [c.latitude for c in seen] == [12.97, 12.98]
    assert [type(f) for f in failures] == [errors.Unavailable]
    assert provider.last_fix == seen[-1]


@pytest.mark.asyncio
async def test_cleared_watch_delivers_nothing_more():
    platform = ReplayPlatform([TrackStep(0, 12.97, 77.59), TrackStep(50, 12.98, 77.6)])
    provider = LocationProvider(platform)
    seen: list = []

    handle = provider.watch(seen.append, lambda error: None)
    await asyncio.sleep(0.01)
    provider.stop_watch(handle)
    await asyncio.sleep(0.1)

    assert len(seen) == 1
    assert platform.active_watches == 0


@pytest.mark.asyncio
async def test_denied_replay_fails_one_shot():
    provider = LocationProvider(ReplayPlatform([TrackStep(0, 12.97, 77.59)], permission="denied"))
    with pytest.raises(errors.PermissionDenied):
        await provider.get_current_coordinate()
