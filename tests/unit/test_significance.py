import asyncio

import pytest

from radar.domain.location.models import Coordinate
from radar.domain.location.replay import displaced
from radar.domain.location.significance import accept, debounce
from radar.domain.proximity.geo import distance_km

ORIGIN = Coordinate(12.9716, 77.5946)


def test_first_reading_is_always_accepted():
    assert accept(None, ORIGIN)
    assert accept(None, ORIGIN, threshold_km=1000)


def test_small_move_is_suppressed():
    lat, lon = displaced(ORIGIN.latitude, ORIGIN.longitude, east_m=40)
    candidate = Coordinate(lat, lon)
    assert distance_km(ORIGIN, candidate) < 0.1
    assert not accept(ORIGIN, candidate, 0.1)


def test_large_move_is_accepted():
    lat, lon = displaced(ORIGIN.latitude, ORIGIN.longitude, north_m=250)
    assert accept(ORIGIN, Coordinate(lat, lon), 0.1)


def test_accept_matches_distance_threshold():
    for meters in (0, 10, 99, 101, 500, 5000):
        lat, lon = displaced(ORIGIN.latitude, ORIGIN.longitude, east_m=meters)
        candidate = Coordinate(lat, lon)
        expected = distance_km(ORIGIN, candidate) >= 0.1
        assert accept(ORIGIN, candidate, 0.1) is expected


@pytest.mark.asyncio
async def test_debounce_delivers_latest_value_once():
    calls: list[int] = []
    debounced = debounce(calls.append, 50)
    for value in range(5):
        debounced(value)
        await asyncio.sleep(0.005)
    assert calls == []
    await asyncio.sleep(0.1)
    assert calls == [4]
    assert not debounced.pending


@pytest.mark.asyncio
async def test_debounce_restarts_window_on_each_call():
    calls: list[str] = []
    debounced = debounce(calls.append, 60)
    debounced("a")
    await asyncio.sleep(0.04)
    debounced("b")
    await asyncio.sleep(0.04)
    # 80ms after the first call but only 40ms after the second
    assert calls == []
    await asyncio.sleep(0.06)
    assert calls == ["b"]


@pytest.mark.asyncio
async def test_cancelled_debounce_never_fires():
    calls: list[str] = []
    debounced = debounce(calls.append, 20)
    debounced("x")
    assert debounced.pending
    debounced.cancel()
    await asyncio.sleep(0.05)
    assert calls == []
