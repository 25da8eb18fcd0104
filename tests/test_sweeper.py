"""Tests for ExpirySweeper."""

from __future__ import annotations

import asyncio

from chatrooms.services.directory import RoomDirectory
from chatrooms.services.sweeper import ExpirySweeper

TTL = 30 * 60


def _sweeper(directory: RoomDirectory, clock) -> ExpirySweeper:
    return ExpirySweeper(directory, ttl=TTL, interval=60, clock=clock)


def test_idle_room_is_evicted(directory: RoomDirectory, clock) -> None:
    room_id = directory.create("Lounge")
    clock.advance(31 * 60)
    assert _sweeper(directory, clock).sweep() == [room_id]
    assert [v.id for v in directory.list_rooms()] == []


def test_recently_touched_room_survives(directory: RoomDirectory, clock) -> None:
    stale = directory.create("stale")
    fresh = directory.create("fresh")
    clock.advance(20 * 60)
    directory.touch(fresh)
    clock.advance(11 * 60)

    assert _sweeper(directory, clock).sweep() == [stale]
    assert [v.id for v in directory.list_rooms()] == [fresh]


def test_exactly_ttl_is_not_expired(directory: RoomDirectory, clock) -> None:
    room_id = directory.create("edge")
    clock.advance(TTL)
    assert _sweeper(directory, clock).sweep() == []
    assert room_id in directory


def test_one_notification_per_sweep(directory: RoomDirectory, clock) -> None:
    for name in ("a", "b", "c"):
        directory.create(name)
    calls: list[int] = []
    directory.subscribe(lambda: calls.append(1))

    clock.advance(TTL + 1)
    assert len(_sweeper(directory, clock).sweep()) == 3
    assert calls == [1]


def test_no_notification_when_nothing_expired(directory: RoomDirectory, clock) -> None:
    directory.create("a")
    calls: list[int] = []
    directory.subscribe(lambda: calls.append(1))
    assert _sweeper(directory, clock).sweep() == []
    assert calls == []


def test_occupied_idle_room_is_still_evicted(directory: RoomDirectory, clock) -> None:
    room_id = directory.create("a")
    directory.increment_occupancy(room_id)
    clock.advance(TTL + 1)
    assert _sweeper(directory, clock).sweep() == [room_id]


def test_failure_on_one_room_does_not_stop_others(directory: RoomDirectory, clock, monkeypatch) -> None:
    first = directory.create("a")
    second = directory.create("b")
    clock.advance(TTL + 1)

    real_evict = directory.evict

    def flaky_evict(room_id: str, idle_before=None) -> bool:
        if room_id == first:
            raise RuntimeError("boom")
        return real_evict(room_id, idle_before=idle_before)

    monkeypatch.setattr(directory, "evict", flaky_evict)
    assert _sweeper(directory, clock).sweep() == [second]
    assert first in directory


async def test_periodic_task_runs_and_stops(directory: RoomDirectory, clock) -> None:
    directory.create("a")
    clock.advance(TTL + 1)
    sweeper = ExpirySweeper(directory, ttl=TTL, interval=0.01, clock=clock)

    sweeper.start()
    for _ in range(100):
        if len(directory) == 0:
            break
        await asyncio.sleep(0.01)
    await sweeper.stop()

    assert len(directory) == 0
