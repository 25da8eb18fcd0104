"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from chatrooms.services.admission import AdmissionGate
from chatrooms.services.broadcaster import Broadcaster
from chatrooms.services.directory import RoomDirectory
from chatrooms.services.presence import PresenceTracker


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    """Records every frame sent to it; optionally fails or stalls."""

    def __init__(self, fail: bool = False, stall: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail
        self.stall = stall
        self.closed = False

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        if self.stall:
            await asyncio.sleep(3600)
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True

    def of_type(self, kind: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m.get("type") == kind]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def directory(clock: FakeClock) -> RoomDirectory:
    return RoomDirectory(clock=clock, history_size=5)


@pytest.fixture
def gate(directory: RoomDirectory) -> AdmissionGate:
    return AdmissionGate(directory)


@pytest.fixture
def broadcaster(directory: RoomDirectory) -> Broadcaster:
    b = Broadcaster(directory, send_timeout=0.05)
    directory.subscribe(b.directory_changed)
    return b


@pytest.fixture
def tracker(directory: RoomDirectory, gate: AdmissionGate, broadcaster: Broadcaster) -> PresenceTracker:
    return PresenceTracker(directory, gate, broadcaster)
