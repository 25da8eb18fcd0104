"""Tests for RoomDirectory."""

from __future__ import annotations

import threading

import pytest

from chatrooms.models.models import ChatMessage
from chatrooms.services.directory import RoomDirectory
from chatrooms.services.errors import RoomFull, RoomNotFound, ValidationError


def _message(room_id: str, text: str) -> ChatMessage:
    return ChatMessage(room_id=room_id, display_name="a", text=text, timestamp="t")


class TestCreate:
    def test_create_with_defaults(self, directory: RoomDirectory) -> None:
        room_id = directory.create("Lounge")
        room = directory.get(room_id)
        assert room.name == "Lounge"
        assert room.creator == "Anonymous"
        assert room.tags == []
        assert room.capacity == 10
        assert room.occupancy == 0
        assert room.has_password is False
        assert room.created_at == room.last_activity

    def test_empty_name_rejected_and_directory_unchanged(self, directory: RoomDirectory) -> None:
        directory.create("Existing")
        for bad in ("", "   ", None):
            with pytest.raises(ValidationError):
                directory.create(bad)
        assert len(directory) == 1

    def test_capacity_is_clamped(self, directory: RoomDirectory) -> None:
        assert directory.get(directory.create("a", capacity=-5)).capacity == 1
        assert directory.get(directory.create("b", capacity=0)).capacity == 10
        assert directory.get(directory.create("c", capacity="abc")).capacity == 10
        assert directory.get(directory.create("d", capacity="3")).capacity == 3
        assert directory.get(directory.create("e", capacity=2.7)).capacity == 2

    def test_tags_are_trimmed_and_deduplicated(self, directory: RoomDirectory) -> None:
        room = directory.get(directory.create("x", tags=" music , chill,,music, <b> "))
        assert room.tags == ["music", "chill", "&lt;b&gt;"]

    def test_name_is_escaped(self, directory: RoomDirectory) -> None:
        room = directory.get(directory.create("<script>alert(1)</script>"))
        assert "<" not in room.name

    def test_ids_are_unique(self, directory: RoomDirectory) -> None:
        ids = {directory.create(f"room {i}") for i in range(50)}
        assert len(ids) == 50

    def test_create_notifies_listeners(self, directory: RoomDirectory) -> None:
        calls: list[int] = []
        directory.subscribe(lambda: calls.append(1))
        directory.create("x")
        assert calls == [1]

    def test_failing_listener_does_not_block_others(self, directory: RoomDirectory) -> None:
        calls: list[int] = []

        def broken() -> None:
            raise RuntimeError("boom")

        directory.subscribe(broken)
        directory.subscribe(lambda: calls.append(1))
        directory.create("x")
        assert calls == [1]


class TestListing:
    def test_password_never_exposed(self, directory: RoomDirectory) -> None:
        directory.create("secret", password="hunter2")
        directory.create("open")
        views = directory.list_rooms()
        dumped = [v.model_dump(mode="json") for v in views]
        assert [d["has_password"] for d in dumped] == [True, False]
        for d in dumped:
            assert "password" not in d
            assert "hunter2" not in str(d)

    def test_room_record_dump_excludes_password(self, directory: RoomDirectory) -> None:
        room = directory.get(directory.create("secret", password="hunter2"))
        assert "password" not in room.model_dump()
        assert room.password == "hunter2"

    def test_listing_keeps_creation_order(self, directory: RoomDirectory) -> None:
        for name in ("one", "two", "three"):
            directory.create(name)
        assert [v.name for v in directory.list_rooms()] == ["one", "two", "three"]

    def test_get_returns_copy(self, directory: RoomDirectory) -> None:
        room_id = directory.create("x")
        copy = directory.get(room_id)
        copy.occupancy = 99
        assert directory.get(room_id).occupancy == 0

    def test_get_unknown_raises(self, directory: RoomDirectory) -> None:
        with pytest.raises(RoomNotFound):
            directory.get("missing")
        assert directory.find("missing") is None


class TestOccupancy:
    def test_increment_until_full(self, directory: RoomDirectory) -> None:
        room_id = directory.create("x", capacity=2)
        assert directory.increment_occupancy(room_id) == 1
        assert directory.increment_occupancy(room_id) == 2
        with pytest.raises(RoomFull):
            directory.increment_occupancy(room_id)
        assert directory.get(room_id).occupancy == 2

    def test_increment_unknown_room(self, directory: RoomDirectory) -> None:
        with pytest.raises(RoomNotFound):
            directory.increment_occupancy("missing")

    def test_decrement_floors_at_zero(self, directory: RoomDirectory) -> None:
        room_id = directory.create("x")
        directory.increment_occupancy(room_id)
        assert directory.decrement_occupancy(room_id) == 0
        assert directory.decrement_occupancy(room_id) == 0
        assert directory.decrement_occupancy("missing") is None

    def test_concurrent_increments_never_exceed_capacity(self, directory: RoomDirectory) -> None:
        room_id = directory.create("x", capacity=5)
        outcomes: list[str] = []
        barrier = threading.Barrier(20)

        def worker() -> None:
            barrier.wait()
            try:
                directory.increment_occupancy(room_id)
                outcomes.append("ok")
            except RoomFull:
                outcomes.append("full")

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 5
        assert outcomes.count("full") == 15
        assert directory.get(room_id).occupancy == 5


class TestActivity:
    def test_touch_moves_last_activity_forward(self, directory: RoomDirectory, clock) -> None:
        room_id = directory.create("x")
        clock.advance(10)
        assert directory.touch(room_id) is True
        assert directory.get(room_id).last_activity == clock.now

    def test_touch_never_goes_backwards(self, directory: RoomDirectory, clock) -> None:
        room_id = directory.create("x")
        before = directory.get(room_id).last_activity
        clock.advance(-100)
        directory.touch(room_id)
        assert directory.get(room_id).last_activity == before

    def test_touch_unknown_room(self, directory: RoomDirectory) -> None:
        assert directory.touch("missing") is False

    def test_history_is_bounded(self, directory: RoomDirectory) -> None:
        room_id = directory.create("x")
        for i in range(8):
            directory.record_message(room_id, _message(room_id, str(i)))
        assert [m.text for m in directory.history(room_id)] == ["3", "4", "5", "6", "7"]

    def test_record_message_touches_room(self, directory: RoomDirectory, clock) -> None:
        room_id = directory.create("x")
        clock.advance(30)
        directory.record_message(room_id, _message(room_id, "hi"))
        assert directory.get(room_id).last_activity == clock.now

    def test_record_message_unknown_room(self, directory: RoomDirectory) -> None:
        with pytest.raises(RoomNotFound):
            directory.record_message("missing", _message("missing", "hi"))


class TestEvict:
    def test_evict_removes_room_and_history(self, directory: RoomDirectory) -> None:
        room_id = directory.create("x")
        directory.record_message(room_id, _message(room_id, "hi"))
        assert directory.evict(room_id) is True
        assert room_id not in directory
        assert directory.history(room_id) == []
        assert directory.evict(room_id) is False

    def test_evict_respects_idle_threshold(self, directory: RoomDirectory, clock) -> None:
        room_id = directory.create("x")
        assert directory.evict(room_id, idle_before=clock.now) is False
        assert directory.evict(room_id, idle_before=clock.now + 1) is True

    def test_evict_does_not_notify(self, directory: RoomDirectory) -> None:
        room_id = directory.create("x")
        calls: list[int] = []
        directory.subscribe(lambda: calls.append(1))
        directory.evict(room_id)
        assert calls == []
