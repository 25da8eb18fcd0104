# chatrooms/services/directory.py

from __future__ import annotations

import math
import threading
import time
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from chatrooms.core.logging import get_logger
from chatrooms.models.models import ChatMessage, Room, RoomView
from chatrooms.services.errors import RoomFull, RoomNotFound, ValidationError
from chatrooms.services.sanitize import (
    NAME_MAX,
    PASSWORD_MAX,
    TEXT_MAX,
    parse_tags,
    sanitize,
)

logger = get_logger(__name__)

DirectoryListener = Callable[[], None]


def _to_datetime(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


# ============================================================================
# ROOM DIRECTORY
# ============================================================================
class RoomDirectory:
    """
    Authoritative in-memory registry of live rooms.

    Every change to a room's occupancy or last-activity goes through this
    class, so the occupancy invariant (0 <= occupancy <= capacity) is enforced
    in one place. All operations run under a single re-entrant lock and never
    await, which makes them linearizable with respect to each other whether
    they are called from the event loop or from worker threads.

    Attributes:
        rooms: Dictionary mapping room_id -> Room (insertion order = creation order)

    Usage:
        directory = RoomDirectory()
        room_id = directory.create("Lounge", "alice", "music,chill", 2, None)
        views = directory.list_rooms()
    """

    def __init__(
        self,
        default_capacity: int = 10,
        history_size: int = 200,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.rooms: Dict[str, Room] = {}
        self.default_capacity = max(1, default_capacity)
        self.history_size = history_size
        self._clock = clock
        self._history: Dict[str, Deque[ChatMessage]] = {}
        self._listeners: List[DirectoryListener] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # change notification
    # ------------------------------------------------------------------
    def subscribe(self, listener: DirectoryListener) -> None:
        """Register a callable invoked after every directory-changed event."""
        self._listeners.append(listener)

    def notify_changed(self) -> None:
        """
        Tell subscribers the room list changed.

        Called after the mutation has committed; a failing listener is logged
        and does not prevent the others from running.
        """
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Directory listener %r failed", listener)

    # ------------------------------------------------------------------
    # creation / lookup
    # ------------------------------------------------------------------
    def _coerce_capacity(self, capacity: Any) -> int:
        try:
            value = float(capacity)
        except (TypeError, ValueError):
            return self.default_capacity
        if not math.isfinite(value) or value == 0:
            return self.default_capacity
        return max(1, int(value))

    def create(
        self,
        name: Any,
        creator: Any = "Anonymous",
        tags: Any = None,
        capacity: Any = None,
        password: Any = None,
    ) -> str:
        """
        Create a new room.

        Args:
            name: Room name; required, must be non-empty after sanitize/trim
            creator: Display name of the creator (default "Anonymous")
            tags: Comma-separated string or list of tags
            capacity: Maximum occupancy; clamped to >= 1, default when missing
            password: Optional join password (kept server side only)

        Returns:
            str: The new room id

        Raises:
            ValidationError: If the name is empty
        """
        clean_name = sanitize(name, TEXT_MAX).strip()
        if not clean_name:
            raise ValidationError("Room name required")

        clean_creator = sanitize(creator or "Anonymous", NAME_MAX).strip() or "Anonymous"
        secret = sanitize(password, PASSWORD_MAX) if password else None

        with self._lock:
            now = self._clock()
            room = Room(
                id=str(uuid.uuid4()),  # Generate unique UUID
                name=clean_name,
                creator=clean_creator,
                tags=parse_tags(tags),
                has_password=bool(secret),
                password=secret,
                capacity=self._coerce_capacity(capacity),
                occupancy=0,
                created_at=now,
                last_activity=now,
            )
            self.rooms[room.id] = room
            self._history[room.id] = deque(maxlen=self.history_size)

        logger.info("✓ Created room %s '%s' by %s (capacity %d)", room.id, room.name, room.creator, room.capacity)
        self.notify_changed()
        return room.id

    def get(self, room_id: str) -> Room:
        """
        Get a copy of a room by id.

        Raises:
            RoomNotFound: If no such room exists (or it was evicted)
        """
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                raise RoomNotFound()
            return room.model_copy(deep=True)

    def find(self, room_id: str) -> Optional[Room]:
        """Like get() but returns None for unknown rooms."""
        try:
            return self.get(room_id)
        except RoomNotFound:
            return None

    def view(self, room: Room) -> RoomView:
        return RoomView(
            id=room.id,
            name=room.name,
            creator=room.creator,
            tags=list(room.tags),
            has_password=room.has_password,
            occupancy=room.occupancy,
            capacity=room.capacity,
            created_at=_to_datetime(room.created_at),
            last_activity=_to_datetime(room.last_activity),
        )

    def list_rooms(self) -> List[RoomView]:
        """
        Snapshot of all rooms in creation order.

        Returns:
            List of RoomView objects (never containing a password)
        """
        with self._lock:
            return [self.view(room) for room in self.rooms.values()]

    def activity(self) -> Dict[str, float]:
        """Map room_id -> last_activity, used by the expiry sweeper."""
        with self._lock:
            return {room_id: room.last_activity for room_id, room in self.rooms.items()}

    def __len__(self) -> int:
        return len(self.rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self.rooms

    # ------------------------------------------------------------------
    # occupancy / activity
    # ------------------------------------------------------------------
    def increment_occupancy(self, room_id: str) -> int:
        """
        Take one slot in a room.

        The capacity check and the increment happen under the same lock, so
        two concurrent callers can never both take the last slot.

        Returns:
            int: The new occupancy

        Raises:
            RoomNotFound: If the room doesn't exist
            RoomFull: If occupancy already equals capacity (occupancy unchanged)
        """
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                raise RoomNotFound()
            if room.occupancy >= room.capacity:
                raise RoomFull()
            room.occupancy += 1
            return room.occupancy

    def decrement_occupancy(self, room_id: str) -> Optional[int]:
        """
        Release one slot in a room.

        Floors at zero and never fails: a missing room or an already-empty
        room is a no-op. Returns the new occupancy, or None if the room is gone.
        """
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                return None
            room.occupancy = max(0, room.occupancy - 1)
            return room.occupancy

    def touch(self, room_id: str) -> bool:
        """Mark activity in a room. Returns False if the room no longer exists."""
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                return False
            room.last_activity = max(room.last_activity, self._clock())
            return True

    # ------------------------------------------------------------------
    # recent message buffer
    # ------------------------------------------------------------------
    def record_message(self, room_id: str, message: ChatMessage) -> None:
        """
        Append a chat message to the room's recent buffer and touch the room.

        Raises:
            RoomNotFound: If the room doesn't exist
        """
        with self._lock:
            if room_id not in self.rooms:
                raise RoomNotFound()
            self._history[room_id].append(message)
            self.touch(room_id)

    def history(self, room_id: str) -> List[ChatMessage]:
        with self._lock:
            return list(self._history.get(room_id, ()))

    # ------------------------------------------------------------------
    # removal
    # ------------------------------------------------------------------
    def evict(self, room_id: str, idle_before: Optional[float] = None) -> bool:
        """
        Remove a room.

        Args:
            room_id: Room to remove
            idle_before: When given, only remove the room if its last activity
                is still older than this timestamp (re-checked under the lock)

        Returns:
            True if the room was removed, False otherwise
        """
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                return False
            if idle_before is not None and room.last_activity >= idle_before:
                return False
            del self.rooms[room_id]
            self._history.pop(room_id, None)

        logger.info("✓ Evicted room %s '%s'", room_id, room.name)
        return True
