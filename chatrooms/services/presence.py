# chatrooms/services/presence.py

from __future__ import annotations

from typing import Any, Dict, Optional

from chatrooms.core.logging import get_logger
from chatrooms.models.models import ChatMessage, RoomView
from chatrooms.services.admission import AdmissionGate
from chatrooms.services.broadcaster import Broadcaster, utc_now_iso
from chatrooms.services.directory import RoomDirectory
from chatrooms.services.errors import AlreadyJoined, RoomError, RoomNotFound, SessionClosed, ValidationError
from chatrooms.services.sanitize import TEXT_MAX, sanitize, sanitize_name
from chatrooms.services.session import Connection, Session

logger = get_logger(__name__)


# ============================================================================
# PRESENCE SESSION TRACKER
# ============================================================================

class PresenceTracker:
    """
    Tracks which connection is in which room.

    Each session moves Unassociated -> Joined -> Unassociated and is
    discarded when its connection closes. A session holds at most one room:
    joining a different room while joined is rejected with AlreadyJoined,
    re-joining the room it already holds is acknowledged without taking a
    second slot.

    Directory mutations commit before any event is sent; events are then
    pushed through the broadcaster.
    """

    def __init__(self, directory: RoomDirectory, gate: AdmissionGate, broadcaster: Broadcaster) -> None:
        self.directory = directory
        self.gate = gate
        self.broadcaster = broadcaster
        self.sessions: Dict[str, Session] = {}
        self.message_counter = 0

        broadcaster.on_failure = self.disconnect

    def open(self, connection: Connection, name: Any = None) -> Session:
        """Create a session for a freshly accepted connection."""
        session = Session(connection=connection, name=sanitize_name(name))
        self.sessions[session.id] = session
        self.broadcaster.register(session)
        logger.info("✓ Session %s (%s) connected. Total: %d", session.id, session.name, len(self.sessions))
        return session

    # ------------------------------------------------------------------
    # join / leave / disconnect
    # ------------------------------------------------------------------
    async def join(self, session: Session, room_id: str, display_name: Any = None) -> RoomView:
        """
        Attach a session to a room.

        Process:
            1. Reject if the session already holds a different room
            2. Take a slot via the admission gate (may raise RoomFull/RoomNotFound)
            3. Record name + room on the session, touch the room
            4. "<name> joined" notice to the room, room list to everyone
            5. "joined" ack to the session

        Raises:
            SessionClosed, AlreadyJoined, RoomNotFound, RoomFull
        """
        if session.closed:
            raise SessionClosed()

        if session.room_id is not None and session.room_id not in self.directory:
            # Held room was evicted; drop the stale reference
            session.room_id = None
        if session.room_id is not None and session.room_id != room_id:
            raise AlreadyJoined()

        rejoin = session.room_id == room_id
        if not rejoin:
            self.gate.admit(room_id)
            session.room_id = room_id
        if display_name is not None:
            session.name = sanitize_name(display_name)
        self.directory.touch(room_id)

        room = self.directory.get(room_id)
        logger.info("→ %s joined '%s' (%d/%d)", session.name, room.name, room.occupancy, room.capacity)

        if not rejoin:
            await self.broadcaster.system_notice(room_id, f"{session.name} joined")
            self.directory.notify_changed()

        view = self.directory.view(room)
        await self.broadcaster.send(
            session,
            {
                "type": "joined",
                "room_id": room_id,
                "room": view.model_dump(mode="json"),
                "history": [m.model_dump() for m in self.directory.history(room_id)],
            },
        )
        return view

    def _detach(self, session: Session) -> Optional[str]:
        """Clear the session's room. Returns the room id only if that room still exists."""
        room_id = session.room_id
        if room_id is None:
            return None
        session.room_id = None
        if self.directory.decrement_occupancy(room_id) is None:
            return None
        self.directory.touch(room_id)
        return room_id

    async def leave(self, session: Session) -> None:
        """
        Detach a session from its room.

        No-op when the session isn't in a room. Unlike disconnect, an
        explicit leave sends no "left" notice to the remaining members.
        """
        room_id = self._detach(session)
        if room_id is None:
            return
        logger.info("← %s left room %s", session.name, room_id)
        self.directory.notify_changed()

    async def disconnect(self, session: Session) -> None:
        """
        Handle connection termination.

        Runs at most once per session: later calls (a second close signal,
        a failed send racing the close) return immediately.
        """
        if session.closed:
            return
        session.closed = True
        self.sessions.pop(session.id, None)
        self.broadcaster.unregister(session)
        room_id = self._detach(session)
        await self.broadcaster.close_connection(session)
        if room_id is not None:
            await self.broadcaster.system_notice(room_id, f"{session.name} left")
            self.directory.notify_changed()

        logger.info("✗ Session %s (%s) disconnected. Total: %d", session.id, session.name, len(self.sessions))

    # ------------------------------------------------------------------
    # room-scoped traffic
    # ------------------------------------------------------------------
    async def send_message(self, session: Session, room_id: Optional[str], text: Any) -> Optional[ChatMessage]:
        """
        Deliver a chat message to everyone in the sender's room.

        Empty text (after sanitize/trim) is dropped silently and returns None.

        Raises:
            ValidationError: The sender isn't in that room
            RoomNotFound: The room no longer exists
        """
        room_id = room_id or session.room_id
        if room_id is None or session.room_id != room_id:
            raise ValidationError("Not in room")

        clean = sanitize(text, TEXT_MAX).strip()
        if not clean:
            return None

        message = ChatMessage(room_id=room_id, display_name=session.name, text=clean, timestamp=utc_now_iso())
        try:
            self.directory.record_message(room_id, message)
        except RoomNotFound:
            session.room_id = None
            raise RoomNotFound("Room no longer exists")

        self.message_counter += 1
        await self.broadcaster.broadcast_to_room(room_id, {"type": "chat_message", **message.model_dump()})
        return message

    async def rename(self, session: Session, display_name: Any) -> str:
        session.name = sanitize_name(display_name)
        await self.broadcaster.send(
            session,
            {"type": "system_notice", "room_id": session.room_id, "text": f"Username set to {session.name}", "timestamp": utc_now_iso()},
        )
        return session.name

    async def reject(self, session: Session, error: RoomError) -> None:
        """Tell a session its join attempt failed."""
        await self.broadcaster.send(session, {"type": "join_rejected", "reason": error.reason, "message": error.message})
