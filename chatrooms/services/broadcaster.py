# chatrooms/services/broadcaster.py

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

from chatrooms.core.logging import get_logger
from chatrooms.services.directory import RoomDirectory
from chatrooms.services.session import Session

logger = get_logger(__name__)

FailureHandler = Callable[[Session], Awaitable[None]]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# FAN-OUT BROADCASTER
# ============================================================================

class Broadcaster:
    """
    Pushes events to connected sessions.

    Data Structures:
        sessions: Maps session id -> Session for every live connection.
                  Room scoping is read from each session's room_id, so the
                  presence tracker stays the single source of "who is where".

    Delivery:
        - Sends to all recipients run concurrently, each bounded by
          send_timeout, so one slow client never holds up the rest.
        - A recipient whose send fails or times out is handed to on_failure
          (the presence tracker's disconnect) after the fan-out completes.
        - Directory snapshots are full replacements, never diffs.
    """

    def __init__(self, directory: RoomDirectory, send_timeout: float = 5.0) -> None:
        self.directory = directory
        self.send_timeout = send_timeout
        self.sessions: Dict[str, Session] = {}
        self.on_failure: Optional[FailureHandler] = None

        self._pending: Set[asyncio.Task] = set()
        self._snapshot_scheduled = False

    # ------------------------------------------------------------------
    # registry
    # ------------------------------------------------------------------
    def register(self, session: Session) -> None:
        self.sessions[session.id] = session

    def unregister(self, session: Session) -> None:
        self.sessions.pop(session.id, None)

    def members(self, room_id: str) -> List[Session]:
        """Sessions currently associated with a room."""
        return [s for s in self.sessions.values() if s.room_id == room_id and not s.closed]

    # ------------------------------------------------------------------
    # delivery
    # ------------------------------------------------------------------
    async def _deliver(self, session: Session, message: dict) -> bool:
        try:
            await asyncio.wait_for(session.connection.send_json(message), timeout=self.send_timeout)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Send to session %s (%s) failed: %r", session.id, session.name, e)
            return False

    async def _fan_out(self, recipients: Iterable[Session], message: dict) -> None:
        targets = [s for s in recipients if not s.closed]
        if not targets:
            return

        results = await asyncio.gather(*(self._deliver(s, message) for s in targets))

        # Clean up failed connections
        for session, ok in zip(targets, results):
            if not ok:
                await self._handle_failure(session)

    async def _handle_failure(self, session: Session) -> None:
        if self.on_failure is None:
            self.unregister(session)
            return
        try:
            await self.on_failure(session)
        except Exception:
            logger.exception("Cleanup of failed session %s raised", session.id)

    async def close_connection(self, session: Session) -> None:
        """
        Close a session's transport.

        Errors (already closed, peer gone) and a close that outlasts
        send_timeout are logged and ignored.
        """
        try:
            await asyncio.wait_for(session.connection.close(), timeout=self.send_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("Close of session %s ignored: %r", session.id, e)

    async def send(self, session: Session, message: dict) -> None:
        """Send one event to one session."""
        await self._fan_out([session], message)

    async def broadcast_to_room(self, room_id: str, message: dict) -> None:
        """
        Broadcast an event to every session associated with a room.

        Args:
            room_id: Target room
            message: Event dict (JSON serializable)
        """
        members = self.members(room_id)
        if not members:
            logger.debug("[routing] Skipped broadcast: room=%s has 0 members", room_id)
            return

        logger.debug("📨 Broadcasting %s to room %s: %d clients", message.get("type"), room_id, len(members))
        await self._fan_out(members, message)

    async def broadcast_directory(self) -> None:
        """
        Send the full current room list to every connected session.

        Sends {"type": "rooms_updated", "rooms": [...]} and replaces the
        client's local view.
        """
        rooms_data = [r.model_dump(mode="json") for r in self.directory.list_rooms()]
        await self._fan_out(list(self.sessions.values()), {"type": "rooms_updated", "rooms": rooms_data})

    async def system_notice(self, room_id: str, text: str) -> None:
        await self.broadcast_to_room(
            room_id,
            {"type": "system_notice", "room_id": room_id, "text": text, "timestamp": utc_now_iso()},
        )

    # ------------------------------------------------------------------
    # directory-changed listener
    # ------------------------------------------------------------------
    def directory_changed(self) -> None:
        """
        Schedule a room-list broadcast on the running event loop.

        Fire-and-forget: the mutation that triggered this has already
        committed. Changes arriving before the scheduled broadcast runs are
        coalesced into that single snapshot.
        """
        if self._snapshot_scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop means no connected clients to tell
            return

        self._snapshot_scheduled = True
        task = loop.create_task(self._scheduled_snapshot())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _scheduled_snapshot(self) -> None:
        self._snapshot_scheduled = False
        try:
            await self.broadcast_directory()
        except Exception:
            logger.exception("Room list broadcast failed")

    async def drain(self) -> None:
        """Wait for every scheduled broadcast to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)
        self._pending.clear()
        self._snapshot_scheduled = False
