# chatrooms/api/websocket.py

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chatrooms.core.logging import get_logger
from chatrooms.core.state import get_ws_state
from chatrooms.services.directory import RoomDirectory
from chatrooms.services.errors import RoomError
from chatrooms.services.presence import PresenceTracker
from chatrooms.services.session import Session

logger = get_logger(__name__)

router = APIRouter()

Handler = Callable[[RoomDirectory, PresenceTracker, Session, Dict[str, Any]], Awaitable[None]]

# ============================================================================
# ACTION HANDLERS
# ============================================================================

async def handle_list_rooms(directory: RoomDirectory, tracker: PresenceTracker, session: Session, message: Dict[str, Any]) -> None:
    rooms_data = [r.model_dump(mode="json") for r in directory.list_rooms()]
    await tracker.broadcaster.send(session, {"type": "rooms_updated", "rooms": rooms_data})


async def handle_join(directory: RoomDirectory, tracker: PresenceTracker, session: Session, message: Dict[str, Any]) -> None:
    room_id = message.get("room_id")
    if not room_id:
        await send_error(tracker, session, "room_id required")
        return
    try:
        await tracker.join(session, str(room_id), message.get("display_name"))
    except RoomError as e:
        logger.info("✗ Join of %s to room %s rejected: %s", session.name, room_id, e.reason)
        await tracker.reject(session, e)


async def handle_message(directory: RoomDirectory, tracker: PresenceTracker, session: Session, message: Dict[str, Any]) -> None:
    try:
        await tracker.send_message(session, message.get("room_id"), message.get("text"))
    except RoomError as e:
        await send_error(tracker, session, e.message)


async def handle_leave(directory: RoomDirectory, tracker: PresenceTracker, session: Session, message: Dict[str, Any]) -> None:
    await tracker.leave(session)


async def handle_set_name(directory: RoomDirectory, tracker: PresenceTracker, session: Session, message: Dict[str, Any]) -> None:
    await tracker.rename(session, message.get("display_name"))


HANDLERS: Dict[str, Handler] = {
    "list_rooms": handle_list_rooms,
    "join": handle_join,
    "message": handle_message,
    "leave": handle_leave,
    "set_name": handle_set_name,
}


async def send_error(tracker: PresenceTracker, session: Session, text: str) -> None:
    await tracker.broadcaster.send(session, {"type": "error", "message": text})


async def dispatch(directory: RoomDirectory, tracker: PresenceTracker, session: Session, raw: str) -> None:
    """Decode one client frame and run the matching handler."""
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        await send_error(tracker, session, "Invalid JSON")
        return

    if not isinstance(message, dict):
        await send_error(tracker, session, "Invalid message")
        return

    action = message.get("action")
    handler = HANDLERS.get(action) if isinstance(action, str) else None
    if handler is None:
        await send_error(tracker, session, f"Unknown action: {action}")
        return

    logger.debug("Websocket input from %s: action=%s", session.id, action)
    await handler(directory, tracker, session, message)


# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, name: str = "Anonymous"):
    """
    WebSocket endpoint for real-time room traffic.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    List Rooms:
        {"action": "list_rooms"}
        Response: {"type": "rooms_updated", "rooms": [...]}

    Join Room:
        {"action": "join", "room_id": "uuid-123", "display_name": "alice"}
        Response: {"type": "joined", "room_id": "uuid-123", "room": {...}, "history": [...]}
              or: {"type": "join_rejected", "reason": "full", "message": "Room full"}

    Send Message:
        {"action": "message", "room_id": "uuid-123", "text": "hello"}
        Room receives: {"type": "chat_message", "room_id": ..., "display_name": ..., "text": ..., "timestamp": ...}

    Leave Room:
        {"action": "leave"}

    Change Name:
        {"action": "set_name", "display_name": "bob"}

    Server -> Client Messages:
    -------------------------
    Room List Updated:
        {"type": "rooms_updated", "rooms": [...]}

    System Notice:
        {"type": "system_notice", "room_id": "uuid-123", "text": "alice joined", "timestamp": "..."}

    Error:
        {"type": "error", "message": "..."}

    Lifecycle:
    ==========
    1. Client connects (optional ?name=...)
    2. Session created, not in any room
    3. Client runs POST /join for feedback, then sends "join"
    4. On disconnect the session leaves its room and the room is told "<name> left"
    """
    state = get_ws_state(websocket)
    await websocket.accept()
    session = state.tracker.open(websocket, name)

    try:
        while True:
            data = await websocket.receive_text()
            await dispatch(state.directory, state.tracker, session, data)
            if session.closed:
                # A failed send already disconnected and closed this socket
                break
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error: %s", e)
    finally:
        # Must complete even if this handler is being cancelled
        await asyncio.shield(state.tracker.disconnect(session))
