# chatrooms/api/routes/health.py

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from chatrooms.core.state import AppState, get_state

router = APIRouter()

@router.get("/health")
async def health(state: AppState = Depends(get_state)):
    """
    Health check endpoint.

    Returns current system status, connection counts and room counts.

    Returns:
        dict: Status, connections, rooms, occupied rooms, messages, uptime
    """
    rooms = state.directory.list_rooms()
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    return {
        "status": "healthy",
        "connections": len(state.tracker.sessions),
        "rooms": len(rooms),
        "occupied_rooms": sum(1 for r in rooms if r.occupancy > 0),
        "total_messages": state.tracker.message_counter,
        "uptime_hours": round(uptime_seconds / 3600, 2),
    }
