# chatrooms/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "message": "Ephemeral Chat Rooms",
        "version": "1.0",
        "features": ["room_directory", "password_rooms", "room_capacity", "idle_expiry"],
        "endpoints": {
            "websocket": "/ws",
            "rooms": "/rooms",
            "join": "/join",
            "health": "/health",
        },
    }
