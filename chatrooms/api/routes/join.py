# chatrooms/api/routes/join.py

from fastapi import APIRouter, Depends, HTTPException

from chatrooms.core.state import AppState, get_state
from chatrooms.models.models import JoinCheckRequest
from chatrooms.services.errors import RoomFull, RoomNotFound, WrongPassword

router = APIRouter()


@router.post("/join")
async def check_join(request: JoinCheckRequest, state: AppState = Depends(get_state)):
    """
    Pre-flight join check.

    Validates that the room exists, the password matches and a slot is free,
    without taking the slot. The slot is only taken by the WebSocket "join"
    action, which can still be rejected as full if someone else got there
    first.

    Returns:
        dict: {"ok": true}

    Raises:
        HTTPException: 404 room not found, 403 wrong password or room full
    """
    try:
        state.gate.check(request.room_id, request.password)
    except RoomNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except (WrongPassword, RoomFull) as e:
        raise HTTPException(status_code=403, detail=e.message)
    return {"ok": True}
