# chatrooms/api/routes/rooms.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from chatrooms.core.state import AppState, get_state
from chatrooms.models.models import CreateRoomRequest, CreateRoomResponse, RoomView
from chatrooms.services.errors import RoomNotFound, ValidationError

router = APIRouter()

# ============================================================================
# ROOM DIRECTORY ENDPOINTS
# ============================================================================

@router.get("/rooms", response_model=List[RoomView])
async def list_rooms(state: AppState = Depends(get_state)):
    """
    List all live rooms.

    Returns:
        List[RoomView]: Every room with current occupancy; passwords are
        never included, only has_password.
    """
    return state.directory.list_rooms()


@router.post("/rooms", response_model=CreateRoomResponse)
async def create_room(request: CreateRoomRequest, state: AppState = Depends(get_state)):
    """
    Create a new room.

    Args:
        request: CreateRoomRequest with name, creator, tags, capacity, password

    Returns:
        CreateRoomResponse: {"ok": true, "id": "<room id>"}

    Raises:
        HTTPException: 400 if the name is empty after sanitizing

    Side Effects:
        "rooms_updated" broadcast to all WebSocket clients
    """
    try:
        room_id = state.directory.create(
            name=request.name,
            creator=request.creator,
            tags=request.tags,
            capacity=request.capacity,
            password=request.password,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return CreateRoomResponse(id=room_id)


@router.get("/rooms/{room_id}", response_model=RoomView)
async def get_room(room_id: str, state: AppState = Depends(get_state)):
    """
    Get one room.

    Raises:
        HTTPException: 404 if room not found
    """
    try:
        room = state.directory.get(room_id)
    except RoomNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return state.directory.view(room)


@router.delete("/rooms/{room_id}")
async def delete_room(room_id: str, state: AppState = Depends(get_state)):
    """
    Evict a room immediately.

    Members keep their session but the room reference is stale: further
    messages to it are answered with "Room no longer exists".

    Raises:
        HTTPException: 404 if room not found
    """
    if not state.directory.evict(room_id):
        raise HTTPException(status_code=404, detail="Room not found")

    state.directory.notify_changed()
    return {"status": "deleted", "room_id": room_id}
