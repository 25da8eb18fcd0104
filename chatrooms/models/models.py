# chatrooms/models/models.py
from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


class Room(BaseModel):
    """Authoritative room record. Only RoomDirectory creates or mutates these."""

    id: str
    name: str
    creator: str = "Anonymous"
    tags: List[str] = Field(default_factory=list)
    has_password: bool = False
    password: Optional[str] = Field(default=None, exclude=True, repr=False)
    capacity: int = 10
    occupancy: int = 0
    created_at: float
    last_activity: float


class RoomView(BaseModel):
    """Public projection of a room; never carries the password."""

    id: str
    name: str
    creator: str
    tags: List[str]
    has_password: bool
    occupancy: int
    capacity: int
    created_at: datetime
    last_activity: datetime


class ChatMessage(BaseModel):
    room_id: str
    display_name: str
    text: str
    timestamp: str


class CreateRoomRequest(BaseModel):
    name: Optional[str] = ""
    creator: Optional[str] = "Anonymous"
    tags: Union[str, List[str], None] = ""
    capacity: Optional[Any] = None
    password: Optional[str] = None


class CreateRoomResponse(BaseModel):
    ok: bool = True
    id: str


class JoinCheckRequest(BaseModel):
    room_id: str
    password: Optional[str] = ""
