# chatrooms/services/errors.py

from __future__ import annotations


class RoomError(Exception):
    """
    Base class for every rejection the room directory can produce.

    Attributes:
        reason: Stable machine-readable code sent to clients
        message: Human-readable text shown in the UI
    """

    reason = "error"
    default_message = "Room error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RoomError):
    reason = "invalid"
    default_message = "Invalid request"


class RoomNotFound(RoomError):
    reason = "not_found"
    default_message = "Room not found"


class WrongPassword(RoomError):
    reason = "wrong_password"
    default_message = "Wrong password"


class RoomFull(RoomError):
    reason = "full"
    default_message = "Room full"


class AlreadyJoined(RoomError):
    reason = "already_joined"
    default_message = "Already in another room"


class SessionClosed(RoomError):
    reason = "closed"
    default_message = "Connection closed"
