# chatrooms/services/admission.py

from __future__ import annotations

import hmac
from typing import Optional

from chatrooms.core.logging import get_logger
from chatrooms.models.models import Room
from chatrooms.services.directory import RoomDirectory
from chatrooms.services.errors import RoomFull, WrongPassword
from chatrooms.services.sanitize import PASSWORD_MAX, sanitize

logger = get_logger(__name__)


def passwords_match(stored: Optional[str], supplied: Optional[str]) -> bool:
    """
    Compare a room's stored secret with a supplied one.

    Secrets are kept as plaintext. This is the only place they are compared,
    so swapping in hashed secrets later only touches this function and
    RoomDirectory.create.
    """
    if stored is None:
        return True
    return hmac.compare_digest(stored.encode("utf-8"), (supplied or "").encode("utf-8"))


class AdmissionGate:
    """
    Decides whether a join may proceed.

    Joining is two-phase:
        1. check(): pre-flight, no mutation. Gives the user early feedback
           (not found / wrong password / full) without holding a slot.
        2. admit(): the real join. Takes the slot atomically through
           RoomDirectory.increment_occupancy.

    Two clients can both pass check() for the last free slot; only one admit()
    succeeds and the other gets RoomFull. The directory is never over capacity.
    """

    def __init__(self, directory: RoomDirectory) -> None:
        self.directory = directory

    def check(self, room_id: str, password: Optional[str] = None) -> Room:
        """
        Pre-flight join check.

        Raises:
            RoomNotFound: Unknown room
            WrongPassword: Room has a password and it doesn't match
            RoomFull: No free slot right now
        """
        room = self.directory.get(room_id)
        if room.has_password and not passwords_match(room.password, sanitize(password, PASSWORD_MAX)):
            logger.info("✗ Pre-flight for room %s: wrong password", room_id)
            raise WrongPassword()
        if room.occupancy >= room.capacity:
            logger.info("✗ Pre-flight for room %s: full (%d/%d)", room_id, room.occupancy, room.capacity)
            raise RoomFull()
        return room

    def admit(self, room_id: str) -> int:
        """Consume a slot for a real join; may raise RoomFull or RoomNotFound."""
        return self.directory.increment_occupancy(room_id)
