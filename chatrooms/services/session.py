# chatrooms/services/session.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol


class Connection(Protocol):
    """Anything that can push a JSON frame to one client (e.g. a FastAPI WebSocket)."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self) -> None: ...


@dataclass(eq=False)
class Session:
    """
    Server-side record for one live connection.

    room_id is only a reference; the room may have been evicted since the
    session joined it, so always re-resolve it through the directory.
    """

    connection: Connection
    name: str = "Anonymous"
    room_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    closed: bool = False

    @property
    def joined(self) -> bool:
        return self.room_id is not None
