# chatrooms/core/state.py
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import Request, WebSocket

from chatrooms.core.config import Settings
from chatrooms.services.admission import AdmissionGate
from chatrooms.services.broadcaster import Broadcaster
from chatrooms.services.directory import RoomDirectory
from chatrooms.services.presence import PresenceTracker
from chatrooms.services.sweeper import ExpirySweeper


class AppState:
    """
    Per-application service graph.

    Built once by the app factory and stored on ``app.state.chat``; handlers
    get it through ``get_state`` instead of importing module globals, so
    several independent apps (e.g. one per test) can coexist.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.directory = RoomDirectory(
            default_capacity=settings.DEFAULT_CAPACITY,
            history_size=settings.HISTORY_SIZE,
        )
        self.gate = AdmissionGate(self.directory)
        self.broadcaster = Broadcaster(self.directory, send_timeout=settings.SEND_TIMEOUT_SECONDS)
        self.tracker = PresenceTracker(self.directory, self.gate, self.broadcaster)
        self.sweeper = ExpirySweeper(
            self.directory,
            ttl=settings.ROOM_TTL_SECONDS,
            interval=settings.SWEEP_INTERVAL_SECONDS,
        )
        self.directory.subscribe(self.broadcaster.directory_changed)

        self.app_start_time: datetime = datetime.now(timezone.utc)


def get_state(request: Request) -> AppState:
    return request.app.state.chat


def get_ws_state(websocket: WebSocket) -> AppState:
    return websocket.app.state.chat
