# chatrooms/main.py

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatrooms.core.config import Settings, settings as default_settings
from chatrooms.core.logging import setup_logging, get_logger
from chatrooms.core.state import AppState
from chatrooms.api.routes import root, health, rooms, join
from chatrooms.api import websocket as websocket_module

# Configure logging first
setup_logging(default_settings.LOG_LEVEL)
logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build a FastAPI app with its own directory, tracker and sweeper.

    Args:
        settings: Configuration to use (defaults to the environment-derived one)
    """
    settings = settings or default_settings

    app = FastAPI(title="Ephemeral Chat Rooms")
    app.state.chat = AppState(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    # REST routes
    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(rooms.router)
    app.include_router(join.router)

    # WebSocket routes
    app.include_router(websocket_module.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("🚀 Application starting (room TTL %ss)", settings.ROOM_TTL_SECONDS)
        app.state.chat.sweeper.start()

    @app.on_event("shutdown")
    async def on_shutdown():
        await app.state.chat.sweeper.stop()
        await app.state.chat.broadcaster.close()
        logger.info("Application stopped")

    return app


app = create_app()


def run() -> None:
    import uvicorn
    uvicorn.run("chatrooms.main:app", host=default_settings.HOST, port=default_settings.PORT)


if __name__ == "__main__":
    run()

# ============================================================================
# END OF FILE
# ============================================================================
