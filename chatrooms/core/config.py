# chatrooms/core/config.py
import os
from typing import List
from dotenv import load_dotenv


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(float(raw))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings:
    """
    Setup environment variables.
        - ROOM_TTL_MS idle time after which a room is evicted (SERVER_TTL_MS also accepted)
        - SWEEP_INTERVAL_SECONDS how often the expiry sweeper runs
        - HOST / PORT where uvicorn listens
        - DEFAULT_CAPACITY capacity used when a create request gives none
        - HISTORY_SIZE recent chat messages kept per room
        - SEND_TIMEOUT_SECONDS how long a single websocket send may take
        - CORS_ORIGINS comma-separated allowed origins ("*" for any)
        - LOG_LEVEL root logger level (DEBUG, INFO, WARNING, ...)
    """

    def __init__(self) -> None:
        # Load environment variables from the .env file
        load_dotenv()

        ttl_ms = _env_int("ROOM_TTL_MS", _env_int("SERVER_TTL_MS", 30 * 60 * 1000))
        self.ROOM_TTL_SECONDS: float = (ttl_ms if ttl_ms > 0 else 30 * 60 * 1000) / 1000.0
        self.SWEEP_INTERVAL_SECONDS: float = _env_float("SWEEP_INTERVAL_SECONDS", 60.0)

        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = _env_int("PORT", 3000)

        self.DEFAULT_CAPACITY: int = max(1, _env_int("DEFAULT_CAPACITY", 10))
        self.HISTORY_SIZE: int = max(0, _env_int("HISTORY_SIZE", 200))
        self.SEND_TIMEOUT_SECONDS: float = _env_float("SEND_TIMEOUT_SECONDS", 5.0)

        origins = os.getenv("CORS_ORIGINS", "*")
        self.CORS_ORIGINS: List[str] = [o.strip() for o in origins.split(",") if o.strip()] or ["*"]

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"


settings = Settings()
