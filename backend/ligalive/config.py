"""
backend/ligalive/config.py

Purpose:
    Central settings loading for the live-match backend.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "ligalive"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"

    # Live match bookkeeping
    QUICK_PLAYER_NUMBER_MIN: int = 100
    QUICK_PLAYER_NUMBER_MAX: int = 999
    QUICK_SCORER_POSITION: str = "Delantero"
    QUICK_ASSIST_POSITION: str = "Mediocampista"
    LIVE_MATCH_LIST_LIMIT: int = 200
    MATCH_LIST_LIMIT: int = 500

    # Event bus (in-process)
    EVENT_BUS_ENABLED: bool = True
    EVENT_BUS_LANE_MAXSIZE: int = 2000
    EVENT_BUS_HANDLER_LANES: int = 4
    EVENT_HANDLER_WS_BROADCAST_ENABLED: bool = True

    # WebSocket realtime stream
    WS_EVENTS_ENABLED: bool = True
    WS_HEARTBEAT_SECONDS: int = 30
    WS_MAX_CONNECTIONS: int = 500

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
