from pydantic import BaseModel

from fanlive.shared.config import config


class AppEnvironConfig(BaseModel):
    DEBUG: bool = config.get_bool("DEBUG", False)

    # When enabled, the in-memory backend replaces the REST backend and no network calls are made.
    DEMO_MODE: bool = config.get_bool("DEMO_MODE", True)

    # Managed backend (REST tables + RPC functions)
    BACKEND_BASE_URL: str | None = (config.get("BACKEND_BASE_URL") or "").strip() or None
    BACKEND_API_KEY: str | None = (config.get("BACKEND_API_KEY") or "").strip() or None
    BACKEND_TIMEOUT_SECONDS: float = config.get_float("BACKEND_TIMEOUT_SECONDS", 15.0)

    # Live session
    LEADERBOARD_POLL_SECONDS: float = config.get_float("LEADERBOARD_POLL_SECONDS", 30.0)
    CHAT_HISTORY_LIMIT: int = config.get_int("CHAT_HISTORY_LIMIT", 100)

    # Realtime transport
    REDIS_REALTIME_LABEL: str = (config.get("REDIS_REALTIME_LABEL") or "").strip() or "realtime"
    REALTIME_PRESENCE_TTL_SECONDS: int = config.get_int("REALTIME_PRESENCE_TTL_SECONDS", 90)
    REALTIME_RECONNECT_MAX_DELAY: float = config.get_float("REALTIME_RECONNECT_MAX_DELAY", 30.0)


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
