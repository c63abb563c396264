"""Managed backend access."""

from fanlive.app_config import get_app_environ_config
from fanlive.services.realtime import get_demo_hub, get_row_relay
from fanlive.shared.errors import AppError, AppErrorCode, HttpStatusCode

from .backend_base import LiveBackend
from .memory_backend import InMemoryBackend
from .rest_backend import RestBackend

_demo_backend: InMemoryBackend | None = None


def get_backend(access_token: str | None = None) -> LiveBackend:
    """Backend for the configured environment (in-memory in DEMO_MODE)."""
    global _demo_backend
    cfg = get_app_environ_config()

    if cfg.DEMO_MODE:
        if _demo_backend is None:
            _demo_backend = InMemoryBackend(hub=get_demo_hub())
        return _demo_backend

    if not cfg.BACKEND_BASE_URL:
        raise AppError(
            errcode=AppErrorCode.E_INVALID_REQUEST,
            errmesg="BACKEND_BASE_URL must be configured when DEMO_MODE is off.",
            status_code=HttpStatusCode.BAD_REQUEST,
        )

    return RestBackend(
        base_url=cfg.BACKEND_BASE_URL,
        api_key=cfg.BACKEND_API_KEY,
        access_token=access_token,
        timeout=cfg.BACKEND_TIMEOUT_SECONDS,
        relay=get_row_relay(),
    )


__all__ = ["InMemoryBackend", "LiveBackend", "RestBackend", "get_backend"]
