import time
from datetime import datetime, timezone

utc_now = lambda: datetime.now(timezone.utc)  # noqa: E731
utc_now_ms = lambda: int(time.time() * 1000)  # noqa: E731


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
