"""
Centralized configuration management.

Values are layered, later sources overriding earlier ones:
1) `env.example` (committed, safe placeholders)
2) `env.local` (optional, MUST NOT be committed)
3) System environment variables (highest priority)
"""

import os
import threading
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger


class EnvironConfig:
    """
    Singleton configuration class that loads environment variables from env files
    and system environment, providing dictionary-like access with default values.
    """

    _instance = None
    _initialized = False
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._config: dict[str, str | None] = {}
            self._load_config()
            EnvironConfig._initialized = True

    def _load_config(self):
        root = Path(__file__).parent.parent.parent

        example_path = root / "env.example"
        if example_path.exists():
            self._config.update(dotenv_values(example_path))
            logger.info("Loaded environment variables from {}", example_path)

        local_path = root / "env.local"
        if local_path.exists():
            self._config.update(dotenv_values(local_path))
            logger.info("Loaded and overrode environment variables from {}", local_path)

        self._config.update(os.environ)

    def __getitem__(self, key):
        if key not in self._config:
            raise KeyError(f"Configuration key '{key}' not found")
        return self._config[key]

    def get(self, key, default=None):
        return self._config.get(key, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Read a "true"/"false" flag; anything else falls back to `default`."""
        value = (self._config.get(key) or "").strip().lower()
        if value in {"1", "true", "yes", "on"}:
            return True
        if value in {"0", "false", "no", "off"}:
            return False
        return default

    def get_int(self, key: str, default: int) -> int:
        value = (self._config.get(key) or "").strip()
        try:
            return int(value) if value else default
        except ValueError:
            logger.warning("Invalid integer for {}: {!r}, using {}", key, value, default)
            return default

    def get_float(self, key: str, default: float) -> float:
        value = (self._config.get(key) or "").strip()
        try:
            return float(value) if value else default
        except ValueError:
            logger.warning("Invalid number for {}: {!r}, using {}", key, value, default)
            return default

    def __contains__(self, key):
        return key in self._config

    def get_redis_url(self, label: str = "default") -> str:
        """
        Get Redis connection URL for a specific label.

        `default` resolves REDIS_URL_DEFAULT, then REDIS_URL, then localhost.
        Other labels resolve REDIS_URL_<LABEL> only.
        """
        if label == "default":
            return (
                self.get("REDIS_URL_DEFAULT")
                or self.get("REDIS_URL")
                or "redis://localhost:6379"
            )
        return self.get(f"REDIS_URL_{label.upper()}") or ""


config = EnvironConfig()
