"""Tests for EnvironConfig helpers and logger setup."""

from unittest.mock import patch

from loguru import logger

from fanlive.shared.config import EnvironConfig, config
from fanlive.shared.log import init_logger


class TestEnvironConfig:
    def test_singleton(self):
        assert EnvironConfig() is config

    def test_typed_getters(self):
        with patch.dict(
            config._config,
            {"X_BOOL": "yes", "X_INT": "42", "X_BAD_INT": "forty", "X_FLOAT": "0.5"},
        ):
            assert config.get_bool("X_BOOL") is True
            assert config.get_bool("X_MISSING", True) is True
            assert config.get_int("X_INT", 0) == 42
            assert config.get_int("X_BAD_INT", 7) == 7
            assert config.get_float("X_FLOAT", 1.0) == 0.5

    def test_redis_url_by_label(self):
        with patch.dict(config._config, {"REDIS_URL_REALTIME": "redis://cache:6379/2"}):
            assert config.get_redis_url("realtime") == "redis://cache:6379/2"
            assert config.get_redis_url("unknown_label") == ""


class TestInitLogger:
    def test_replaces_default_sink(self):
        init_logger()
        messages = []
        sink_id = logger.add(messages.append, format="{message}")
        try:
            logger.info("ready")
        finally:
            logger.remove(sink_id)
        assert [m.strip() for m in messages] == ["ready"]
