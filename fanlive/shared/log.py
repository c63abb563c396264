import logging
import sys
from os import environ

from loguru import logger

from fanlive.shared.config import config


def init_logger():
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.remove()

    commit_id = environ.get("BUILD_COMMIT", "dev")[:7]

    if config.get_bool("DEBUG", False):
        logger_level = "DEBUG"
        logger_format = (
            f"<yellow>fanlive:{commit_id}</yellow> | "
            "<green>{time:MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
    else:
        logger_level = "INFO"
        logger_format = (
            f"fanlive:{commit_id} | "
            "{time:MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{name}:{function}:{line} | "
            "{message}"
        )
    logger.add(sys.stderr, level=logger_level, format=logger_format)
